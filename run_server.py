#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py
    Gunicorn:     python run_server.py --gunicorn
                  (same as: gunicorn assist_analytics.main:app -c gunicorn.conf.py)
"""

import argparse
import os
import subprocess

import uvicorn

from assist_analytics.config import get_settings

APP = "assist_analytics.main:app"


def run_dev_server(host: str, port: int) -> None:
    """Single worker with auto-reload."""
    uvicorn.run(
        APP,
        host=host,
        port=port,
        reload=True,
        reload_dirs=["assist_analytics"],
        log_level="debug",
    )


def run_prod_server(host: str, port: int) -> None:
    uvicorn.run(
        APP,
        host=host,
        port=port,
        workers=int(os.getenv("WORKERS", 4)),
        log_level=get_settings().monitoring.log_level.lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn(host: str, port: int) -> None:
    env = dict(os.environ, BIND=f"{host}:{port}")
    subprocess.run(["gunicorn", APP, "-c", "gunicorn.conf.py"], env=env, check=True)


def main() -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Assist Analytics API Server")
    parser.add_argument("--dev", action="store_true", help="Run with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run under Gunicorn")
    parser.add_argument("--host", default=settings.api_host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Port to run on")
    args = parser.parse_args()

    if args.dev:
        run_dev_server(args.host, args.port)
    elif args.gunicorn:
        run_gunicorn(args.host, args.port)
    else:
        run_prod_server(args.host, args.port)


if __name__ == "__main__":
    main()
