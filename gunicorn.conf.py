"""
Gunicorn Configuration

Uvicorn workers under Gunicorn for production deployment.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 10000
max_requests_jitter = 1000
keepalive = 5
graceful_timeout = 30

# Must exceed EXPORT_TIMEOUT_SECONDS so a slow export fails with its own error
timeout = int(float(os.getenv("EXPORT_TIMEOUT_SECONDS", 60))) + 30

# Process naming
proc_name = "assist-analytics-api"

# Logging; the application formats its own records through structlog
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = None


def post_fork(server, worker):
    server.log.info("Worker spawned (pid: %s)", worker.pid)


def worker_abort(worker):
    worker.log.warning("Worker aborted (pid: %s)", worker.pid)
