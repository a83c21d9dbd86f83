"""
Assist Analytics
Configuration Module
"""
from .settings import Settings, KpiSettings, ExportSettings, get_settings

__all__ = ["Settings", "KpiSettings", "ExportSettings", "get_settings"]
