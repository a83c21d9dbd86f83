"""
KPI Module
"""
from .engine import KPIEngine, percent_change, share
from .windows import DateWindow

__all__ = ["KPIEngine", "DateWindow", "percent_change", "share"]
