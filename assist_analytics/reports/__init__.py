"""
Reports Module
"""
from .aggregator import (
    ReportAggregator,
    USAGE_REPORT,
    SALES_REPORT,
    ZONES_REPORT,
    MAU_REPORT,
    KPI_REPORT,
)

__all__ = [
    "ReportAggregator",
    "USAGE_REPORT",
    "SALES_REPORT",
    "ZONES_REPORT",
    "MAU_REPORT",
    "KPI_REPORT",
]
