"""
Report API Endpoints

Each report is returned as JSON, or streamed as an Excel, CSV or PDF
attachment when a ``format`` query parameter is given.
"""

from datetime import datetime
from typing import Any, Optional, Tuple

from fastapi import APIRouter, Depends, Query
import structlog

from assist_analytics.export import export_report
from assist_analytics.reports import (
    KPI_REPORT,
    MAU_REPORT,
    SALES_REPORT,
    USAGE_REPORT,
    ZONES_REPORT,
    ReportAggregator,
)
from assist_analytics.serving.api.dependencies import date_range, get_report_aggregator
from assist_analytics.serving.api.responses import format_response

router = APIRouter()
logger = structlog.get_logger(__name__)

DateRange = Tuple[Optional[datetime], Optional[datetime]]

FORMAT_QUERY = Query(None, alias="format", description="excel, csv or pdf")


async def respond(payload: Any, report_name: str, export_format: Optional[str]):
    """JSON envelope, or a file download when a format was requested."""
    if export_format:
        return await export_report(payload, report_name, export_format)
    return format_response(True, payload, f"{report_name.replace('_', ' ')} generated successfully")


@router.get("/usage")
async def get_usage_report(
    dates: DateRange = Depends(date_range),
    export_format: Optional[str] = FORMAT_QUERY,
    aggregator: ReportAggregator = Depends(get_report_aggregator),
):
    """Device usage, user activity, device statuses, logs and help requests."""
    start, end = dates
    payload = await aggregator.usage_report(start, end)
    return await respond(payload, USAGE_REPORT, export_format)


@router.get("/sales")
async def get_sales_report(
    dates: DateRange = Depends(date_range),
    export_format: Optional[str] = FORMAT_QUERY,
    aggregator: ReportAggregator = Depends(get_report_aggregator),
):
    start, end = dates
    payload = await aggregator.sales_report(start, end)
    return await respond(payload, SALES_REPORT, export_format)


@router.get("/zones")
async def get_zone_report(
    dates: DateRange = Depends(date_range),
    export_format: Optional[str] = FORMAT_QUERY,
    aggregator: ReportAggregator = Depends(get_report_aggregator),
):
    start, end = dates
    payload = await aggregator.zone_report(start, end)
    return await respond(payload, ZONES_REPORT, export_format)


@router.get("/monthly-active-users")
async def get_monthly_active_users_report(
    months: int = Query(6, ge=1, le=60, description="Number of months to analyse"),
    dates: DateRange = Depends(date_range),
    export_format: Optional[str] = FORMAT_QUERY,
    aggregator: ReportAggregator = Depends(get_report_aggregator),
):
    start, end = dates
    payload = await aggregator.monthly_active_users_report(months, start, end)
    return await respond(payload, MAU_REPORT, export_format)


@router.get("/kpis")
async def get_kpi_report(
    dates: DateRange = Depends(date_range),
    export_format: Optional[str] = FORMAT_QUERY,
    aggregator: ReportAggregator = Depends(get_report_aggregator),
):
    """Revenue growth, profit margin, security incidents and month projection."""
    start, end = dates
    payload = await aggregator.kpi_summary_report(start, end)
    return await respond(payload, KPI_REPORT, export_format)
