"""
Dashboard API Endpoints

Financial and engagement KPIs for the administration dashboard.
"""

from datetime import datetime
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Query
import structlog

from assist_analytics.kpi.engine import KPIEngine
from assist_analytics.serving.api.dependencies import date_range, get_kpi_engine
from assist_analytics.serving.api.responses import format_response

router = APIRouter()
logger = structlog.get_logger(__name__)

DateRange = Tuple[Optional[datetime], Optional[datetime]]


@router.get("/revenue-growth")
async def get_revenue_growth(
    dates: DateRange = Depends(date_range),
    engine: KPIEngine = Depends(get_kpi_engine),
):
    """Current month revenue against last month and the same month last year."""
    start, end = dates
    result = await engine.revenue_growth(start, end)
    return format_response(True, result, "Revenue growth retrieved successfully")


@router.get("/profit-margins")
async def get_profit_margins(
    dates: DateRange = Depends(date_range),
    engine: KPIEngine = Depends(get_kpi_engine),
):
    start, end = dates
    result = await engine.profit_margin(start, end)
    return format_response(True, result, "Profit margins retrieved successfully")


@router.get("/active-users")
async def get_active_users(
    months: Optional[int] = Query(None, ge=1, le=60, description="Number of months to analyse"),
    engine: KPIEngine = Depends(get_kpi_engine),
):
    result = await engine.monthly_active_users(months)
    return format_response(True, result, "Monthly active users retrieved successfully")


@router.get("/security-incidents")
async def get_security_incidents(
    dates: DateRange = Depends(date_range),
    engine: KPIEngine = Depends(get_kpi_engine),
):
    start, end = dates
    result = await engine.security_incidents(start, end)
    return format_response(True, result, "Security incidents retrieved successfully")


@router.get("/period-projections")
async def get_period_projections(
    period: str = Query("month", description="month or quarter"),
    engine: KPIEngine = Depends(get_kpi_engine),
):
    """End-of-period revenue, cost and profit projections."""
    result = await engine.period_projections(period)
    return format_response(True, result, "Period projections retrieved successfully")


@router.get("/get-sales")
async def get_sales(engine: KPIEngine = Depends(get_kpi_engine)):
    result = await engine.sales_overview()
    return format_response(True, result, "Sales KPIs retrieved successfully")


@router.get("/bestsellers")
async def get_bestsellers(engine: KPIEngine = Depends(get_kpi_engine)):
    result = await engine.top_products()
    return format_response(True, result, "Top products retrieved successfully")
