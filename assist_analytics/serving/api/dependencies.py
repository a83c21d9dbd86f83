"""
Request-scoped dependencies and query parsing shared by the routers.
"""

from datetime import datetime, time
from typing import Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from assist_analytics.config import get_settings
from assist_analytics.database.connection import get_db_dependency
from assist_analytics.database.repository import ReportingRepository
from assist_analytics.kpi.engine import KPIEngine
from assist_analytics.reports.aggregator import ReportAggregator


def parse_date_param(value: Optional[str], name: str, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse an ISO date or datetime query value.

    A bare date used as an upper bound covers the whole day.
    """
    if value is None or value == "":
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name}: expected an ISO date such as 2024-01-31",
        ) from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    if end_of_day and len(value) == 10:
        parsed = datetime.combine(parsed.date(), time.max)
    return parsed


def date_range(startDate: Optional[str] = None, endDate: Optional[str] = None):
    """``startDate`` / ``endDate`` query parameters as datetimes."""
    start = parse_date_param(startDate, "startDate")
    end = parse_date_param(endDate, "endDate", end_of_day=True)
    if start and end and start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="startDate must not be after endDate",
        )
    return start, end


async def get_repository(db: AsyncSession = Depends(get_db_dependency)) -> ReportingRepository:
    return ReportingRepository(db)


def get_kpi_engine(repository: ReportingRepository = Depends(get_repository)) -> KPIEngine:
    return KPIEngine(repository, get_settings().kpi)


def get_report_aggregator(
    repository: ReportingRepository = Depends(get_repository),
    kpi_engine: KPIEngine = Depends(get_kpi_engine),
) -> ReportAggregator:
    return ReportAggregator(repository, kpi_engine)
