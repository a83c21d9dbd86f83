"""
Report Aggregator

Assembles named report payloads from repository listings and KPI results.
Payloads are plain dicts (camelCase keys, datetimes left as datetime
objects for the exporters) and come back zeroed rather than failing when
there is no data.
"""

import functools
from datetime import datetime
from typing import Callable, Dict, List, Optional

import structlog

from assist_analytics.database.repository import ReportingRepository
from assist_analytics.exceptions import AnalyticsError, ReportGenerationError
from assist_analytics.kpi import windows
from assist_analytics.kpi.engine import KPIEngine, percent_change, share

logger = structlog.get_logger(__name__)


# Report names double as export file name prefixes
USAGE_REPORT = "System_Usage_Report"
SALES_REPORT = "Sales_Report"
ZONES_REPORT = "Zones_Report"
MAU_REPORT = "Monthly_Active_Users_Report"
KPI_REPORT = "Financial_KPI_Report"


def report_operation(report: str):
    """Wrap unexpected failures while building ``report``."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                payload = await func(self, *args, **kwargs)
            except (AnalyticsError, ValueError):
                raise
            except Exception as e:
                logger.error(
                    "Report generation failed",
                    report=report,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise ReportGenerationError(report, e) from e
            logger.info("Report generated", report=report)
            return payload

        return wrapper

    return decorator


class ReportAggregator:
    """Builds the usage, sales, zone and monthly-active-user reports."""

    def __init__(
        self,
        repository: ReportingRepository,
        kpi_engine: Optional[KPIEngine] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository
        self.kpi_engine = kpi_engine or KPIEngine(repository, clock=clock)
        self.clock = clock

    @report_operation(USAGE_REPORT)
    async def usage_report(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict:
        device_usage = await self.repository.count_device_usage(start_date, end_date)
        user_activity = await self.repository.count_device_usage_by_user(start_date, end_date)
        statuses = await self.repository.count_devices_by_status()
        log_activity = await self.repository.count_logs(start_date, end_date)
        help_requests = await self.repository.count_help_requests()

        return {
            "deviceUsage": [
                {"deviceId": device_id, "usageCount": count}
                for device_id, count in device_usage.items()
            ],
            "activeUsersCount": len(user_activity),
            "activeUsersSummary": [
                {"userId": user_id, "activityCount": count}
                for user_id, count in user_activity.items()
            ],
            "deviceStatusDistribution": [
                {"status": status, "count": count}
                for status, count in statuses.items()
            ],
            "logActivity": log_activity,
            "helpRequests": help_requests,
        }

    @report_operation(SALES_REPORT)
    async def sales_report(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict:
        sales = await self.repository.find_sales(start_date, end_date)

        by_type: Dict[str, Dict] = {}
        by_month: Dict[datetime, Dict] = {}
        total_revenue = 0.0

        for sale in sales:
            price = sale.price or 0
            total_revenue += price

            device_type = sale.device_type or "unknown"
            bucket = by_type.setdefault(device_type, {"count": 0, "revenue": 0.0})
            bucket["count"] += 1
            bucket["revenue"] += price

            month = windows.truncate_to_month(sale.created_at)
            point = by_month.setdefault(month, {"salesCount": 0, "revenue": 0.0})
            point["salesCount"] += 1
            point["revenue"] += price

        return {
            "totalSales": len(sales),
            "totalRevenue": round(total_revenue, 2),
            "deviceTypeSales": [
                {
                    "deviceType": device_type,
                    "salesCount": data["count"],
                    "revenue": round(data["revenue"], 2),
                }
                for device_type, data in by_type.items()
            ],
            "monthlySalesTrend": [
                {
                    "month": month,
                    "salesCount": point["salesCount"],
                    "revenue": round(point["revenue"], 2),
                }
                for month, point in sorted(by_month.items())
            ],
        }

    @report_operation(ZONES_REPORT)
    async def zone_report(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict:
        total_zones = await self.repository.count_zones(start_date, end_date)
        by_type = await self.repository.count_zones_by_type(start_date, end_date)
        created = await self.repository.find_zone_creation_dates(start_date, end_date)
        by_environment = await self.repository.count_zones_by_environment(start_date, end_date)

        return {
            "totalZones": total_zones,
            "zonesByType": [
                {"type": zone_type, "count": count} for zone_type, count in by_type.items()
            ],
            "zonesCreatedOverTime": [
                {"month": month, "count": count}
                for month, count in windows.monthly_buckets(created)
            ],
            "zonesByEnvironment": [
                {
                    "environmentId": env_id,
                    "environmentName": name or f"Environment {env_id}",
                    "count": count,
                }
                for env_id, name, count in by_environment
            ],
        }

    @report_operation(MAU_REPORT)
    async def monthly_active_users_report(
        self,
        months: int = 6,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict:
        """
        Detailed monthly active user report.

        Months are counted back from ``end_date`` (or now); months starting
        before ``start_date`` are skipped and, when ``start_date`` is given,
        only users registered since then count as registered.
        """
        if months < 1:
            raise ValueError("months must be a positive integer")

        reference = end_date or self.clock()
        total_users = await self.repository.count_users(created_since=start_date)

        monthly: List[Dict] = []
        for offset in range(months):
            window = windows.months_back(reference, offset)
            if start_date is not None and window.start < start_date:
                continue

            active_users = await self.repository.find_active_users(window.start, window.end)
            activity = await self.repository.count_logs_by_user(window.start, window.end)

            monthly.append({
                "month": windows.month_key(window.start),
                "monthName": windows.month_name(window.start),
                "activeUsers": len(active_users),
                "percentageActive": round(share(len(active_users), total_users), 2),
                "period": {"start": window.start, "end": window.end},
                "userDetails": [
                    {
                        "id": user.user_id,
                        "email": user.email,
                        "name": (
                            f"{user.firstname or ''} {user.lastname or ''}".strip()
                            if user.has_profile
                            else "Unknown"
                        ),
                        "lastLogin": user.last_login,
                    }
                    for user in active_users
                ],
                "activityDistribution": [
                    {"userId": user_id, "actionCount": count}
                    for user_id, count in activity.items()
                ],
            })

        trend = 0.0
        if len(monthly) >= 2:
            trend = percent_change(monthly[0]["activeUsers"], monthly[1]["activeUsers"])

        average = share(sum(month["activeUsers"] for month in monthly), len(monthly), 1)

        return {
            "reportPeriod": {
                "startDate": start_date or windows.start_of_month(
                    reference.year, reference.month - months + 1
                ),
                "endDate": reference,
                "totalMonths": len(monthly),
            },
            "currentMAU": monthly[0]["activeUsers"] if monthly else 0,
            "totalRegisteredUsers": total_users,
            "activationRate": monthly[0]["percentageActive"] if monthly else 0,
            "trend": round(trend, 2),
            "averageActiveUsers": round(average, 2),
            "monthlyData": monthly,
        }

    @report_operation(KPI_REPORT)
    async def kpi_summary_report(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict:
        """Dashboard KPIs gathered into one exportable payload."""
        revenue = await self.kpi_engine.revenue_growth(start_date, end_date)
        margin = await self.kpi_engine.profit_margin(start_date, end_date)
        security = await self.kpi_engine.security_incidents(start_date, end_date)
        projections = await self.kpi_engine.period_projections("month")
        return {
            "revenueGrowth": revenue.to_payload(),
            "profitMargin": margin.to_payload(),
            "securityIncidents": security.to_payload(),
            "monthProjection": projections.to_payload(),
        }
