"""
KPI Engine

Financial and engagement KPIs computed over calendar windows:
- Revenue growth (month over month, year over year)
- Profit margin with estimated cost for devices lacking cost data
- Monthly active users with trend
- Security incidents per active user
- End-of-period projections (month or quarter)

Ratio conventions shared by every KPI:
- percent change against a zero baseline is 100 when the current value is
  positive and 0 otherwise
- a share (margin, rate, progress) with a zero denominator is 0
"""

import functools
from datetime import datetime
from typing import Callable, Iterable, Optional

import structlog

from assist_analytics.config import KpiSettings
from assist_analytics.database.repository import ReportingRepository, SaleRecord
from assist_analytics.exceptions import AnalyticsError, KPIComputationError
from assist_analytics.kpi import windows
from assist_analytics.kpi.schemas import (
    Growth,
    MonthlyActiveUsers,
    MonthlyActivity,
    MonthlyCount,
    MonthWindow,
    Period,
    PeriodProjections,
    ProfitMargin,
    ProjectionCurrent,
    ProjectionFigures,
    ProjectionPeriod,
    RevenueGrowth,
    RevenuePeriod,
    SaleTotals,
    SalesOverview,
    SecurityIncidents,
    TopProduct,
)

logger = structlog.get_logger(__name__)

PROJECTION_PERIODS = ("month", "quarter")


def percent_change(current: float, baseline: float) -> float:
    """Relative change in percent; a zero baseline yields 100 or 0."""
    if baseline == 0:
        return 100.0 if current > 0 else 0.0
    return (current - baseline) / baseline * 100


def share(numerator: float, denominator: float, scale: float = 100.0) -> float:
    """``numerator / denominator * scale``, or 0 for an empty denominator."""
    if denominator == 0:
        return 0.0
    return numerator / denominator * scale


def kpi_operation(name: str):
    """Wrap data-access failures of a KPI coroutine in KPIComputationError."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except (AnalyticsError, ValueError):
                raise
            except Exception as e:
                logger.error(
                    f"Error calculating {name}",
                    kpi=name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise KPIComputationError(name, e) from e

        return wrapper

    return decorator


class KPIEngine:
    """
    Computes dashboard KPIs from a reporting repository.

    The repository and clock are injected so the engine can be driven by a
    request-scoped session in the API and by fixed dates in tests.
    """

    def __init__(
        self,
        repository: ReportingRepository,
        settings: Optional[KpiSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository
        self.settings = settings or KpiSettings()
        self.clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def estimated_cost(self, sale: SaleRecord) -> Optional[float]:
        """Manufacturing cost, or a share of the price when it is missing."""
        if sale.manufacturing_cost:
            return sale.manufacturing_cost
        if sale.price:
            return sale.price * self.settings.cost_fallback_ratio
        return None

    def summarize_sales(self, sales: Iterable[SaleRecord]) -> SaleTotals:
        totals = SaleTotals()
        for sale in sales:
            totals.sale_count += 1
            totals.revenue += sale.price or 0
            cost = self.estimated_cost(sale)
            if cost is not None:
                totals.cost += cost
                totals.costed_count += 1
        return totals

    async def _revenue(self, window: windows.DateWindow) -> float:
        sales = await self.repository.find_sales(window.start, window.end)
        return sum(sale.price or 0 for sale in sales)

    # ------------------------------------------------------------------
    # KPIs
    # ------------------------------------------------------------------

    @kpi_operation("revenue growth")
    async def revenue_growth(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> RevenueGrowth:
        """
        Revenue of the current month compared with the previous month and
        with the same month one year earlier.

        Args:
            start_date: Start of the current window (first of the month by default)
            end_date: Reference date (now by default)
        """
        reference = end_date or self.clock()
        current = windows.current_month(reference)
        if start_date is not None:
            current = windows.DateWindow(start=start_date, end=reference)
        previous = windows.previous_month(reference)
        last_year = windows.same_month_last_year(reference)

        logger.debug(
            "Revenue growth windows",
            current=f"{current.start}..{current.end}",
            previous=f"{previous.start}..{previous.end}",
            last_year=f"{last_year.start}..{last_year.end}",
        )

        current_revenue = await self._revenue(current)
        previous_revenue = await self._revenue(previous)
        last_year_revenue = await self._revenue(last_year)

        result = RevenueGrowth(
            current_period=RevenuePeriod(
                start_date=current.start, end_date=current.end, revenue=current_revenue
            ),
            previous_period=RevenuePeriod(
                start_date=previous.start, end_date=previous.end, revenue=previous_revenue
            ),
            previous_year_same_period=RevenuePeriod(
                start_date=last_year.start, end_date=last_year.end, revenue=last_year_revenue
            ),
            growth=Growth(
                month_over_month=round(percent_change(current_revenue, previous_revenue), 2),
                year_over_year=round(percent_change(current_revenue, last_year_revenue), 2),
            ),
        )
        logger.info(
            "Revenue growth calculated",
            revenue=current_revenue,
            month_over_month=result.growth.month_over_month,
            year_over_year=result.growth.year_over_year,
        )
        return result

    @kpi_operation("profit margins")
    async def profit_margin(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> ProfitMargin:
        """Gross profit and margin over a window (current month to date by default)."""
        now = self.clock()
        start = start_date or windows.current_month(now).start
        end = end_date or now

        sales = await self.repository.find_sales(start, end)
        totals = self.summarize_sales(sales)
        gross_profit = totals.revenue - totals.cost

        result = ProfitMargin(
            period=Period(start_date=start, end_date=end),
            total_revenue=totals.revenue,
            total_cost=totals.cost,
            gross_profit=gross_profit,
            gross_margin_percentage=round(share(gross_profit, totals.revenue), 2),
            average_selling_price=round(share(totals.revenue, totals.sale_count, 1), 2),
            average_cost=round(share(totals.cost, totals.costed_count, 1), 2),
            sale_count=totals.sale_count,
        )
        logger.info(
            "Profit margin calculated",
            sales=totals.sale_count,
            margin=result.gross_margin_percentage,
        )
        return result

    @kpi_operation("monthly active users")
    async def monthly_active_users(self, months: Optional[int] = None) -> MonthlyActiveUsers:
        """Active users per calendar month, most recent month first."""
        months = self.settings.default_mau_months if months is None else months
        if months < 1:
            raise ValueError("months must be a positive integer")

        now = self.clock()
        total_users = await self.repository.count_users()

        monthly = []
        for offset in range(months):
            window = windows.months_back(now, offset)
            active = await self.repository.count_active_users(window.start, window.end)
            monthly.append(
                MonthlyActivity(
                    month=windows.month_key(window.start),
                    active_users=active,
                    percentage_active=round(share(active, total_users), 2),
                    period=MonthWindow(start=window.start, end=window.end),
                )
            )

        trend = 0.0
        if len(monthly) >= 2:
            trend = percent_change(monthly[0].active_users, monthly[1].active_users)

        return MonthlyActiveUsers(
            current_mau=monthly[0].active_users,
            total_registered_users=total_users,
            activation_rate=monthly[0].percentage_active,
            trend=round(trend, 2),
            monthly_data=monthly,
        )

    @kpi_operation("security incidents")
    async def security_incidents(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> SecurityIncidents:
        """Incident counts by severity and month, relative to active users."""
        now = self.clock()
        start = start_date or windows.start_of_month(
            now.year, now.month - self.settings.security_lookback_months
        )
        end = end_date or now

        incidents = await self.repository.find_security_incidents(start, end)
        active_users = await self.repository.count_active_users(start, end)

        severity_breakdown = {}
        monthly = {}
        for incident in incidents:
            severity = incident.severity or "unknown"
            severity_breakdown[severity] = severity_breakdown.get(severity, 0) + 1
            key = windows.month_key(incident.reported_at)
            monthly[key] = monthly.get(key, 0) + 1

        trend = [
            MonthlyCount(month=key, count=count)
            for key, count in sorted(monthly.items(), key=lambda item: windows.parse_month_key(item[0]))
        ]

        return SecurityIncidents(
            period=Period(start_date=start, end_date=end),
            total_incidents=len(incidents),
            incidents_per_active_user=round(share(len(incidents), active_users, 1), 4),
            severity_breakdown=severity_breakdown,
            monthly_trend=trend,
            active_users=active_users,
        )

    async def period_projections(self, period: str = "month") -> PeriodProjections:
        """Project revenue, cost and profit to the end of the month or quarter."""
        if period not in PROJECTION_PERIODS:
            raise ValueError(f"period must be one of: {', '.join(PROJECTION_PERIODS)}")
        return await self._period_projections(period)

    @kpi_operation("period projections")
    async def _period_projections(self, period: str) -> PeriodProjections:
        now = self.clock()

        if period == "month":
            window = windows.month_window(now.year, now.month)
            elapsed = now.day
        else:
            window = windows.current_quarter(now)
            full_months = now.month - window.start.month
            elapsed = sum(window.month_lengths[:full_months]) + now.day

        days_in_period = sum(window.month_lengths)
        days_elapsed = min(elapsed, days_in_period)

        sales = await self.repository.find_sales(window.start, now)
        totals = self.summarize_sales(sales)
        profit = totals.profit

        daily_revenue = share(totals.revenue, days_elapsed, 1)
        daily_cost = share(totals.cost, days_elapsed, 1)
        daily_profit = share(profit, days_elapsed, 1)

        projected_revenue = daily_revenue * days_in_period
        projected_cost = daily_cost * days_in_period
        projected_profit = daily_profit * days_in_period

        logger.info(
            "Period projection calculated",
            period=period,
            days_elapsed=days_elapsed,
            days_in_period=days_in_period,
            projected_revenue=round(projected_revenue, 2),
        )

        return PeriodProjections(
            period=ProjectionPeriod(
                type=period,
                start_date=window.start,
                end_date=window.end,
                days_in_period=days_in_period,
                days_elapsed=days_elapsed,
                percent_completed=share(days_elapsed, days_in_period),
            ),
            current=ProjectionCurrent(
                revenue=round(totals.revenue, 2),
                cost=round(totals.cost, 2),
                profit=round(profit, 2),
                revenue_progress=round(share(totals.revenue, projected_revenue) if projected_revenue > 0 else 0.0, 2),
                profit_progress=round(share(profit, projected_profit) if projected_profit > 0 else 0.0, 2),
            ),
            daily_average=ProjectionFigures(
                revenue=round(daily_revenue, 2),
                cost=round(daily_cost, 2),
                profit=round(daily_profit, 2),
            ),
            projected=ProjectionFigures(
                revenue=round(projected_revenue, 2),
                cost=round(projected_cost, 2),
                profit=round(projected_profit, 2),
            ),
        )

    @kpi_operation("sales overview")
    async def sales_overview(self) -> SalesOverview:
        """All-time sales count, revenue and registered users."""
        sales = await self.repository.find_sales()
        return SalesOverview(
            total_sales=len(sales),
            total_revenue=sum(sale.price or 0 for sale in sales),
            total_users=await self.repository.count_users(),
        )

    @kpi_operation("top products")
    async def top_products(self) -> list:
        """Device types ranked by their share of the catalogue."""
        total = await self.repository.count_devices()
        by_type = await self.repository.count_devices_by_type()
        products = [
            TopProduct(
                product_name=device_type,
                device_count=count,
                device_percentage=round(share(count, total), 2),
            )
            for device_type, count in by_type.items()
        ]
        products.sort(key=lambda product: product.device_percentage, reverse=True)
        return products
