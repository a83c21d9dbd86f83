"""
KPI Result Models

Attributes are snake_case in Python and serialized with camelCase aliases,
which is the shape the dashboard front-end consumes.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class KPIModel(BaseModel):
    """Base model for KPI payloads"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        """camelCase dict with datetimes kept as datetime objects"""
        return self.model_dump(by_alias=True)


class Period(KPIModel):
    start_date: datetime
    end_date: datetime


class RevenuePeriod(Period):
    revenue: float


class Growth(KPIModel):
    month_over_month: float
    year_over_year: float


class RevenueGrowth(KPIModel):
    current_period: RevenuePeriod
    previous_period: RevenuePeriod
    previous_year_same_period: RevenuePeriod
    growth: Growth


class ProfitMargin(KPIModel):
    period: Period
    total_revenue: float
    total_cost: float
    gross_profit: float
    gross_margin_percentage: float
    average_selling_price: float
    average_cost: float
    sale_count: int


class MonthWindow(KPIModel):
    start: datetime
    end: datetime


class MonthlyActivity(KPIModel):
    month: str
    active_users: int
    percentage_active: float
    period: MonthWindow


class MonthlyActiveUsers(KPIModel):
    current_mau: int
    total_registered_users: int
    activation_rate: float
    trend: float
    monthly_data: List[MonthlyActivity]

    # "currentMAU" rather than the generated "currentMau"
    model_config = ConfigDict(
        alias_generator=lambda name: "currentMAU" if name == "current_mau" else to_camel(name),
        populate_by_name=True,
    )


class MonthlyCount(KPIModel):
    month: str
    count: int


class SecurityIncidents(KPIModel):
    period: Period
    total_incidents: int
    incidents_per_active_user: float
    severity_breakdown: Dict[str, int]
    monthly_trend: List[MonthlyCount]
    active_users: int


class ProjectionPeriod(KPIModel):
    type: str
    start_date: datetime
    end_date: datetime
    days_in_period: int
    days_elapsed: int
    percent_completed: float


class ProjectionCurrent(KPIModel):
    revenue: float
    cost: float
    profit: float
    revenue_progress: float
    profit_progress: float


class ProjectionFigures(KPIModel):
    revenue: float
    cost: float
    profit: float


class PeriodProjections(KPIModel):
    period: ProjectionPeriod
    current: ProjectionCurrent
    daily_average: ProjectionFigures
    projected: ProjectionFigures


class SalesOverview(KPIModel):
    total_sales: int
    total_revenue: float
    total_users: int


class TopProduct(KPIModel):
    product_name: str
    device_count: int
    device_percentage: float


@dataclass
class SaleTotals:
    """Revenue and cost summed over a set of sales"""
    revenue: float = 0.0
    cost: float = 0.0
    sale_count: int = 0
    costed_count: int = 0

    @property
    def profit(self) -> float:
        return self.revenue - self.cost
