"""
Reporting Repository

Read-only queries used by the KPI engine and the report aggregator. The
repository wraps an injected AsyncSession and returns plain records so the
computation layers never touch ORM objects.

All date filters are closed ranges: ``start <= column <= end``. Either bound
may be omitted.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from assist_analytics.database.models import (
    Device,
    Environment,
    HelpRequest,
    Log,
    Profile,
    Sale,
    SecurityIncident,
    User,
    UserDeviceHistory,
    Zone,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SaleRecord:
    """A sale joined with the price data of its device"""
    sale_id: int
    created_at: datetime
    device_type: Optional[str]
    price: Optional[float]
    manufacturing_cost: Optional[float]


@dataclass(frozen=True)
class IncidentRecord:
    """A security incident as seen by the KPI engine"""
    incident_id: int
    severity: Optional[str]
    reported_at: datetime
    is_resolved: bool


@dataclass(frozen=True)
class ActiveUserRecord:
    """A user who logged in during a window"""
    user_id: int
    email: str
    last_login: Optional[datetime]
    firstname: Optional[str]
    lastname: Optional[str]
    has_profile: bool


def _within(column, start: Optional[datetime], end: Optional[datetime]) -> list:
    """Build the where-clauses for a closed date range on ``column``."""
    clauses = []
    if start is not None:
        clauses.append(column >= start)
    if end is not None:
        clauses.append(column <= end)
    return clauses


class ReportingRepository:
    """Entity-oriented read queries over the platform database."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    async def find_sales(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[SaleRecord]:
        """Sales created within the window, with device price and cost."""
        result = await self.session.execute(
            select(
                Sale.id,
                Sale.created_at,
                Device.type,
                Device.price,
                Device.manufacturing_cost,
            )
            .join(Device, Sale.device_id == Device.id)
            .where(*_within(Sale.created_at, start, end))
            .order_by(Sale.created_at)
        )
        sales = [
            SaleRecord(
                sale_id=row.id,
                created_at=row.created_at,
                device_type=row.type,
                price=row.price,
                manufacturing_cost=row.manufacturing_cost,
            )
            for row in result.all()
        ]
        logger.debug("Sales fetched", start=str(start), end=str(end), count=len(sales))
        return sales

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def count_users(self, created_since: Optional[datetime] = None) -> int:
        """Registered users, optionally only those created since a date."""
        result = await self.session.execute(
            select(func.count(User.id)).where(*_within(User.created_at, created_since, None))
        )
        return result.scalar_one()

    async def count_active_users(self, start: datetime, end: datetime) -> int:
        """Users whose last login falls within the window."""
        result = await self.session.execute(
            select(func.count(User.id)).where(*_within(User.last_login, start, end))
        )
        return result.scalar_one()

    async def find_active_users(self, start: datetime, end: datetime) -> List[ActiveUserRecord]:
        result = await self.session.execute(
            select(
                User.id,
                User.email,
                User.last_login,
                Profile.id.label("profile_id"),
                Profile.firstname,
                Profile.lastname,
            )
            .outerjoin(Profile, Profile.user_id == User.id)
            .where(*_within(User.last_login, start, end))
            .order_by(User.last_login.desc())
        )
        return [
            ActiveUserRecord(
                user_id=row.id,
                email=row.email,
                last_login=row.last_login,
                firstname=row.firstname,
                lastname=row.lastname,
                has_profile=row.profile_id is not None,
            )
            for row in result.all()
        ]

    # ------------------------------------------------------------------
    # Security incidents
    # ------------------------------------------------------------------

    async def find_security_incidents(self, start: datetime, end: datetime) -> List[IncidentRecord]:
        """Incidents reported within the window, oldest first."""
        result = await self.session.execute(
            select(SecurityIncident)
            .where(*_within(SecurityIncident.reported_at, start, end))
            .order_by(SecurityIncident.reported_at.asc())
        )
        return [
            IncidentRecord(
                incident_id=incident.id,
                severity=incident.severity.value if incident.severity is not None else None,
                reported_at=incident.reported_at,
                is_resolved=bool(incident.is_resolved),
            )
            for incident in result.scalars().all()
        ]

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    async def count_devices(self) -> int:
        result = await self.session.execute(select(func.count(Device.id)))
        return result.scalar_one()

    async def count_devices_by_type(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(Device.type, func.count(Device.id)).group_by(Device.type)
        )
        return {row[0]: row[1] for row in result.all()}

    async def count_devices_by_status(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(Device.status, func.count(Device.id)).group_by(Device.status)
        )
        return {row[0]: row[1] for row in result.all()}

    # ------------------------------------------------------------------
    # Zones
    # ------------------------------------------------------------------

    async def count_zones(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> int:
        result = await self.session.execute(
            select(func.count(Zone.id)).where(*_within(Zone.created_at, start, end))
        )
        return result.scalar_one()

    async def count_zones_by_type(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, int]:
        result = await self.session.execute(
            select(Zone.type, func.count(Zone.id))
            .where(*_within(Zone.created_at, start, end))
            .group_by(Zone.type)
            .order_by(Zone.type)
        )
        return {row[0]: row[1] for row in result.all()}

    async def count_zones_by_environment(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Tuple[int, Optional[str], int]]:
        """(environment id, environment name or None, zone count) per environment."""
        result = await self.session.execute(
            select(Zone.env_id, Environment.name, func.count(Zone.id))
            .outerjoin(Environment, Environment.id == Zone.env_id)
            .where(*_within(Zone.created_at, start, end))
            .group_by(Zone.env_id, Environment.name)
            .order_by(Zone.env_id)
        )
        return [(row[0], row[1], row[2]) for row in result.all()]

    async def find_zone_creation_dates(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[datetime]:
        result = await self.session.execute(
            select(Zone.created_at)
            .where(*_within(Zone.created_at, start, end))
            .order_by(Zone.created_at)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    async def count_device_usage(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[int, int]:
        """Number of uses per device."""
        result = await self.session.execute(
            select(UserDeviceHistory.device_id, func.count(UserDeviceHistory.id))
            .where(*_within(UserDeviceHistory.use_date, start, end))
            .group_by(UserDeviceHistory.device_id)
            .order_by(UserDeviceHistory.device_id)
        )
        return {row[0]: row[1] for row in result.all()}

    async def count_device_usage_by_user(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[int, int]:
        """Number of device uses per user."""
        result = await self.session.execute(
            select(UserDeviceHistory.user_id, func.count(UserDeviceHistory.id))
            .where(*_within(UserDeviceHistory.use_date, start, end))
            .group_by(UserDeviceHistory.user_id)
            .order_by(UserDeviceHistory.user_id)
        )
        return {row[0]: row[1] for row in result.all()}

    async def count_logs(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> int:
        result = await self.session.execute(
            select(func.count(Log.id)).where(*_within(Log.created_at, start, end))
        )
        return result.scalar_one()

    async def count_logs_by_user(self, start: datetime, end: datetime) -> Dict[Optional[int], int]:
        result = await self.session.execute(
            select(Log.user_id, func.count(Log.id))
            .where(*_within(Log.created_at, start, end))
            .group_by(Log.user_id)
            .order_by(Log.user_id)
        )
        return {row[0]: row[1] for row in result.all()}

    async def count_help_requests(self) -> int:
        result = await self.session.execute(select(func.count(HelpRequest.id)))
        return result.scalar_one()
