"""
Test Suite Configuration
"""
import pytest
from datetime import datetime
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from assist_analytics.config import Settings
from assist_analytics.config.settings import ExportSettings, KpiSettings
from assist_analytics.database.models import (
    Base,
    Device,
    Environment,
    HelpRequest,
    IncidentSeverity,
    Log,
    Profile,
    Sale,
    SecurityIncident,
    User,
    UserDeviceHistory,
    Zone,
)
from assist_analytics.database.repository import ReportingRepository
from assist_analytics.kpi.engine import KPIEngine
from assist_analytics.reports.aggregator import ReportAggregator

# Fixed "now" for every time-dependent test: 17 October 2026, midday
NOW = datetime(2026, 10, 17, 12, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
    )


@pytest.fixture
def kpi_settings() -> KpiSettings:
    return KpiSettings()


@pytest.fixture
def export_settings(tmp_path) -> ExportSettings:
    """Export settings writing into the test's temp directory"""
    return ExportSettings(temp_dir=str(tmp_path), timeout_seconds=10)


@pytest.fixture
async def test_engine():
    """Create test database engine"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


class Seeder:
    """Inserts platform rows for a test and flushes them."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._ids = {}

    def _next_id(self, kind: str) -> int:
        self._ids[kind] = self._ids.get(kind, 0) + 1
        return self._ids[kind]

    async def _add(self, obj):
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def device(
        self,
        price: Optional[float] = 100.0,
        cost: Optional[float] = None,
        device_type: str = "bracelet",
        status: str = "disconnected",
    ) -> Device:
        return await self._add(Device(
            id=self._next_id("device"),
            type=device_type,
            price=price,
            manufacturing_cost=cost,
            status=status,
            created_at=NOW,
        ))

    async def sale(
        self,
        created_at: datetime,
        price: Optional[float] = 100.0,
        cost: Optional[float] = None,
        device_type: str = "bracelet",
    ) -> Sale:
        device = await self.device(price=price, cost=cost, device_type=device_type)
        return await self._add(Sale(
            id=self._next_id("sale"),
            device_id=device.id,
            created_at=created_at,
        ))

    async def user(
        self,
        last_login: Optional[datetime] = None,
        created_at: datetime = datetime(2025, 1, 1),
        firstname: Optional[str] = None,
        lastname: Optional[str] = None,
    ) -> User:
        user_id = self._next_id("user")
        user = await self._add(User(
            id=user_id,
            email=f"user{user_id}@example.com",
            role="endUser",
            last_login=last_login,
            created_at=created_at,
        ))
        if firstname is not None or lastname is not None:
            await self._add(Profile(
                id=self._next_id("profile"),
                user_id=user_id,
                firstname=firstname,
                lastname=lastname,
            ))
        return user

    async def incident(
        self,
        reported_at: datetime,
        severity: Optional[IncidentSeverity] = IncidentSeverity.HIGH,
    ) -> SecurityIncident:
        return await self._add(SecurityIncident(
            id=self._next_id("incident"),
            severity=severity,
            description="Unauthorized access attempt",
            reported_at=reported_at,
            is_resolved=False,
        ))

    async def environment(self, name: str) -> Environment:
        return await self._add(Environment(id=self._next_id("environment"), name=name))

    async def zone(self, env_id: int, created_at: datetime, zone_type: str = "safe") -> Zone:
        return await self._add(Zone(
            id=self._next_id("zone"),
            type=zone_type,
            env_id=env_id,
            created_at=created_at,
        ))

    async def device_use(self, user_id: int, device_id: int, use_date: datetime) -> UserDeviceHistory:
        return await self._add(UserDeviceHistory(
            id=self._next_id("use"),
            user_id=user_id,
            device_id=device_id,
            use_date=use_date,
        ))

    async def log(self, user_id: Optional[int], created_at: datetime, action: str = "login") -> Log:
        return await self._add(Log(
            id=self._next_id("log"),
            user_id=user_id,
            action=action,
            created_at=created_at,
        ))

    async def help_request(self, user_id: Optional[int], created_at: datetime = NOW) -> HelpRequest:
        return await self._add(HelpRequest(
            id=self._next_id("help"),
            user_id=user_id,
            created_at=created_at,
        ))


@pytest.fixture
def seed(test_db) -> Seeder:
    """Row factory bound to the test session"""
    return Seeder(test_db)


@pytest.fixture
def repository(test_db) -> ReportingRepository:
    return ReportingRepository(test_db)


@pytest.fixture
def engine(repository, kpi_settings) -> KPIEngine:
    """KPI engine pinned to the fixed clock"""
    return KPIEngine(repository, kpi_settings, clock=lambda: NOW)


@pytest.fixture
def aggregator(repository, engine) -> ReportAggregator:
    """Report aggregator pinned to the fixed clock"""
    return ReportAggregator(repository, engine, clock=lambda: NOW)


@pytest.fixture
def sample_report() -> dict:
    """Nested report payload with dates, lists of objects and scalars"""
    return {
        "totalSales": 3,
        "totalRevenue": 450.0,
        "deviceTypeSales": [
            {"deviceType": "bracelet", "salesCount": 2, "revenue": 250.0},
            {"deviceType": "cane", "salesCount": 1, "revenue": 200.0},
        ],
        "monthlySalesTrend": [
            {"month": datetime(2026, 9, 1), "salesCount": 1, "revenue": 200.0},
            {"month": datetime(2026, 10, 1), "salesCount": 2, "revenue": 250.0},
        ],
    }
