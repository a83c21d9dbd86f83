"""
Unit Tests - Report Aggregator
"""
import pytest
from datetime import datetime

from assist_analytics.exceptions import KPIComputationError, ReportGenerationError
from assist_analytics.reports import USAGE_REPORT, ReportAggregator


class TestUsageReport:
    """Tests for the system usage report"""

    @pytest.fixture
    async def activity(self, seed):
        d1 = await seed.device(status="connected")
        d2 = await seed.device(status="disconnected")
        u1 = await seed.user()
        u2 = await seed.user()
        await seed.device_use(u1.id, d1.id, datetime(2026, 10, 2))
        await seed.device_use(u1.id, d1.id, datetime(2026, 10, 3))
        await seed.device_use(u2.id, d2.id, datetime(2026, 10, 4))
        await seed.device_use(u1.id, d2.id, datetime(2026, 1, 15))
        for day in (1, 2, 3):
            await seed.log(u1.id, datetime(2026, 10, day))
        await seed.help_request(u1.id)
        await seed.help_request(u2.id)
        return d1, d2, u1, u2

    async def test_all_time(self, aggregator, activity):
        d1, d2, u1, u2 = activity

        report = await aggregator.usage_report()

        assert report["deviceUsage"] == [
            {"deviceId": d1.id, "usageCount": 2},
            {"deviceId": d2.id, "usageCount": 2},
        ]
        assert report["activeUsersCount"] == 2
        assert report["logActivity"] == 3
        assert report["helpRequests"] == 2
        assert {(row["status"], row["count"]) for row in report["deviceStatusDistribution"]} == {
            ("connected", 1),
            ("disconnected", 1),
        }

    async def test_date_filter(self, aggregator, activity):
        d1, d2, u1, u2 = activity

        report = await aggregator.usage_report(datetime(2026, 10, 1), datetime(2026, 10, 31))

        assert report["deviceUsage"] == [
            {"deviceId": d1.id, "usageCount": 2},
            {"deviceId": d2.id, "usageCount": 1},
        ]
        assert report["activeUsersSummary"] == [
            {"userId": u1.id, "activityCount": 2},
            {"userId": u2.id, "activityCount": 1},
        ]

    async def test_empty(self, aggregator):
        report = await aggregator.usage_report()

        assert report["deviceUsage"] == []
        assert report["activeUsersCount"] == 0
        assert report["logActivity"] == 0


class TestSalesReport:
    """Tests for the sales report"""

    async def test_totals_by_type_and_month(self, aggregator, seed):
        await seed.sale(datetime(2026, 9, 12), price=200.0, device_type="cane")
        await seed.sale(datetime(2026, 10, 2), price=100.0, device_type="bracelet")
        await seed.sale(datetime(2026, 10, 9), price=150.0, device_type="bracelet")

        report = await aggregator.sales_report()

        assert report["totalSales"] == 3
        assert report["totalRevenue"] == 450
        assert sorted(report["deviceTypeSales"], key=lambda row: row["deviceType"]) == [
            {"deviceType": "bracelet", "salesCount": 2, "revenue": 250},
            {"deviceType": "cane", "salesCount": 1, "revenue": 200},
        ]
        assert report["monthlySalesTrend"] == [
            {"month": datetime(2026, 9, 1), "salesCount": 1, "revenue": 200},
            {"month": datetime(2026, 10, 1), "salesCount": 2, "revenue": 250},
        ]

    async def test_missing_price_counts_as_zero(self, aggregator, seed):
        await seed.sale(datetime(2026, 10, 2), price=None)

        report = await aggregator.sales_report()

        assert report["totalSales"] == 1
        assert report["totalRevenue"] == 0

    async def test_empty(self, aggregator):
        report = await aggregator.sales_report()

        assert report == {
            "totalSales": 0,
            "totalRevenue": 0,
            "deviceTypeSales": [],
            "monthlySalesTrend": [],
        }


class TestZoneReport:
    """Tests for the zone report"""

    @pytest.fixture
    async def zones(self, seed):
        campus = await seed.environment("Campus")
        home = await seed.environment("Home")
        await seed.zone(campus.id, datetime(2026, 9, 3), "safe")
        await seed.zone(campus.id, datetime(2026, 10, 2), "danger")
        await seed.zone(home.id, datetime(2026, 10, 5), "safe")
        return campus, home

    async def test_groupings(self, aggregator, zones):
        campus, home = zones

        report = await aggregator.zone_report()

        assert report["totalZones"] == 3
        assert report["zonesByType"] == [
            {"type": "danger", "count": 1},
            {"type": "safe", "count": 2},
        ]
        assert report["zonesCreatedOverTime"] == [
            {"month": datetime(2026, 9, 1), "count": 1},
            {"month": datetime(2026, 10, 1), "count": 2},
        ]
        assert report["zonesByEnvironment"] == [
            {"environmentId": campus.id, "environmentName": "Campus", "count": 2},
            {"environmentId": home.id, "environmentName": "Home", "count": 1},
        ]

    async def test_every_grouping_respects_dates(self, aggregator, zones):
        report = await aggregator.zone_report(datetime(2026, 10, 1), datetime(2026, 10, 31))

        assert report["totalZones"] == 2
        assert sum(row["count"] for row in report["zonesByType"]) == 2
        assert sum(row["count"] for row in report["zonesCreatedOverTime"]) == 2
        assert sum(row["count"] for row in report["zonesByEnvironment"]) == 2


class TestMonthlyActiveUsersReport:
    """Tests for the detailed MAU report"""

    @pytest.fixture
    async def users(self, seed):
        ada = await seed.user(last_login=datetime(2026, 10, 5), firstname="Ada", lastname="Lovelace")
        anonymous = await seed.user(last_login=datetime(2026, 10, 8))
        await seed.user(last_login=datetime(2026, 9, 2))
        await seed.log(ada.id, datetime(2026, 10, 5))
        await seed.log(ada.id, datetime(2026, 10, 6))
        await seed.log(anonymous.id, datetime(2026, 10, 8))
        return ada, anonymous

    async def test_monthly_details(self, aggregator, users, now):
        ada, anonymous = users

        report = await aggregator.monthly_active_users_report(months=2)

        assert report["currentMAU"] == 2
        assert report["totalRegisteredUsers"] == 3
        assert report["activationRate"] == pytest.approx(66.67)
        assert report["trend"] == 100
        assert report["averageActiveUsers"] == 1.5
        assert report["reportPeriod"] == {
            "startDate": datetime(2026, 9, 1),
            "endDate": now,
            "totalMonths": 2,
        }

        october = report["monthlyData"][0]
        assert october["month"] == "2026-10"
        assert october["monthName"] == "October 2026"
        assert [user["name"] for user in october["userDetails"]] == ["Unknown", "Ada Lovelace"]
        assert october["activityDistribution"] == [
            {"userId": ada.id, "actionCount": 2},
            {"userId": anonymous.id, "actionCount": 1},
        ]

    async def test_start_date_skips_earlier_months(self, aggregator, users):
        report = await aggregator.monthly_active_users_report(months=6, start_date=datetime(2026, 10, 1))

        assert report["reportPeriod"]["totalMonths"] == 1
        assert [month["month"] for month in report["monthlyData"]] == ["2026-10"]
        assert report["trend"] == 0

    async def test_empty(self, aggregator):
        report = await aggregator.monthly_active_users_report()

        assert report["currentMAU"] == 0
        assert report["activationRate"] == 0
        assert report["averageActiveUsers"] == 0
        assert len(report["monthlyData"]) == 6

    async def test_rejects_non_positive_months(self, aggregator):
        with pytest.raises(ValueError):
            await aggregator.monthly_active_users_report(months=0)


class TestKpiSummaryReport:
    """Tests for the combined KPI report"""

    async def test_sections(self, aggregator, seed):
        await seed.sale(datetime(2026, 10, 5), price=100.0, cost=40.0)

        report = await aggregator.kpi_summary_report()

        assert set(report) == {"revenueGrowth", "profitMargin", "securityIncidents", "monthProjection"}
        assert report["revenueGrowth"]["growth"]["monthOverMonth"] == 100
        assert report["profitMargin"]["grossProfit"] == 60


class FailingRepository:
    """Repository whose every query fails like a lost connection"""

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise ConnectionError("connection lost")
        return fail


class TestFailures:
    """Tests for error wrapping"""

    async def test_report_failure_is_wrapped(self, now):
        aggregator = ReportAggregator(FailingRepository(), clock=lambda: now)

        with pytest.raises(ReportGenerationError) as exc_info:
            await aggregator.usage_report()

        assert exc_info.value.report == USAGE_REPORT

    async def test_kpi_failure_keeps_its_type(self, now):
        aggregator = ReportAggregator(FailingRepository(), clock=lambda: now)

        with pytest.raises(KPIComputationError):
            await aggregator.kpi_summary_report()
