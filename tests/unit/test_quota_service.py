"""
Unit tests for the daily quota gate and its counter stores.
"""
from datetime import date, datetime
from zoneinfo import ZoneInfo

import httpx
import pytest

from app.models import ApiUsageCounter
from app.services.external_data_service import ExternalDataGateway
from app.services.quota_service import (
    ApiCategory,
    DatabaseUsageStore,
    InMemoryUsageStore,
    QuotaGate,
)

SEOUL = ZoneInfo("Asia/Seoul")


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_gate(limit: int = 3, clock=None, store=None) -> QuotaGate:
    return QuotaGate(
        limits={"drug_info": limit, "health_food": limit, "recipe": limit},
        store=store or InMemoryUsageStore(),
        timezone="Asia/Seoul",
        warning_ratio=0.8,
        clock=clock,
    )


class TestQuotaGate:
    def test_acquire_below_limit(self):
        gate = make_gate(limit=3)
        assert gate.try_acquire(ApiCategory.DRUG_INFO) is True

    def test_try_acquire_does_not_count(self):
        gate = make_gate(limit=1)
        gate.try_acquire("drug_info")
        gate.try_acquire("drug_info")
        assert gate.try_acquire("drug_info") is True

    def test_denied_at_ceiling(self):
        gate = make_gate(limit=3)
        gate.record_usage(ApiCategory.RECIPE, 3)

        assert gate.can_use_api(ApiCategory.RECIPE) is False
        assert gate.try_acquire("recipe") is False

    def test_categories_are_independent(self):
        gate = make_gate(limit=1)
        gate.record_usage("drug_info")

        assert gate.try_acquire("drug_info") is False
        assert gate.try_acquire("health_food") is True

    def test_unknown_category_is_unlimited(self):
        gate = make_gate(limit=1)
        assert gate.try_acquire("guideline") is True

    def test_warning_threshold_logged(self, caplog):
        gate = make_gate(limit=10)
        gate.record_usage("drug_info", 8)

        with caplog.at_level("WARNING"):
            assert gate.try_acquire("drug_info") is True

        assert "above 80%" in caplog.text

    def test_reset_at_local_midnight(self):
        clock = FakeClock(datetime(2026, 3, 1, 23, 59, tzinfo=SEOUL))
        gate = make_gate(limit=2, clock=clock)
        gate.record_usage("recipe", 2)
        assert gate.try_acquire("recipe") is False

        clock.now = datetime(2026, 3, 2, 0, 0, 1, tzinfo=SEOUL)

        assert gate.try_acquire("recipe") is True
        assert gate.get_usage_stats()["recipe"]["count"] == 0

    def test_day_follows_configured_timezone(self):
        # 15:30 UTC is already the next day in Seoul
        clock = FakeClock(datetime(2026, 3, 1, 15, 30, tzinfo=ZoneInfo("UTC")))
        gate = make_gate(clock=clock)
        assert gate.today() == date(2026, 3, 2)

    def test_usage_stats(self):
        clock = FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=SEOUL))
        gate = make_gate(limit=4, clock=clock)
        gate.record_usage("health_food")

        stats = gate.get_usage_stats()

        assert stats["health_food"] == {"count": 1, "limit": 4, "usage_ratio": 0.25, "date": "2026-03-01"}
        assert stats["drug_info"]["count"] == 0

    def test_manual_reset(self):
        gate = make_gate(limit=1)
        gate.record_usage("drug_info")
        gate.record_usage("recipe")

        gate.reset("drug_info")
        assert gate.try_acquire("drug_info") is True
        assert gate.try_acquire("recipe") is False

        gate.reset()
        assert gate.try_acquire("recipe") is True


class TestDatabaseUsageStore:
    def test_shared_counter(self, db, session_factory):
        day = date(2026, 3, 1)
        first = DatabaseUsageStore(session_factory)
        second = DatabaseUsageStore(session_factory)

        first.add("drug_info", day, 2)
        assert second.add("drug_info", day, 1) == 3
        assert first.get("drug_info", day) == 3

        row = db.query(ApiUsageCounter).filter(ApiUsageCounter.category == "drug_info").one()
        assert row.count == 3

    def test_days_are_separate_rows(self, session_factory):
        store = DatabaseUsageStore(session_factory)
        store.add("recipe", date(2026, 3, 1), 5)

        assert store.get("recipe", date(2026, 3, 2)) == 0

    def test_reset(self, session_factory):
        store = DatabaseUsageStore(session_factory)
        day = date(2026, 3, 1)
        store.add("recipe", day, 5)

        store.reset("recipe", day)

        assert store.get("recipe", day) == 0

    def test_gate_with_database_store(self, session_factory):
        clock = FakeClock(datetime(2026, 3, 1, 9, 0, tzinfo=SEOUL))
        gate = make_gate(limit=2, clock=clock, store=DatabaseUsageStore(session_factory))

        gate.record_usage("drug_info", 2)

        assert gate.try_acquire("drug_info") is False


class TestQuotaExhaustion:
    """Exhausted quota means synthetic data and no network call."""

    @pytest.mark.asyncio
    async def test_exhausted_drug_quota_uses_synthetic_data(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={})

        gate = make_gate(limit=5)
        gate.record_usage("drug_info", 5)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            gateway = ExternalDataGateway(quota=gate, client=client, service_key="key", recipe_key="key")

            facts = await gateway.get_medicine_info("타이레놀")

        assert requests == []
        assert len(facts) == 1
        assert facts[0].is_synthetic is True
        assert facts[0].item_name == "타이레놀"

    @pytest.mark.asyncio
    async def test_exhausted_recipe_quota_uses_synthetic_recipes(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={})

        gate = make_gate(limit=5)
        gate.record_usage("recipe", 5)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            gateway = ExternalDataGateway(quota=gate, client=client, service_key="key", recipe_key="key")

            recipes = await gateway.get_recipe_info("김치찌개")

        assert requests == []
        assert [recipe.name for recipe in recipes] == ["김치찌개"]
        assert recipes[0].is_synthetic is True
