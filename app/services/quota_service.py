"""
Daily quota tracking for the metered public data services.

Each service category has a daily call ceiling. Callers ask ``try_acquire``
before making a real request and fall back to synthetic data when it returns
False; successful calls are counted with ``record_usage``. Counters reset on
the first access after local midnight in the configured timezone.

Counts live in a pluggable store: process memory by default, or the
``api_usage_counters`` table so several instances share one counter.
Increments are not locked, so concurrent callers can overshoot the ceiling
slightly; the configured limits already leave headroom for that.
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models import ApiUsageCounter

logger = logging.getLogger(__name__)


class ApiCategory(str, Enum):
    DRUG_INFO = "drug_info"
    HEALTH_FOOD = "health_food"
    RECIPE = "recipe"


def default_limits() -> dict[str, int]:
    return {
        ApiCategory.DRUG_INFO.value: settings.drug_api_daily_limit,
        ApiCategory.HEALTH_FOOD.value: settings.health_food_api_daily_limit,
        ApiCategory.RECIPE.value: settings.recipe_api_daily_limit,
    }


# =============================================================================
# COUNTER STORES
# =============================================================================


class InMemoryUsageStore:
    """Process-local counters; only the current day is kept per category."""

    def __init__(self):
        self._counts: dict[str, tuple[date, int]] = {}

    def get(self, category: str, day: date) -> int:
        stored = self._counts.get(category)
        if stored is None:
            return 0
        stored_day, count = stored
        if stored_day != day:
            logger.info("Daily counter reset for %s (%d -> 0)", category, count)
            self._counts[category] = (day, 0)
            return 0
        return count

    def add(self, category: str, day: date, n: int) -> int:
        count = self.get(category, day) + n
        self._counts[category] = (day, count)
        return count

    def reset(self, category: str, day: date) -> None:
        self._counts[category] = (day, 0)

    def categories(self) -> list[str]:
        return list(self._counts)


class DatabaseUsageStore:
    """Counters in the api_usage_counters table, one row per category and day."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, category: str, day: date) -> int:
        db = self.session_factory()
        try:
            row = (
                db.query(ApiUsageCounter)
                .filter(ApiUsageCounter.category == category, ApiUsageCounter.usage_date == day)
                .first()
            )
            return row.count if row else 0
        except SQLAlchemyError:
            logger.exception("Failed to read usage counter for %s", category)
            return 0
        finally:
            db.close()

    def add(self, category: str, day: date, n: int) -> int:
        db = self.session_factory()
        try:
            row = (
                db.query(ApiUsageCounter)
                .filter(ApiUsageCounter.category == category, ApiUsageCounter.usage_date == day)
                .first()
            )
            if row is None:
                row = ApiUsageCounter(category=category, usage_date=day, count=0)
                db.add(row)
            row.count = (row.count or 0) + n
            db.commit()
            return row.count
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to record usage for %s", category)
            return 0
        finally:
            db.close()

    def reset(self, category: str, day: date) -> None:
        db = self.session_factory()
        try:
            db.query(ApiUsageCounter).filter(
                ApiUsageCounter.category == category, ApiUsageCounter.usage_date == day
            ).delete()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to reset usage counter for %s", category)
        finally:
            db.close()


# =============================================================================
# QUOTA GATE
# =============================================================================


class QuotaGate:
    """Daily call ceilings for the public data services."""

    def __init__(
        self,
        limits: Optional[dict[str, int]] = None,
        store=None,
        timezone: Optional[str] = None,
        warning_ratio: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.limits = dict(limits) if limits is not None else default_limits()
        self.store = store if store is not None else InMemoryUsageStore()
        self.timezone = ZoneInfo(timezone or settings.quota_timezone)
        self.warning_ratio = warning_ratio if warning_ratio is not None else settings.quota_warning_ratio
        self._clock = clock

    def today(self) -> date:
        now = self._clock() if self._clock else datetime.now(self.timezone)
        if now.tzinfo is not None:
            now = now.astimezone(self.timezone)
        return now.date()

    def try_acquire(self, category: str) -> bool:
        """
        Whether a real call to the category's service may be made now.

        Returns False once today's count has reached the ceiling; the caller
        must then use synthetic data instead of calling the service.
        """
        category = _category_value(category)
        limit = self.limits.get(category)
        if limit is None:
            return True

        current = self.store.get(category, self.today())

        if current >= limit:
            logger.warning(
                "Daily limit reached for %s (%d/%d); using synthetic fallback",
                category,
                current,
                limit,
            )
            return False

        if current >= limit * self.warning_ratio:
            logger.warning("Usage for %s above %d%% (%d/%d)", category, int(self.warning_ratio * 100), current, limit)

        return True

    # Alias kept for call sites that read better as a question
    can_use_api = try_acquire

    def record_usage(self, category: str, n: int = 1) -> int:
        """Count n successful calls; returns today's total."""
        category = _category_value(category)
        current = self.store.add(category, self.today(), n)
        limit = self.limits.get(category)
        if limit:
            logger.info("%s usage: %d/%d (%d%%)", category, current, limit, round(current / limit * 100))
        return current

    def get_usage_stats(self) -> dict:
        day = self.today()
        stats = {}
        for category, limit in self.limits.items():
            count = self.store.get(category, day)
            stats[category] = {
                "count": count,
                "limit": limit,
                "usage_ratio": round(count / limit, 4) if limit else 0.0,
                "date": day.isoformat(),
            }
        return stats

    def reset(self, category: Optional[str] = None) -> None:
        day = self.today()
        categories = [_category_value(category)] if category else list(self.limits)
        for name in categories:
            self.store.reset(name, day)
            logger.info("Usage counter for %s reset manually", name)


def _category_value(category) -> str:
    return category.value if isinstance(category, ApiCategory) else str(category)


_quota_gate: Optional[QuotaGate] = None


def get_quota_gate() -> QuotaGate:
    """Process-wide gate built from settings."""
    global _quota_gate
    if _quota_gate is None:
        store = None
        if settings.quota_backend == "database":
            from app.database import SessionLocal

            store = DatabaseUsageStore(SessionLocal)
        _quota_gate = QuotaGate(store=store)
    return _quota_gate
