"""
Smart cache of general (user-independent) food information.

One row per normalized food name. A hit means the LLM general-info
generation is skipped for that food; the per-request medical analysis still
runs. Keys are expected to be normalized already (see ``normalize_food_name``).

Entries never expire unless ``general_info_cache_ttl_days`` is set, in which
case older rows are treated as a miss and purged.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models import FoodCache
from app.services.data_schemas import GeneralFoodInfo, NutritionFacts

logger = logging.getLogger(__name__)


def normalize_food_name(name: str) -> str:
    """Trim and collapse internal whitespace. Applied at the HTTP/CLI boundary."""
    return re.sub(r"\s+", " ", name or "").strip()


class GeneralInfoCache:
    """Durable GeneralFoodInfo store keyed by food name."""

    def __init__(self, db: Session, ttl_days: Optional[int] = None):
        self.db = db
        self.ttl_days = ttl_days if ttl_days is not None else settings.general_info_cache_ttl_days

    def _is_expired(self, row: FoodCache) -> bool:
        if not self.ttl_days or row.created_at is None:
            return False
        created_at = row.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return created_at < datetime.now(timezone.utc) - timedelta(days=self.ttl_days)

    def _purge(self, row: FoodCache, reason: str) -> None:
        logger.info("Purging food cache entry %r (%s)", row.food_name, reason)
        self.db.delete(row)
        self.db.commit()

    def get(self, food_name: str) -> Optional[GeneralFoodInfo]:
        """Exact-key lookup. Returns None on a miss."""
        try:
            row = self.db.query(FoodCache).filter(FoodCache.food_name == food_name).first()
            if row is None:
                logger.info("Food cache miss: %s", food_name)
                return None

            if not (row.food_name or "").strip():
                self._purge(row, "blank food name")
                return None

            if self._is_expired(row):
                self._purge(row, "expired")
                return None

            nutrition = None
            if row.nutrition_json:
                try:
                    nutrition = NutritionFacts.model_validate(row.nutrition_json)
                except ValidationError:
                    logger.warning("Discarding unreadable cached nutrition for %s", food_name)

            logger.info("Food cache hit: %s", food_name)
            return GeneralFoodInfo(
                food_name=row.food_name,
                nutrition_facts=nutrition,
                general_benefit=list(row.general_benefit or []),
                general_harm=list(row.general_harm or []),
                nutrition_summary=row.nutrition_summary or "",
                cooking_tips=list(row.cooking_tips or []),
                created_at=row.created_at,
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Food cache read failed for %s", food_name)
            return None

    def put(self, food_name: str, info: GeneralFoodInfo) -> bool:
        """
        Insert or overwrite the entry for food_name (last write wins).

        Returns:
            True if the entry was stored
        """
        if not food_name.strip():
            logger.warning("Refusing to cache general info under a blank food name")
            return False

        values = {
            "nutrition_json": info.nutrition_facts.model_dump(mode="json") if info.nutrition_facts else None,
            "general_benefit": list(info.general_benefit),
            "general_harm": list(info.general_harm),
            "nutrition_summary": info.nutrition_summary,
            "cooking_tips": list(info.cooking_tips),
        }

        try:
            row = self.db.query(FoodCache).filter(FoodCache.food_name == food_name).first()
            if row is None:
                try:
                    row = FoodCache(food_name=food_name, **values)
                    self.db.add(row)
                    self.db.flush()
                except IntegrityError:
                    # Concurrent insert of the same food; update that row instead
                    self.db.rollback()
                    row = self.db.query(FoodCache).filter(FoodCache.food_name == food_name).first()
                    if row is None:
                        return False
            for key, value in values.items():
                setattr(row, key, value)
            # An overwrite restarts the TTL
            row.created_at = datetime.now(timezone.utc)
            self.db.commit()
            logger.info("Food cache stored: %s", food_name)
            return True
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Food cache write failed for %s", food_name)
            return False

    def delete(self, food_name: str) -> bool:
        try:
            deleted = self.db.query(FoodCache).filter(FoodCache.food_name == food_name).delete()
            self.db.commit()
            return bool(deleted)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Food cache delete failed for %s", food_name)
            return False

    def clear(self) -> int:
        try:
            deleted = self.db.query(FoodCache).delete()
            self.db.commit()
            return deleted
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Food cache clear failed")
            return 0
