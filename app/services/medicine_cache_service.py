"""Keyword-keyed cache of medicine and health-food lookups."""

import logging
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import MedicineSearchCache
from app.services.data_schemas import MedicineFacts

logger = logging.getLogger(__name__)


class MedicineCacheService:
    """
    Stores the product list found for a search keyword.

    Database failures are logged and degrade to a miss (reads) or a no-op
    (writes); they never reach the caller.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, keyword: str) -> List[MedicineFacts]:
        """
        Cached products for an exact keyword.

        Entries with a blank item name are discarded; if nothing valid remains
        the row is purged and the lookup is a miss.
        """
        try:
            row = self.db.query(MedicineSearchCache).filter(MedicineSearchCache.keyword == keyword).first()
            if row is None:
                return []

            facts = []
            for item in row.items or []:
                try:
                    record = MedicineFacts.model_validate(item)
                except ValidationError:
                    continue
                if record.item_name.strip():
                    facts.append(record)

            if not facts:
                logger.info("Purging invalid medicine cache entry for %s", keyword)
                self.db.delete(row)
                self.db.commit()
                return []

            logger.info("Medicine cache hit: %s (%d items)", keyword, len(facts))
            return facts
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Medicine cache read failed for %s", keyword)
            return []

    def put(self, keyword: str, facts: List[MedicineFacts], source: Optional[str] = None) -> None:
        """Insert or replace the products cached for keyword."""
        if not facts:
            return

        items = [fact.model_dump() for fact in facts]
        try:
            row = self.db.query(MedicineSearchCache).filter(MedicineSearchCache.keyword == keyword).first()
            if row is None:
                try:
                    row = MedicineSearchCache(keyword=keyword, items=items, source=source)
                    self.db.add(row)
                    self.db.flush()
                except IntegrityError:
                    # Another request stored it first; overwrite theirs
                    self.db.rollback()
                    row = self.db.query(MedicineSearchCache).filter(MedicineSearchCache.keyword == keyword).first()
                    if row is None:
                        return
            row.items = items
            row.source = source
            self.db.commit()
            logger.info("Medicine cache stored: %s (%d items, %s)", keyword, len(items), source)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Medicine cache write failed for %s", keyword)

    def delete(self, keyword: str) -> bool:
        try:
            deleted = self.db.query(MedicineSearchCache).filter(MedicineSearchCache.keyword == keyword).delete()
            self.db.commit()
            return bool(deleted)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Medicine cache delete failed for %s", keyword)
            return False

    def clear(self) -> int:
        try:
            deleted = self.db.query(MedicineSearchCache).delete()
            self.db.commit()
            return deleted
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Medicine cache clear failed")
            return 0
