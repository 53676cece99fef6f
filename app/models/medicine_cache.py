"""MedicineSearchCache model for keyword-keyed medicine lookups."""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func

from app.database import Base


class MedicineSearchCache(Base):
    """Caches the product list returned for one medicine search keyword."""

    __tablename__ = "medicine_cache"

    id = Column(Integer, primary_key=True)
    keyword = Column(String(255), nullable=False, unique=True, index=True)
    items = Column(JSON, nullable=False, default=list)  # list of MedicineFacts dumps
    source = Column(String(100), nullable=True)  # 'approval', 'easy_drug', 'synthetic', ...

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<MedicineSearchCache(keyword={self.keyword}, items={len(self.items or [])})>"
