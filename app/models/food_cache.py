"""FoodCache model backing the smart cache of general food information."""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.sql import func

from app.database import Base


class FoodCache(Base):
    """General (user-independent) facts about a food, keyed by normalized name."""

    __tablename__ = "food_cache"

    id = Column(Integer, primary_key=True)
    food_name = Column(String(255), nullable=False, unique=True, index=True)

    nutrition_json = Column(JSON, nullable=True)  # NutritionFacts dump
    general_benefit = Column(JSON, nullable=False, default=list)
    general_harm = Column(JSON, nullable=False, default=list)
    nutrition_summary = Column(Text, nullable=False, default="")
    cooking_tips = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<FoodCache(id={self.id}, food_name={self.food_name})>"
