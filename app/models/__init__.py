"""
Database models for the food suitability service.

Import all models here so Alembic can detect them for migrations.
"""

from app.database import Base
from app.models.user import User
from app.models.medicine_record import MedicineRecord
from app.models.food_record import FoodRecord
from app.models.food_cache import FoodCache
from app.models.medicine_cache import MedicineSearchCache
from app.models.api_usage_counter import ApiUsageCounter

__all__ = [
    "Base",
    "User",
    "MedicineRecord",
    "FoodRecord",
    "FoodCache",
    "MedicineSearchCache",
    "ApiUsageCounter",
]
