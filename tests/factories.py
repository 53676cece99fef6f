"""
Factory functions for creating test data.

These factories create model instances with sensible defaults and commit them,
since the services under test commit on their own sessions too.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.models import FoodCache, MedicineRecord, User


# =============================================================================
# User Factory
# =============================================================================


def create_user(
    db: Session,
    email: Optional[str] = None,
    **overrides,
) -> User:
    """
    Create a test user.

    Args:
        db: Database session
        email: User email (auto-generated if not provided)
        **overrides: Additional fields to override (age, gender, ...)

    Returns:
        Created User object
    """
    if email is None:
        email = f"testuser_{secrets.token_hex(4)}@example.com"

    user = User(email=email, **overrides)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# =============================================================================
# Medicine Factory
# =============================================================================


def create_medicine_record(
    db: Session,
    user: User,
    medicine_name: str = "타이레놀",
    dosage: Optional[str] = "500mg",
    frequency: Optional[str] = "1일 3회",
    is_health_food: bool = False,
    is_active: bool = True,
    **overrides,
) -> MedicineRecord:
    record = MedicineRecord(
        user_id=user.id,
        medicine_name=medicine_name,
        dosage=dosage,
        frequency=frequency,
        is_health_food=is_health_food,
        is_active=is_active,
        **overrides,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


# =============================================================================
# Cache Factories
# =============================================================================


def create_food_cache(
    db: Session,
    food_name: str = "김치찌개",
    nutrition: Optional[dict] = None,
    created_at: Optional[datetime] = None,
    **overrides,
) -> FoodCache:
    """Create a smart-cache row directly, bypassing GeneralInfoCache.put."""
    values = {
        "general_benefit": ["발효 식품으로 유산균이 풍부합니다."],
        "general_harm": ["나트륨 함량이 높습니다."],
        "nutrition_summary": "단백질과 나트륨이 많은 찌개입니다.",
        "cooking_tips": ["국물을 적게 드세요."],
    }
    values.update(overrides)

    row = FoodCache(food_name=food_name, nutrition_json=nutrition, **values)
    if created_at is not None:
        row.created_at = created_at
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def utc_days_ago(days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)
