from sqlalchemy import Column, String, DateTime, Integer
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid

from app.database import Base


class User(Base):
    """User model holding the profile fields used to personalise analyses."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=True)
    age = Column(Integer, nullable=True)
    gender = Column(String(16), nullable=True)  # 'male' | 'female'
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    medicine_records = relationship(
        "MedicineRecord", back_populates="user", cascade="all, delete-orphan"
    )
    food_records = relationship(
        "FoodRecord", back_populates="user", cascade="all, delete-orphan"
    )
