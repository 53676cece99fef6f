"""FoodRecord model for persisted suitability analyses."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.database import Base


class FoodRecord(Base):
    """Stores one analysis result together with the request that produced it."""

    __tablename__ = "food_records"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    food_name = Column(String(255), nullable=False)
    source = Column(String(16), nullable=False, default="text")  # 'text' | 'image'
    score = Column(Integer, nullable=False)
    diseases = Column(JSON, nullable=False, default=list)

    analysis_json = Column(JSON, nullable=True)  # MedicalAnalysisOutput dump
    summary_text = Column(Text, nullable=True)  # User-facing summary

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Relationships
    user = relationship("User", back_populates="food_records")

    def __repr__(self):
        return f"<FoodRecord(id={self.id}, food={self.food_name}, score={self.score})>"
