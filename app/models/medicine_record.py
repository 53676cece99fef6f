"""MedicineRecord model for a user's registered medicines and supplements."""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.database import Base


class MedicineRecord(Base):
    """A medicine or health-functional food the user currently takes."""

    __tablename__ = "medicine_records"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    medicine_name = Column(String(255), nullable=False)
    dosage = Column(String(100), nullable=True)
    frequency = Column(String(100), nullable=True)
    is_health_food = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="medicine_records")

    def __repr__(self):
        return f"<MedicineRecord(id={self.id}, name={self.medicine_name}, active={self.is_active})>"
