"""ApiUsageCounter model for shared daily quota counters."""
from sqlalchemy import Column, Integer, String, Date, UniqueConstraint

from app.database import Base


class ApiUsageCounter(Base):
    """Number of calls made to one public data service on one local day."""

    __tablename__ = "api_usage_counters"

    id = Column(Integer, primary_key=True)
    category = Column(String(50), nullable=False, index=True)  # 'drug_info', 'recipe', ...
    usage_date = Column(Date, nullable=False)
    count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("category", "usage_date", name="uq_api_usage_category_date"),
    )

    def __repr__(self):
        return f"<ApiUsageCounter(category={self.category}, date={self.usage_date}, count={self.count})>"
