from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from datetime import datetime, timezone
from app.db.base import Base


class UsageEvent(Base):
    """
    Usage event model for tracking metered features.

    Tracks per-user, per-feature usage with day_key for fast daily aggregation.
    """
    __tablename__ = "usage_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    feature = Column(String, nullable=False, index=True)  # "message_compose"
    amount = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    day_key = Column(String(10), nullable=False, index=True)  # "YYYY-MM-DD" (UTC)

    __table_args__ = (
        Index('idx_user_feature_day', 'user_id', 'feature', 'day_key'),
    )

    @staticmethod
    def get_day_key(date: datetime = None) -> str:
        """Generate day_key string in YYYY-MM-DD format."""
        if date is None:
            date = datetime.now(timezone.utc)
        return date.strftime("%Y-%m-%d")
