"""
Database models module.

Imports every model so it is registered with SQLAlchemy's Base.metadata
before table creation and migrations.
"""
from app.db.models.user import User
from app.db.models.subscription import Subscription
from app.db.models.usage import UsageEvent

__all__ = [
    "User",
    "Subscription",
    "UsageEvent",
]
