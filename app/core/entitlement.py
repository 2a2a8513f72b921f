"""
Entitlement predicate shared by the API and the client subscription cache.

Status is authoritative. The paid-through date is only consulted when the
record carries no status at all.
"""
from datetime import datetime, timezone
from typing import Any, Optional

ENTITLED_STATUSES = frozenset({"active", "trialing"})


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_subscribed(record: Optional[Any], now: Optional[datetime] = None) -> bool:
    """
    Return True if the subscription record grants paid access.

    Works with anything exposing ``stripe_subscription_id``, ``status`` and
    ``stripe_current_period_end`` attributes (ORM rows, API schemas).
    """
    if record is None:
        return False
    if not getattr(record, "stripe_subscription_id", None):
        return False

    status = getattr(record, "status", None)
    if status:
        return status in ENTITLED_STATUSES

    period_end = getattr(record, "stripe_current_period_end", None)
    if period_end is None:
        return False
    now = now or datetime.now(timezone.utc)
    return _as_utc(period_end) > _as_utc(now)
