"""
Quota service for the free-tier daily message allowance.

Subscribed users (see app.core.entitlement) are unlimited; everyone else gets
MAX_FREE_MESSAGES_PER_DAY composes per UTC day.
"""
import logging
from typing import Dict, Optional, Tuple

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from app.core import config
from app.core.entitlement import is_subscribed
from app.db.models.usage import UsageEvent
from app.services.subscription_service import get_subscription_by_user_id

logger = logging.getLogger(__name__)

MESSAGE_FEATURE = "message_compose"


def user_is_subscribed(db: Session, user_id: int) -> bool:
    return is_subscribed(get_subscription_by_user_id(db, user_id))


def get_daily_limit(subscribed: bool) -> Optional[int]:
    """Daily limit for a user, or None for unlimited."""
    return None if subscribed else config.MAX_FREE_MESSAGES_PER_DAY


def get_day_usage(db: Session, user_id: int, feature: str, day_key: str) -> int:
    total = db.query(func.sum(UsageEvent.amount)).filter(
        and_(
            UsageEvent.user_id == user_id,
            UsageEvent.feature == feature,
            UsageEvent.day_key == day_key,
        )
    ).scalar()
    return int(total or 0)


def check_and_consume(
    db: Session,
    user_id: int,
    feature: str = MESSAGE_FEATURE,
    amount: int = 1,
) -> Tuple[bool, int, Optional[int]]:
    """
    Check the daily allowance and record usage if allowed.

    Returns:
        Tuple of (allowed, used, limit)
        - allowed: False when the request would exceed the limit (nothing recorded)
        - used: usage for today after this request (before it, when denied)
        - limit: daily limit, None for unlimited
    """
    subscribed = user_is_subscribed(db, user_id)
    limit = get_daily_limit(subscribed)
    day_key = UsageEvent.get_day_key()
    current_usage = get_day_usage(db, user_id, feature, day_key)

    if limit is not None and current_usage + amount > limit:
        return (False, current_usage, limit)

    db.add(UsageEvent(user_id=user_id, feature=feature, amount=amount, day_key=day_key))
    db.commit()

    used = current_usage + amount
    logger.info(
        f"Usage consumed: user_id={user_id}, feature={feature}, amount={amount}, "
        f"used={used}/{limit if limit is not None else 'unlimited'}"
    )
    return (True, used, limit)


def get_usage_for_response(db: Session, user_id: int, feature: str = MESSAGE_FEATURE) -> Dict:
    """Usage data formatted for GET /me/usage."""
    subscribed = user_is_subscribed(db, user_id)
    limit = get_daily_limit(subscribed)
    day_key = UsageEvent.get_day_key()
    used = get_day_usage(db, user_id, feature, day_key)

    return {
        "subscribed": subscribed,
        "day_key": day_key,
        "used": used,
        "limit": limit,
        "remaining": None if limit is None else max(0, limit - used),
    }
