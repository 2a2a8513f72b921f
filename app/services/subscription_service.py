"""
Persistence for the per-user subscription row.

Every write is an upsert keyed by user_id that only touches the fields it is
given, so replaying the same Stripe data always converges to the same row.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.db.models.subscription import Subscription

logger = logging.getLogger(__name__)


def get_subscription_by_user_id(db: Session, user_id: int) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.user_id == user_id).first()


def get_subscription_by_stripe_subscription_id(db: Session, stripe_subscription_id: str) -> Optional[Subscription]:
    if not stripe_subscription_id:
        return None
    return db.query(Subscription).filter(
        Subscription.stripe_subscription_id == stripe_subscription_id
    ).first()


def get_subscription_by_customer_id(db: Session, stripe_customer_id: str) -> Optional[Subscription]:
    """Oldest row holding the customer; more than one match is logged."""
    if not stripe_customer_id:
        return None
    rows = db.query(Subscription).filter(
        Subscription.stripe_customer_id == stripe_customer_id
    ).order_by(Subscription.id).limit(2).all()
    if len(rows) > 1:
        logger.warning(
            f"Multiple subscription rows share customer_id={stripe_customer_id}, "
            f"using user_id={rows[0].user_id}"
        )
    return rows[0] if rows else None


def upsert_subscription(
    db: Session,
    user_id: int,
    stripe_customer_id: Optional[str] = None,
    stripe_subscription_id: Optional[str] = None,
    stripe_price_id: Optional[str] = None,
    stripe_current_period_end: Optional[datetime] = None,
    status: Optional[str] = None,
) -> Subscription:
    """
    Create or update the subscription row for a user.

    Fields passed as None are left untouched. The customer id is only written
    when the row has none yet; a different id for an existing customer is
    logged and ignored.

    Commits once; on failure the session is rolled back and the error is
    re-raised, so either every field is written or none is.
    """
    try:
        subscription = get_subscription_by_user_id(db, user_id)
        if not subscription:
            subscription = Subscription(user_id=user_id)
            db.add(subscription)

        if stripe_customer_id:
            if not subscription.stripe_customer_id:
                subscription.stripe_customer_id = stripe_customer_id
            elif subscription.stripe_customer_id != stripe_customer_id:
                logger.warning(
                    f"Ignoring customer change: user_id={user_id}, "
                    f"existing={subscription.stripe_customer_id}, incoming={stripe_customer_id}"
                )

        if stripe_subscription_id:
            subscription.stripe_subscription_id = stripe_subscription_id
        if stripe_price_id:
            subscription.stripe_price_id = stripe_price_id
        if stripe_current_period_end:
            subscription.stripe_current_period_end = stripe_current_period_end
        if status:
            subscription.status = status

        db.commit()
        db.refresh(subscription)
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Subscription upserted: user_id={user_id}, subscription_id={subscription.stripe_subscription_id}, "
        f"status={subscription.status}"
    )
    return subscription


def update_subscription_status(db: Session, stripe_subscription_id: str, status: str) -> Optional[Subscription]:
    """
    Set only the status of the row holding a Stripe subscription id.

    Returns None when no row matches.
    """
    subscription = get_subscription_by_stripe_subscription_id(db, stripe_subscription_id)
    if not subscription:
        return None
    try:
        subscription.status = status
        db.commit()
        db.refresh(subscription)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Subscription status updated: user_id={subscription.user_id}, subscription_id={stripe_subscription_id}, status={status}")
    return subscription
