"""
Stripe webhook reconciliation.

Maps allow-listed event types to a single upsert of the user's subscription
row. Events outside the allow-list are acknowledged without side effects.
"""
import logging
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import UserAssociationError
from app.db.models.subscription import Subscription
from app.db.models.user import User
from app.services.billing_events import BillingEvent, EventKind
from app.services.billing_invoice_handlers import (
    handle_invoice_payment_failed,
    handle_invoice_payment_succeeded,
)
from app.services.stripe_service import StripeGateway
from app.services.subscription_service import (
    get_subscription_by_customer_id,
    get_subscription_by_stripe_subscription_id,
    update_subscription_status,
    upsert_subscription,
)

logger = logging.getLogger(__name__)

Handler = Callable[[BillingEvent, Session, StripeGateway], Optional[Subscription]]


def _local_user_id(db: Session, user_id: str) -> int:
    """Turn a metadata user id into an existing local user id."""
    try:
        local_id = int(user_id)
    except (TypeError, ValueError):
        raise UserAssociationError(f"Malformed user id in metadata: {user_id!r}", code="user_not_found") from None

    if not db.query(User.id).filter(User.id == local_id).first():
        raise UserAssociationError(f"User not found: user_id={local_id}", code="user_not_found")
    return local_id


def resolve_user_id(event: BillingEvent, db: Session, gateway: StripeGateway) -> int:
    """
    Find the local user a subscription event belongs to.

    Order: event metadata, Stripe customer metadata, then an existing row
    matched by subscription id and finally by customer id.
    """
    snapshot_user = event.subscription.user_id if event.subscription else None
    user_id = event.user_id or snapshot_user
    if user_id:
        return _local_user_id(db, user_id)

    if event.customer_id:
        customer_user_id = gateway.get_customer_user_id(event.customer_id)
        if customer_user_id:
            return _local_user_id(db, customer_user_id)

    existing = (
        get_subscription_by_stripe_subscription_id(db, event.subscription_id)
        or get_subscription_by_customer_id(db, event.customer_id)
    )
    if existing:
        return existing.user_id

    raise UserAssociationError(
        f"No user found for subscription_id={event.subscription_id}, customer_id={event.customer_id}",
        code="user_not_found",
    )


def handle_checkout_session_completed(
    event: BillingEvent, db: Session, gateway: StripeGateway
) -> Optional[Subscription]:
    """
    Handle checkout.session.completed webhook event.

    Only subscription-mode sessions are reconciled; the user must be named in
    the session metadata.
    """
    if event.mode != "subscription" or not event.subscription_id or not event.customer_id:
        logger.info(f"Checkout session is not a subscription checkout (mode={event.mode}), skipping")
        return None

    if not event.user_id:
        raise UserAssociationError("No user ID found in checkout session metadata", code="user_not_found")
    user_id = _local_user_id(db, event.user_id)

    snapshot = gateway.retrieve_subscription(event.subscription_id)
    subscription = upsert_subscription(
        db,
        user_id=user_id,
        stripe_customer_id=event.customer_id,
        stripe_subscription_id=snapshot.subscription_id or event.subscription_id,
        stripe_price_id=snapshot.price_id,
        stripe_current_period_end=snapshot.current_period_end,
        status=snapshot.status,
    )

    logger.info(f"Checkout completed: user_id={user_id}, subscription_id={subscription.stripe_subscription_id}")
    return subscription


def handle_subscription_changed(
    event: BillingEvent, db: Session, gateway: StripeGateway
) -> Optional[Subscription]:
    """Handle customer.subscription.created and customer.subscription.updated."""
    snapshot = event.subscription
    user_id = resolve_user_id(event, db, gateway)

    subscription = upsert_subscription(
        db,
        user_id=user_id,
        stripe_customer_id=snapshot.customer_id,
        stripe_subscription_id=snapshot.subscription_id,
        stripe_price_id=snapshot.price_id,
        stripe_current_period_end=snapshot.current_period_end,
        status=snapshot.status,
    )

    logger.info(
        f"Subscription {event.type.rsplit('.', 1)[-1]}: user_id={user_id}, "
        f"subscription_id={snapshot.subscription_id}, status={snapshot.status}"
    )
    return subscription


def _status_handler(status: str) -> Handler:
    def handler(event: BillingEvent, db: Session, gateway: StripeGateway) -> Optional[Subscription]:
        subscription = update_subscription_status(db, event.subscription_id, status)
        if not subscription:
            raise UserAssociationError(
                f"Subscription not found for subscription_id={event.subscription_id}",
                code="user_not_found",
            )
        return subscription

    handler.__name__ = f"handle_subscription_{status}"
    return handler


EVENT_HANDLERS: Dict[EventKind, Handler] = {
    EventKind.CHECKOUT_COMPLETED: handle_checkout_session_completed,
    EventKind.SUBSCRIPTION_CREATED: handle_subscription_changed,
    EventKind.SUBSCRIPTION_UPDATED: handle_subscription_changed,
    EventKind.SUBSCRIPTION_DELETED: _status_handler("canceled"),
    EventKind.SUBSCRIPTION_PAUSED: _status_handler("paused"),
    EventKind.SUBSCRIPTION_RESUMED: _status_handler("active"),
    EventKind.INVOICE_PAYMENT_SUCCEEDED: handle_invoice_payment_succeeded,
    EventKind.INVOICE_PAYMENT_FAILED: handle_invoice_payment_failed,
}


def reconcile_event(event: BillingEvent, db: Session, gateway: StripeGateway) -> Optional[Subscription]:
    """
    Apply a verified billing event to the subscription table.

    Returns the written row, or None when the event was acknowledged
    without changes.

    Raises:
        UserAssociationError: The event cannot be tied to a user
        Exception: Anything else (storage, Stripe API) is left to propagate
    """
    if not event.is_relevant:
        logger.info(f"Skipping irrelevant event: {event.type}")
        return None

    logger.info(f"Processing webhook event: type={event.type}, id={event.id}, object={event.raw_object_type}")
    return EVENT_HANDLERS[event.kind](event, db, gateway)
