"""
Invoice event handlers for Stripe webhooks.

Handles invoice.payment_succeeded and invoice.payment_failed events.
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session

from app.core.exceptions import UserAssociationError
from app.db.models.subscription import Subscription
from app.services.billing_events import BillingEvent
from app.services.stripe_service import StripeGateway
from app.services.subscription_service import (
    get_subscription_by_customer_id,
    get_subscription_by_stripe_subscription_id,
    update_subscription_status,
    upsert_subscription,
)

logger = logging.getLogger(__name__)

RENEWAL_BILLING_REASON = "subscription_cycle"


def handle_invoice_payment_succeeded(
    event: BillingEvent, db: Session, gateway: StripeGateway
) -> Optional[Subscription]:
    """
    Handle invoice.payment_succeeded webhook event.

    Only renewals refresh the row: the first invoice of a subscription is
    already covered by checkout.session.completed and subscription.created.
    """
    if not event.subscription_id or not event.customer_id:
        logger.info("invoice.payment_succeeded: not a subscription invoice, skipping")
        return None

    if event.billing_reason != RENEWAL_BILLING_REASON:
        logger.info(f"invoice.payment_succeeded: billing_reason={event.billing_reason}, skipping")
        return None

    existing = (
        get_subscription_by_stripe_subscription_id(db, event.subscription_id)
        or get_subscription_by_customer_id(db, event.customer_id)
    )
    if not existing:
        raise UserAssociationError(
            f"No subscription row for renewal of subscription_id={event.subscription_id}",
            code="user_not_found",
        )

    snapshot = gateway.retrieve_subscription(event.subscription_id)
    subscription = upsert_subscription(
        db,
        user_id=existing.user_id,
        stripe_customer_id=event.customer_id,
        stripe_subscription_id=event.subscription_id,
        stripe_price_id=snapshot.price_id,
        stripe_current_period_end=snapshot.current_period_end,
        status="active",
    )

    logger.info(f"Subscription renewed: user_id={subscription.user_id}, subscription_id={event.subscription_id}")
    return subscription


def handle_invoice_payment_failed(
    event: BillingEvent, db: Session, gateway: StripeGateway
) -> Optional[Subscription]:
    """
    Handle invoice.payment_failed webhook event.

    Updates subscription status to past_due.
    """
    if not event.subscription_id:
        logger.info("invoice.payment_failed: no subscription ID in invoice, skipping")
        return None

    subscription = update_subscription_status(db, event.subscription_id, "past_due")
    if not subscription:
        raise UserAssociationError(
            f"Subscription not found for subscription_id={event.subscription_id}",
            code="user_not_found",
        )

    logger.warning(f"Invoice payment failed: user_id={subscription.user_id}, subscription_id={event.subscription_id}")
    return subscription
