"""
Billing service for Stripe integration.

Handles checkout sessions, the customer portal, and manual Stripe -> database
syncing used when webhook delivery was missed.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import FRONTEND_URL
from app.core.exceptions import BillingError
from app.db.models.subscription import Subscription
from app.db.models.user import User
from app.services.billing_events import SubscriptionSnapshot
from app.services.stripe_service import StripeGateway
from app.services.subscription_service import (
    get_subscription_by_user_id,
    upsert_subscription,
)

logger = logging.getLogger(__name__)


def get_or_create_customer(db: Session, gateway: StripeGateway, user: User) -> str:
    """
    Return the user's Stripe customer id, creating the customer if needed.

    The first time a customer is attached, a customer-only subscription row
    is written for the user.
    """
    subscription = get_subscription_by_user_id(db, user.id)
    if subscription and subscription.stripe_customer_id:
        return subscription.stripe_customer_id

    customer_id = gateway.find_customer_by_email(user.email)
    if customer_id:
        gateway.update_customer_user_id(customer_id, str(user.id))
        logger.info(f"Reusing Stripe customer: customer_id={customer_id}, user_id={user.id}")
    else:
        customer_id = gateway.create_customer(user.email, str(user.id))

    upsert_subscription(db, user_id=user.id, stripe_customer_id=customer_id)
    return customer_id


def create_checkout_session(
    db: Session,
    gateway: StripeGateway,
    user: User,
    price_id: str,
    base_url: Optional[str] = None,
) -> Dict[str, str]:
    """
    Create a Stripe checkout session for a subscription.

    Args:
        db: Database session
        gateway: Stripe gateway
        user: Authenticated user
        price_id: Stripe price to subscribe to
        base_url: Origin for the redirect URLs (defaults to FRONTEND_URL)

    Returns:
        Dictionary with the session 'id' and hosted checkout 'url'
    """
    if not price_id:
        raise BillingError("Missing priceId", status_code=400)

    base_url = (base_url or FRONTEND_URL).rstrip("/")
    customer_id = get_or_create_customer(db, gateway, user)

    return gateway.create_checkout_session(
        customer_id=customer_id,
        price_id=price_id,
        user_id=str(user.id),
        success_url=f"{base_url}/account?success=true",
        cancel_url=f"{base_url}/pricing?canceled=true",
    )


def create_portal_session(
    db: Session,
    gateway: StripeGateway,
    user: User,
    base_url: Optional[str] = None,
) -> Dict[str, str]:
    """Create a Stripe customer portal session that returns to /account."""
    subscription = get_subscription_by_user_id(db, user.id)
    if not subscription or not subscription.stripe_customer_id:
        raise BillingError("No subscription found for this user", status_code=404)

    base_url = (base_url or FRONTEND_URL).rstrip("/")
    return gateway.create_portal_session(
        customer_id=subscription.stripe_customer_id,
        return_url=f"{base_url}/account",
    )


def _apply_snapshot(db: Session, user_id: int, customer_id: str, snapshot: SubscriptionSnapshot) -> Subscription:
    return upsert_subscription(
        db,
        user_id=user_id,
        stripe_customer_id=customer_id or snapshot.customer_id,
        stripe_subscription_id=snapshot.subscription_id,
        stripe_price_id=snapshot.price_id,
        stripe_current_period_end=snapshot.current_period_end,
        status=snapshot.status,
    )


def _apply_snapshots(db: Session, user_id: int, customer_id: str, snapshots: List[SubscriptionSnapshot]) -> int:
    # Stripe lists newest first; apply oldest first so the newest wins
    for snapshot in reversed(snapshots):
        _apply_snapshot(db, user_id, customer_id, snapshot)
        logger.info(f"Synced subscription {snapshot.subscription_id} for user_id={user_id}")
    return len(snapshots)


def ensure_customer_owner(db: Session, gateway: StripeGateway, user_id: int, customer_id: Optional[str]) -> None:
    """
    Raise 403 unless the Stripe customer belongs to the user.

    A customer already stored on the user's row is theirs. With no stored
    customer, the customer's metadata userId must name the user.
    """
    existing = get_subscription_by_user_id(db, user_id)
    if existing and existing.stripe_customer_id:
        if existing.stripe_customer_id == customer_id:
            return
    elif customer_id and gateway.get_customer_user_id(customer_id) == str(user_id):
        return

    logger.warning(f"Rejected sync of customer_id={customer_id} for user_id={user_id}: not the owner")
    raise BillingError("Customer does not belong to this user", status_code=403)


def activate_latest_subscription(
    db: Session,
    gateway: StripeGateway,
    user: User,
    stripe_customer_id: str,
) -> Subscription:
    """
    Pull the newest active Stripe subscription for a customer into the user's row.

    Called by the client right after returning from checkout, in case the
    webhook has not arrived yet.
    """
    if not stripe_customer_id:
        raise BillingError("Missing stripeCustomerId", status_code=400)

    ensure_customer_owner(db, gateway, user.id, stripe_customer_id)

    snapshots = gateway.list_subscriptions(stripe_customer_id, status="active", limit=1)
    if not snapshots:
        raise BillingError("No active subscription found for this customer", status_code=404)

    return _apply_snapshot(db, user.id, stripe_customer_id, snapshots[0])


def sync_subscription_by_id(
    db: Session,
    gateway: StripeGateway,
    user_id: int,
    stripe_subscription_id: str,
    verify_owner: bool = True,
) -> Subscription:
    """
    Copy one Stripe subscription into the given user's row.

    Unless verify_owner is False (admin callers), the subscription's customer
    must belong to the user.
    """
    snapshot = gateway.retrieve_subscription(stripe_subscription_id)
    if not snapshot.subscription_id:
        raise BillingError("Subscription not found in Stripe", status_code=404)
    if verify_owner:
        ensure_customer_owner(db, gateway, user_id, snapshot.customer_id)
    return _apply_snapshot(db, user_id, snapshot.customer_id, snapshot)


def sync_customer_subscriptions(db: Session, gateway: StripeGateway, user_id: int) -> int:
    """
    Copy every Stripe subscription of the user's customer into the user's row.

    Returns:
        Number of subscriptions found in Stripe
    """
    subscription = get_subscription_by_user_id(db, user_id)
    if not subscription or not subscription.stripe_customer_id:
        raise BillingError("No Stripe customer ID found for this user", status_code=404)

    customer_id = subscription.stripe_customer_id
    snapshots = gateway.list_subscriptions(customer_id, limit=10)
    logger.info(f"Found {len(snapshots)} subscriptions for customer_id={customer_id}")
    return _apply_snapshots(db, user_id, customer_id, snapshots)


def admin_sync_by_email(db: Session, gateway: StripeGateway, email: str) -> Dict:
    """
    Sync a user's subscriptions looked up by email.

    Falls back to finding the Stripe customer by email when the user has no
    customer on record yet.
    """
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise BillingError("User not found", status_code=404)

    subscription = get_subscription_by_user_id(db, user.id)
    customer_id = subscription.stripe_customer_id if subscription else None
    if not customer_id:
        customer_id = gateway.find_customer_by_email(email)
        if not customer_id:
            raise BillingError("No Stripe customer found for this user", status_code=404)
        upsert_subscription(db, user_id=user.id, stripe_customer_id=customer_id)

    snapshots = gateway.list_subscriptions(customer_id, limit=10)
    if not snapshots:
        return {
            "message": "Customer found but no subscriptions exist",
            "userId": user.id,
            "customerId": customer_id,
        }

    count = _apply_snapshots(db, user.id, customer_id, snapshots)
    return {
        "message": "Subscriptions synced successfully",
        "userId": user.id,
        "customerId": customer_id,
        "subscriptionCount": count,
    }


def admin_sync_by_subscription_id(db: Session, gateway: StripeGateway, stripe_subscription_id: str) -> Dict:
    """Sync one Stripe subscription, finding the user by the customer's email."""
    snapshot = gateway.retrieve_subscription(stripe_subscription_id)
    if not snapshot.subscription_id:
        raise BillingError("Subscription not found in Stripe", status_code=404)

    customer_email = gateway.get_customer_email(snapshot.customer_id) if snapshot.customer_id else None
    user = db.query(User).filter(User.email == customer_email).first() if customer_email else None
    if not user:
        raise BillingError("No user found with the email associated with this subscription", status_code=404)

    _apply_snapshot(db, user.id, snapshot.customer_id, snapshot)
    return {
        "message": "Subscription synced successfully",
        "userId": user.id,
        "customerId": snapshot.customer_id,
        "subscriptionId": stripe_subscription_id,
    }
