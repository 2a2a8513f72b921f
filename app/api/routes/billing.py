"""
Billing endpoints: checkout, customer portal, products, and manual sync.
"""
import logging
import secrets
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.core import config
from app.core.auth_dependency import get_current_user_obj, get_db
from app.core.exceptions import BillingError, ConfigurationError
from app.core.logging_config import sanitize_log_data
from app.db.models.user import User
from app.schemas.billing import (
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    CreatePortalSessionResponse,
    SyncSubscriptionRequest,
    SyncSubscriptionResponse,
    UpdateSubscriptionRequest,
)
from app.schemas.subscription import to_client_dict
from app.services import billing_service
from app.services.stripe_service import StripeGateway, get_stripe_gateway
from app.services.subscription_service import get_subscription_by_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["Billing"])


def _redirect_base(request: Request) -> str:
    """Use the caller's origin for redirects only when it is a known frontend."""
    origin = request.headers.get("origin")
    if origin and origin in config.CORS_ORIGINS:
        return origin
    return config.FRONTEND_URL


def _raise_http(error: Exception, action: str):
    if isinstance(error, BillingError):
        raise HTTPException(status_code=error.status_code, detail=error.message)
    logger.error(f"Error {action}: {error}", exc_info=True)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error {action}",
    )


@router.post("/checkout", response_model=CreateCheckoutSessionResponse)
def create_checkout(
    body: CreateCheckoutSessionRequest,
    request: Request,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """Start a hosted Stripe Checkout for the given price."""
    try:
        session = billing_service.create_checkout_session(
            db, gateway, user, body.priceId, base_url=_redirect_base(request)
        )
    except (BillingError, ConfigurationError, stripe.StripeError) as e:
        _raise_http(e, "creating checkout session")

    return CreateCheckoutSessionResponse(sessionId=session["id"], url=session.get("url"))


@router.post("/portal", response_model=CreatePortalSessionResponse)
def create_portal(
    request: Request,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """Open the Stripe customer portal for the caller's customer."""
    try:
        session = billing_service.create_portal_session(db, gateway, user, base_url=_redirect_base(request))
    except (BillingError, ConfigurationError, stripe.StripeError) as e:
        _raise_http(e, "creating portal session")

    return CreatePortalSessionResponse(url=session["url"])


@router.get("/products")
def list_products(gateway: StripeGateway = Depends(get_stripe_gateway)):
    """Active products with their default prices, for the pricing page."""
    try:
        return gateway.list_products()
    except (ConfigurationError, stripe.StripeError) as e:
        _raise_http(e, "fetching products")


@router.post("/update-subscription")
def update_subscription(
    body: UpdateSubscriptionRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """Activate the caller's newest Stripe subscription right after checkout."""
    try:
        subscription = billing_service.activate_latest_subscription(db, gateway, user, body.stripeCustomerId)
    except (BillingError, ConfigurationError, stripe.StripeError) as e:
        _raise_http(e, "updating subscription")

    return to_client_dict(subscription)


@router.post("/sync-subscription", response_model=SyncSubscriptionResponse)
def sync_subscription(
    body: SyncSubscriptionRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """
    Re-read subscription data from Stripe into the database.

    Fixes rows whose webhook events were never delivered. Only admins may
    target another user.
    """
    target_user_id = body.userId or user.id
    if target_user_id != user.id and user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to sync subscriptions for other users",
        )

    logger.info(f"Syncing subscription for user_id={target_user_id}, requested_by={user.id}")
    try:
        if body.stripeSubscriptionId:
            billing_service.sync_subscription_by_id(
                db, gateway, target_user_id, body.stripeSubscriptionId,
                verify_owner=user.role != "admin",
            )
        else:
            count = billing_service.sync_customer_subscriptions(db, gateway, target_user_id)
            if count == 0:
                return SyncSubscriptionResponse(message="No subscriptions found for this customer")
    except (BillingError, ConfigurationError, stripe.StripeError) as e:
        _raise_http(e, "syncing subscription")

    subscription = get_subscription_by_user_id(db, target_user_id)
    return SyncSubscriptionResponse(
        message="Subscription synced successfully",
        subscription=to_client_dict(subscription),
    )


@router.get("/sync-subscription")
def admin_sync_subscription(
    email: Optional[str] = Query(None),
    subscription_id: Optional[str] = Query(None),
    api_key: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """Admin-only sync by user email or Stripe subscription id."""
    logger.info(f"Admin sync requested: {sanitize_log_data({'email': email, 'subscription_id': subscription_id, 'api_key': api_key})}")
    if not config.ADMIN_API_KEY or not api_key or not secrets.compare_digest(api_key, config.ADMIN_API_KEY):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    if not email and not subscription_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either email or subscription_id is required",
        )

    try:
        if email:
            return billing_service.admin_sync_by_email(db, gateway, email.strip().lower())
        return billing_service.admin_sync_by_subscription_id(db, gateway, subscription_id)
    except (BillingError, ConfigurationError, stripe.StripeError) as e:
        _raise_http(e, "syncing subscription")
