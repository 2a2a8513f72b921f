"""
Stripe webhook endpoint.

400 for verification and user-association failures (Stripe retrying cannot
help), 200 for processed or ignored events, 500 for anything transient so
Stripe retries.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from app.core.auth_dependency import get_db
from app.core.exceptions import UserAssociationError, WebhookVerificationError
from app.services.billing_events import to_billing_event
from app.services.stripe_service import StripeGateway, get_stripe_gateway
from app.services.webhook_service import reconcile_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["Billing Webhook"])


@router.get("/webhook", response_class=PlainTextResponse)
def webhook_probe():
    return "Stripe webhook endpoint is working"


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    # Signature covers the exact bytes; never parse before verifying
    payload = await request.body()

    try:
        verified = gateway.verify_webhook(payload, stripe_signature)
    except WebhookVerificationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": f"Webhook Error: {e.message}"},
        )

    event = to_billing_event(verified)
    if not event.is_relevant:
        logger.info(f"Webhook received but event type {event.type} is not handled")
        return {"received": True, "handled": False}

    try:
        await run_in_threadpool(reconcile_event, event, db, gateway)
    except UserAssociationError as e:
        logger.error(f"Webhook event {event.id} ({event.type}) has no user association: {e.message}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": e.message},
        )
    except Exception as e:
        logger.exception(f"Error handling webhook event {event.id} ({event.type})")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": f"Webhook handler failed: {e}"},
        )

    return {"received": True, "handled": True}
