"""
Stripe gateway for checkout, billing portal, and webhook verification.

One StripeGateway is constructed per process (see get_stripe_gateway) and
injected into routes; the API key is passed per request instead of being
assigned to the global stripe module.
"""
import json
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

import stripe

from app.core.config import (
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    STRIPE_API_VERSION,
)
from app.core.exceptions import ConfigurationError, WebhookVerificationError
from app.core.logging_config import truncate_signature
from app.services.billing_events import (
    SubscriptionSnapshot,
    metadata_user_id,
    to_subscription_snapshot,
)

logger = logging.getLogger(__name__)


class StripeGateway:
    """Thin wrapper over the Stripe SDK returning local domain types."""

    def __init__(
        self,
        api_key: Optional[str],
        webhook_secret: Optional[str] = None,
        api_version: Optional[str] = STRIPE_API_VERSION,
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.api_version = api_version
        if not api_key:
            logger.warning("STRIPE_SECRET_KEY not configured - Stripe API calls will fail")

    def _options(self) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationError("Stripe not configured - STRIPE_SECRET_KEY required")
        options: Dict[str, Any] = {"api_key": self.api_key}
        if self.api_version:
            options["stripe_version"] = self.api_version
        return options

    def verify_webhook(self, request_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify and parse a Stripe webhook payload.

        Args:
            request_body: Raw request body bytes, exactly as received
            signature: Stripe-Signature header value

        Returns:
            Parsed event dictionary

        Raises:
            WebhookVerificationError: If the secret, signature or payload is unusable
        """
        if not self.webhook_secret:
            logger.error("Webhook secret missing - cannot verify events")
            raise WebhookVerificationError("Webhook signature or secret missing", code="missing_secret")
        if not signature:
            logger.error("Webhook signature header missing")
            raise WebhookVerificationError("Webhook signature or secret missing", code="missing_signature")

        try:
            payload = request_body.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                payload, signature, self.webhook_secret, stripe.Webhook.DEFAULT_TOLERANCE
            )
            event = json.loads(payload)
            if not isinstance(event, dict):
                raise ValueError(f"expected a JSON object, got {type(event).__name__}")
        except stripe.SignatureVerificationError as e:
            logger.error(
                f"Webhook signature verification failed: {e}, "
                f"signature={truncate_signature(signature)}"
            )
            raise WebhookVerificationError(f"Invalid signature: {e}", code="invalid_signature") from e
        except ValueError as e:
            # UnicodeDecodeError and JSONDecodeError are both ValueErrors
            logger.error(f"Invalid webhook payload: {e}")
            raise WebhookVerificationError(f"Invalid webhook payload: {e}", code="invalid_payload") from e

        logger.info(f"Verified webhook event: type={event.get('type')}, id={event.get('id')}")
        return event

    def retrieve_subscription(self, subscription_id: str) -> SubscriptionSnapshot:
        subscription = stripe.Subscription.retrieve(subscription_id, **self._options())
        return to_subscription_snapshot(subscription)

    def list_subscriptions(
        self,
        customer_id: str,
        status: Optional[str] = None,
        limit: int = 10,
    ) -> List[SubscriptionSnapshot]:
        params: Dict[str, Any] = {"customer": customer_id, "limit": limit}
        if status:
            params["status"] = status
        result = stripe.Subscription.list(**params, **self._options())
        return [to_subscription_snapshot(sub) for sub in result["data"]]

    def get_customer_user_id(self, customer_id: str) -> Optional[str]:
        """Return the userId stored on the Stripe customer's metadata, if any."""
        customer = stripe.Customer.retrieve(customer_id, **self._options())
        if customer.get("deleted"):
            return None
        return metadata_user_id(customer.get("metadata"))

    def get_customer_email(self, customer_id: str) -> Optional[str]:
        customer = stripe.Customer.retrieve(customer_id, **self._options())
        if customer.get("deleted"):
            return None
        return customer.get("email")

    def find_customer_by_email(self, email: str) -> Optional[str]:
        result = stripe.Customer.list(email=email, limit=1, **self._options())
        customers = result["data"]
        return customers[0]["id"] if customers else None

    def create_customer(self, email: str, user_id: str) -> str:
        customer = stripe.Customer.create(
            email=email,
            metadata={"userId": str(user_id)},
            **self._options(),
        )
        logger.info(f"Created Stripe customer: customer_id={customer['id']}, user_id={user_id}")
        return customer["id"]

    def update_customer_user_id(self, customer_id: str, user_id: str) -> None:
        stripe.Customer.modify(customer_id, metadata={"userId": str(user_id)}, **self._options())

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        user_id: str,
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, str]:
        session = stripe.checkout.Session.create(
            mode="subscription",
            customer=customer_id,
            line_items=[{
                "price": price_id,
                "quantity": 1,
            }],
            metadata={"userId": str(user_id)},
            subscription_data={"metadata": {"userId": str(user_id)}},
            success_url=success_url,
            cancel_url=cancel_url,
            allow_promotion_codes=True,
            **self._options(),
        )
        logger.info(f"Created checkout session: session_id={session['id']}, user_id={user_id}")
        return {"id": session["id"], "url": session["url"]}

    def create_portal_session(self, customer_id: str, return_url: str) -> Dict[str, str]:
        session = stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=return_url,
            **self._options(),
        )
        logger.info(f"Created billing portal session for customer_id={customer_id}")
        return {"id": session["id"], "url": session["url"]}

    def list_products(self) -> List[Dict[str, Any]]:
        result = stripe.Product.list(active=True, expand=["data.default_price"], **self._options())
        products = []
        for product in result["data"]:
            price = product.get("default_price")
            recurring = price.get("recurring") if price and not isinstance(price, str) else None
            products.append({
                "id": product["id"],
                "name": product.get("name"),
                "description": product.get("description"),
                "default_price": None if not price or isinstance(price, str) else {
                    "id": price["id"],
                    "unit_amount": price.get("unit_amount"),
                    "currency": price.get("currency"),
                    "interval": recurring.get("interval") if recurring else None,
                },
            })
        return products


@lru_cache()
def get_stripe_gateway() -> StripeGateway:
    """FastAPI dependency: the process-wide gateway built from configuration."""
    return StripeGateway(
        api_key=STRIPE_SECRET_KEY,
        webhook_secret=STRIPE_WEBHOOK_SECRET,
        api_version=STRIPE_API_VERSION,
    )
