"""
Local domain types for Stripe webhook events.

Stripe payloads (plain JSON dicts or SDK objects) are mapped here once, so
reconciliation logic never touches Stripe's own type shapes.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class EventKind(str, Enum):
    CHECKOUT_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    SUBSCRIPTION_PAUSED = "customer.subscription.paused"
    SUBSCRIPTION_RESUMED = "customer.subscription.resumed"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


RELEVANT_EVENTS = frozenset(kind.value for kind in EventKind)


@dataclass
class SubscriptionSnapshot:
    """The subset of a Stripe subscription we persist."""
    subscription_id: str
    customer_id: Optional[str] = None
    price_id: Optional[str] = None
    status: Optional[str] = None
    current_period_end: Optional[datetime] = None
    user_id: Optional[str] = None


@dataclass
class BillingEvent:
    """A verified webhook event reduced to the fields reconciliation needs."""
    id: Optional[str]
    type: str
    kind: Optional[EventKind] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    user_id: Optional[str] = None
    mode: Optional[str] = None
    billing_reason: Optional[str] = None
    # Present only for customer.subscription.* events
    subscription: Optional[SubscriptionSnapshot] = None
    raw_object_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_relevant(self) -> bool:
        return self.kind is not None


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError, IndexError):
        return default
    return default if value is None else value


def _id_of(value: Any) -> Optional[str]:
    """Stripe references are either an id string or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return _get(value, "id")


def _timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def metadata_user_id(metadata: Any) -> Optional[str]:
    """Read the owning user id from Stripe metadata (camelCase or snake_case key)."""
    user_id = _get(metadata, "userId") or _get(metadata, "user_id")
    return str(user_id) if user_id else None


def to_subscription_snapshot(obj: Any) -> SubscriptionSnapshot:
    """Map a Stripe subscription object to a SubscriptionSnapshot."""
    first_item = _get(_get(_get(obj, "items"), "data", []), 0)
    price_id = _id_of(_get(first_item, "price"))

    # Newer API versions moved the billing period onto subscription items
    period_end = _get(obj, "current_period_end") or _get(first_item, "current_period_end")

    return SubscriptionSnapshot(
        subscription_id=_get(obj, "id"),
        customer_id=_id_of(_get(obj, "customer")),
        price_id=price_id,
        status=_get(obj, "status"),
        current_period_end=_timestamp(period_end),
        user_id=metadata_user_id(_get(obj, "metadata")),
    )


def _invoice_subscription_id(invoice: Any) -> Optional[str]:
    subscription_id = _id_of(_get(invoice, "subscription"))
    if subscription_id:
        return subscription_id
    details = _get(_get(invoice, "parent"), "subscription_details")
    return _id_of(_get(details, "subscription"))


def to_billing_event(payload: Any) -> BillingEvent:
    """Map a verified Stripe event payload to a BillingEvent."""
    event_type = str(_get(payload, "type", ""))
    obj = _get(_get(payload, "data"), "object", {})
    metadata = _get(obj, "metadata", {})
    if not isinstance(metadata, dict):
        metadata = {}

    try:
        kind = EventKind(event_type)
    except ValueError:
        kind = None

    event = BillingEvent(
        id=_get(payload, "id"),
        type=event_type,
        kind=kind,
        customer_id=_id_of(_get(obj, "customer")),
        user_id=metadata_user_id(metadata),
        raw_object_type=_get(obj, "object"),
        metadata=dict(metadata),
    )

    if event_type.startswith("customer.subscription."):
        event.subscription = to_subscription_snapshot(obj)
        event.subscription_id = event.subscription.subscription_id
    elif event_type.startswith("checkout.session."):
        event.subscription_id = _id_of(_get(obj, "subscription"))
        event.mode = _get(obj, "mode")
    elif event_type.startswith("invoice."):
        event.subscription_id = _invoice_subscription_id(obj)
        event.billing_reason = _get(obj, "billing_reason")

    return event
