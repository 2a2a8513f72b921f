"""
Pydantic schemas for the subscription read endpoint and client cache.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SubscriptionOut(BaseModel):
    """Subscription row in the client-facing camelCase shape."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: Optional[int] = None
    user_id: Optional[int] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    stripe_current_period_end: Optional[datetime] = None
    status: Optional[str] = Field(None, description="Stripe subscription status, verbatim")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def to_client_dict(subscription) -> Optional[dict]:
    """Serialize an ORM row for the client, or None."""
    if subscription is None:
        return None
    return SubscriptionOut.model_validate(subscription).model_dump(by_alias=True, mode="json")
