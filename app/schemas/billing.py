"""
Pydantic schemas for billing endpoints.
"""
from typing import Optional
from pydantic import BaseModel, Field

from app.schemas.subscription import SubscriptionOut


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating checkout session."""
    priceId: str = Field(..., min_length=1, description="Stripe price ID to subscribe to")

    class Config:
        json_schema_extra = {
            "example": {"priceId": "price_123"}
        }


class CreateCheckoutSessionResponse(BaseModel):
    """Response schema for checkout session creation."""
    sessionId: str = Field(..., description="Stripe checkout session ID")
    url: Optional[str] = Field(None, description="Stripe hosted checkout URL")

    class Config:
        json_schema_extra = {
            "example": {
                "sessionId": "cs_test_...",
                "url": "https://checkout.stripe.com/c/pay/cs_test_..."
            }
        }


class CreatePortalSessionResponse(BaseModel):
    """Response schema for portal session creation."""
    url: str = Field(..., description="Stripe customer portal URL")


class UpdateSubscriptionRequest(BaseModel):
    """Request schema for activating a subscription after checkout."""
    stripeCustomerId: Optional[str] = Field(None, description="Stripe customer ID of the caller")


class SyncSubscriptionRequest(BaseModel):
    """Request schema for manual subscription sync."""
    userId: Optional[int] = Field(None, description="Target user (admins only, defaults to caller)")
    stripeSubscriptionId: Optional[str] = Field(None, description="Sync only this Stripe subscription")


class SyncSubscriptionResponse(BaseModel):
    """Response schema for manual subscription sync."""
    message: str
    subscription: Optional[SubscriptionOut] = None


class BillingErrorResponse(BaseModel):
    """Error response schema for billing operations."""
    error: str = Field(..., description="Error message")
