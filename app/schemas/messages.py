"""
Pydantic schemas for the message composer and usage endpoints.
"""
from typing import Optional
from pydantic import BaseModel, Field


class ComposeMessageRequest(BaseModel):
    """Request schema for composing an opening message."""
    profile: str = Field(..., min_length=1, max_length=4000, description="Match's profile text")
    context: Optional[str] = Field(None, max_length=2000, description="Anything the user wants mentioned")
    tone: str = Field("friendly", max_length=40, description="Desired tone, e.g. friendly, playful, witty")

    class Config:
        json_schema_extra = {
            "example": {
                "profile": "Rock climber, amateur baker, looking for someone to split a sourdough starter with.",
                "context": "I also climb on weekends",
                "tone": "playful"
            }
        }


class ComposeMessageResponse(BaseModel):
    """Response schema for a composed message."""
    message: str
    model: str
    remaining: Optional[int] = Field(None, description="Free messages left today (None when subscribed)")


class MessageUsageResponse(BaseModel):
    """Response schema for GET /me/usage."""
    subscribed: bool
    day_key: str = Field(..., description="Current UTC day in YYYY-MM-DD format")
    used: int
    limit: Optional[int] = Field(None, description="Daily limit (None for unlimited)")
    remaining: Optional[int] = Field(None, description="Remaining today (None for unlimited)")
