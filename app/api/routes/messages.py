"""
Message composer endpoint.

Free users are limited to a daily allowance; subscribed users are unlimited.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from openai import APIError

from app.core.quota_guard import QuotaGrant, require_quota
from app.llm.openai_provider import get_llm_provider
from app.llm.provider import LLMProvider
from app.schemas.messages import ComposeMessageRequest, ComposeMessageResponse
from app.services.message_composer import compose_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.post("/compose", response_model=ComposeMessageResponse)
async def compose(
    body: ComposeMessageRequest,
    grant: QuotaGrant = Depends(require_quota()),
    provider: LLMProvider = Depends(get_llm_provider),
):
    """Compose an opening message for a match's profile."""
    try:
        response = await run_in_threadpool(
            compose_message, provider, body.profile, body.context, body.tone
        )
    except APIError as e:
        logger.error(f"Compose failed for user_id={grant.user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Message generation is temporarily unavailable"
        )

    return ComposeMessageResponse(
        message=response.content,
        model=response.model,
        remaining=grant.remaining,
    )
