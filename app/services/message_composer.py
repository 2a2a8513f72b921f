"""
Opening-message composer backed by an LLMProvider.
"""
import logging
from typing import Optional

from app.core.config import OPENAI_MODEL
from app.llm.prompts import build_compose_messages
from app.llm.provider import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


def compose_message(
    provider: LLMProvider,
    profile: str,
    context: Optional[str] = None,
    tone: str = "friendly",
    model: str = OPENAI_MODEL,
) -> LLMResponse:
    """Generate one opening message for a match's profile."""
    response = provider.chat(
        messages=build_compose_messages(profile, context, tone),
        model=model,
        temperature=0.8,
        max_tokens=300,
    )
    response.content = response.content.strip()

    logger.info(
        f"Message composed: model={response.model}, tokens_in={response.tokens_in}, "
        f"tokens_out={response.tokens_out}, cost=${response.cost_estimate:.5f}"
    )
    return response
