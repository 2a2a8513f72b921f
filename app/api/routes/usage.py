"""
Usage endpoint.

Reports today's message allowance for the authenticated user.
"""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.models.user import User
from app.core.auth_dependency import get_current_user_obj, get_db
from app.schemas.messages import MessageUsageResponse
from app.services.quota_service import get_usage_for_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me", tags=["Usage"])


@router.get("/usage", status_code=status.HTTP_200_OK, response_model=MessageUsageResponse)
def get_usage(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Get today's message usage for the authenticated user.

    Returns subscribed, day_key, used, limit and remaining; limit and
    remaining are null for subscribed users.
    """
    usage_data = get_usage_for_response(db, user.id)
    logger.debug(f"Usage summary requested: user_id={user.id}, subscribed={usage_data['subscribed']}")
    return usage_data
