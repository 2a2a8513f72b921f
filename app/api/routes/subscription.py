"""
Subscription read endpoint consumed by the client subscription cache.

Always answers 200: the record in camelCase, or null for anonymous callers
and storage failures, so clients never enter an error/retry loop.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.core.auth_dependency import get_db, optional_oauth2_scheme, user_from_token
from app.schemas.subscription import SubscriptionOut, to_client_dict
from app.services.subscription_service import get_subscription_by_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscription", tags=["Subscription"])

AUTHENTICATED_CACHE_CONTROL = "private, max-age=300"
ANONYMOUS_CACHE_CONTROL = "private, max-age=5"


@router.get("", response_model=Optional[SubscriptionOut], response_model_by_alias=True)
def get_subscription(
    response: Response,
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: Session = Depends(get_db),
):
    try:
        user = user_from_token(token, db)
        if not user:
            response.headers["Cache-Control"] = ANONYMOUS_CACHE_CONTROL
            return None

        subscription = get_subscription_by_user_id(db, user.id)
    except Exception as e:
        logger.error(f"Subscription API error: {e}", exc_info=True)
        response.headers["Cache-Control"] = ANONYMOUS_CACHE_CONTROL
        return None

    response.headers["Cache-Control"] = AUTHENTICATED_CACHE_CONTROL
    return to_client_dict(subscription)
