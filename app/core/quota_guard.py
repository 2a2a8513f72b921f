"""
Quota enforcement dependency for metered features.

require_quota() authenticates the user, checks today's usage against the
free-tier allowance, records usage if allowed, and raises 429 otherwise.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.auth_dependency import get_current_user_obj, get_db
from app.db.models.user import User
from app.services.quota_service import MESSAGE_FEATURE, check_and_consume

logger = logging.getLogger(__name__)


@dataclass
class QuotaGrant:
    user: User
    used: int
    limit: Optional[int]

    @property
    def remaining(self) -> Optional[int]:
        return None if self.limit is None else max(0, self.limit - self.used)


def require_quota(feature: str = MESSAGE_FEATURE, amount: int = 1):
    """
    Dependency that enforces the daily allowance before allowing feature usage.

    Returns:
        QuotaGrant for the authenticated user

    Raises:
        HTTPException 429: Allowance exhausted, with structured detail
        HTTPException 401: Unauthorized
    """
    def quota_checker(
        user: User = Depends(get_current_user_obj),
        db: Session = Depends(get_db)
    ) -> QuotaGrant:
        allowed, used, limit = check_and_consume(db, user.id, feature, amount)

        if not allowed:
            logger.warning(f"Quota exceeded: user_id={user.id}, feature={feature}, limit={limit}, used={used}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "quota_exceeded",
                    "feature": feature,
                    "limit": limit,
                    "used": used,
                    "remaining": 0,
                    "message": (
                        f"You've reached your free limit of {limit} messages for today. "
                        "Upgrade to continue sending unlimited messages."
                    ),
                }
            )

        return QuotaGrant(user=user, used=used, limit=limit)

    return quota_checker
