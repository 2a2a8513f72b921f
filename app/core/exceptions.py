from typing import Optional, Dict, Any


class MatchGeniusException(Exception):
    """Base exception for all MatchGenius errors."""
    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class WebhookVerificationError(MatchGeniusException):
    """Raised when a webhook signature or payload cannot be verified. Never retryable."""
    status_code = 400


class UserAssociationError(MatchGeniusException):
    """Raised when a billing event cannot be tied to a local user."""
    status_code = 400


class BillingError(MatchGeniusException):
    """Raised by billing operations with an HTTP status for the caller."""

    def __init__(self, message: str, status_code: int = 400, code: str = "billing_error"):
        super().__init__(message, code=code)
        self.status_code = status_code


class ConfigurationError(MatchGeniusException):
    """Raised when application configuration is invalid or missing."""
    status_code = 503
