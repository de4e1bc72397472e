"""
Domain errors raised by services and rendered by the exception handler in main.py.

Every error carries the HTTP status it maps to and a ``detail`` payload, so the
response body has the same ``{"detail": ...}`` shape FastAPI uses for
HTTPException.
"""

from typing import Any, Optional

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def detail(self) -> Any:
        if not self.context:
            return self.message
        return {"message": self.message, **self.context}


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class SnapshotValidationError(AppError):
    """Malformed snapshot input. ``row`` is 1-based and counts the header line."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, row: Optional[int] = None, source: Optional[str] = None) -> None:
        context = {}
        if row is not None:
            context["row"] = row
        if source is not None:
            context["source"] = source
        super().__init__(message, **context)
        self.row = row
        self.source = source


class NonceVerificationError(AppError):
    """Terminal for the presented nonce. The client must request a new one."""

    status_code = status.HTTP_401_UNAUTHORIZED

    NOT_FOUND = "not_found"
    PURPOSE_MISMATCH = "purpose_mismatch"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid_signature"

    _MESSAGES = {
        NOT_FOUND: "Nonce not found",
        PURPOSE_MISMATCH: "Nonce was issued for a different purpose",
        ALREADY_USED: "Nonce already used",
        EXPIRED: "Nonce expired",
        INVALID_SIGNATURE: "Invalid wallet signature",
    }

    def __init__(self, reason: str) -> None:
        super().__init__(self._MESSAGES.get(reason, "Nonce rejected"), reason=reason)
        self.reason = reason


class CampaignStateError(AppError):
    """Operation not legal in the campaign's current status."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, expected: Any, actual: str) -> None:
        super().__init__(message, expected=expected, actual=actual)
        self.expected = expected
        self.actual = actual


class NotEligibleError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class MintError(AppError):
    """External mint failed; local state is unchanged and the claim may be retried."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ClaimPersistenceError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AdminForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
