"""
Structured error taxonomy for the TIL service.

Every application error has:
  - A stable error code (prefixed by domain)
  - An HTTP status code
  - A human-readable message
  - An optional detail dict for machine consumers

No internal state (stack traces, DB internals) is ever surfaced to clients.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stable error codes. Never reuse a retired code."""

    # Auth
    AUTH_INVALID_CREDENTIALS = "AUTH_001"
    # AUTH_002 retired: expired and unknown tokens both answer AUTH_003
    AUTH_TOKEN_INVALID = "AUTH_003"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_004"
    AUTH_CREDENTIALS_MISSING = "AUTH_005"
    AUTH_CSRF_INVALID = "AUTH_006"
    AUTH_OAUTH_STATE_INVALID = "AUTH_007"

    # Users
    USER_NOT_FOUND = "USR_001"
    USER_PICTURE_MISSING = "USR_002"

    # Acronyms / categories
    ACRONYM_NOT_FOUND = "ACR_001"
    CATEGORY_NOT_FOUND = "CAT_001"

    # Upstream providers
    UPSTREAM_OAUTH_FAILED = "UPS_001"
    UPSTREAM_EMAIL_FAILED = "UPS_002"

    # Generic
    VALIDATION_ERROR = "GEN_001"
    INTERNAL_ERROR = "GEN_002"
    NOT_FOUND = "GEN_003"
    RATE_LIMITED = "GEN_004"
    BAD_REQUEST = "GEN_005"


class AppError(Exception):
    """Base class for all application errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        http_status: int = 500,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.detail = detail or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "detail": self.detail,
            }
        }


# ── Typed convenience subclasses ──────────────────────────────────────── #


class NotFoundError(AppError):
    def __init__(
        self, entity: str, entity_id: object = None, code: ErrorCode = ErrorCode.NOT_FOUND
    ) -> None:
        detail: dict[str, Any] = {"entity": entity}
        if entity_id is not None:
            detail["id"] = str(entity_id)
        super().__init__(
            code=code,
            message=f"{entity} not found",
            http_status=404,
            detail=detail,
        )


class BadRequestError(AppError):
    def __init__(self, message: str, code: ErrorCode = ErrorCode.BAD_REQUEST) -> None:
        super().__init__(code=code, message=message, http_status=400)


class AuthError(AppError):
    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(code=code, message=message, http_status=401)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(
            code=ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
            message=message,
            http_status=403,
        )


class ValidationError(AppError):
    def __init__(self, message: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            http_status=422,
            detail=detail,
        )


class ConflictError(AppError):
    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(code=code, message=message, http_status=409)


class UpstreamError(AppError):
    def __init__(self, code: ErrorCode, message: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(code=code, message=message, http_status=502, detail=detail)


class RedirectRequired(Exception):
    """
    Raised where the browser must be sent elsewhere instead of shown an error.

    Used by the website login guard and by OAuth flows when the provider
    rejects the access token.
    """

    def __init__(self, location: str) -> None:
        super().__init__(location)
        self.location = location
