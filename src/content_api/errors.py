"""Errors raised by the public API gateway pipeline.

Each error knows the HTTP status and JSON body it turns into, so the
gateway handler can convert any of them into a response in one place.
"""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class for terminal, per-request gateway failures."""

    status_code: int = 500

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class MethodNotAllowedError(GatewayError):
    status_code = 405


class AuthenticationError(GatewayError):
    """Missing or unknown API key."""

    status_code = 401


class InactiveKeyError(AuthenticationError):
    status_code = 403


class QuotaExceededError(GatewayError):
    """Daily quota used up; the client may retry after midnight UTC."""

    status_code = 429

    def __init__(self, limit: int, used: int):
        super().__init__(
            "Daily rate limit exceeded",
            {"limit": limit, "used": used, "reset": "midnight UTC"},
        )


class NotFoundError(GatewayError):
    status_code = 404


class InternalError(GatewayError):
    status_code = 500
