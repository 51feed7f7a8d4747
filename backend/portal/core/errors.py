"""
Error taxonomy shared by the API handlers and services.

Every error carries the HTTP status it maps to and a message that is safe
to show to the client. Internal detail belongs in logs, never in `error`.
"""
from __future__ import annotations

from typing import Any


class PortalError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class Unauthorized(PortalError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(PortalError):
    status_code = 403
    default_message = "Forbidden"


class ValidationError(PortalError):
    status_code = 400
    default_message = "Invalid request data"


class NotFound(PortalError):
    status_code = 404
    default_message = "Not found"


class Conflict(PortalError):
    status_code = 409
    default_message = "Conflict"


class ProviderError(PortalError):
    status_code = 502
    default_message = "Upstream provider error"


class ConfigurationError(PortalError):
    """Missing or unusable secret. Fatal, not user-recoverable."""

    status_code = 500
    default_message = "Server misconfigured"
