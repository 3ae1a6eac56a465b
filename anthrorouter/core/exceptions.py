"""Core exceptions for the gateway."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..admission.cache import RateLimitStatus


class GatewayError(Exception):
    """Base exception for gateway errors."""

    status_code: int = 500
    error_type: str = "api_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(GatewayError):
    """Missing or invalid API key. Never retried."""

    status_code = 401
    error_type = "authentication_error"


class RateLimitError(GatewayError):
    """The key exhausted its request window."""

    status_code = 429
    error_type = "rate_limit_error"

    def __init__(self, message: str, status: Optional["RateLimitStatus"] = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedUpstream(GatewayError):
    """Upstream returned a body missing a field the gateway relies on."""

    status_code = 502
    error_type = "api_error"


class UpstreamHttpError(GatewayError):
    """Upstream answered with a non-2xx status or could not be reached."""

    error_type = "api_error"

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class TranscodeSkip(GatewayError):
    """A single stream frame could not be transcoded and is dropped."""

    def __init__(self, message: str, line: str = "") -> None:
        super().__init__(message)
        self.line = line


class ConfigurationError(GatewayError):
    """Raised when there's an issue with the configuration."""
