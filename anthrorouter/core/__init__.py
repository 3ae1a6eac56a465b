"""Core module initialization."""

from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    GatewayError,
    MalformedUpstream,
    RateLimitError,
    TranscodeSkip,
    UpstreamHttpError,
)
from .upstream import UpstreamClient, extract_error_message, format_httpx_error

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "GatewayError",
    "MalformedUpstream",
    "RateLimitError",
    "TranscodeSkip",
    "UpstreamClient",
    "UpstreamHttpError",
    "extract_error_message",
    "format_httpx_error",
]
