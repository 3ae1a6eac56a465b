"""API routes for the gateway."""

from .health import health, not_found_handler
from .messages import admit, messages_endpoint, raw_key_from_request

__all__ = [
    "admit",
    "health",
    "messages_endpoint",
    "not_found_handler",
    "raw_key_from_request",
]
