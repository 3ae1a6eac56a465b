"""API module for the gateway."""

from .routes import health, messages_endpoint, not_found_handler

__all__ = [
    "health",
    "messages_endpoint",
    "not_found_handler",
]
