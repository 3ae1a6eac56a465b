"""AnthroRouter - Anthropic Messages API gateway for OpenAI-compatible providers.

Accepts Anthropic Messages requests, translates them to Chat Completions,
forwards them upstream and translates the response (or SSE stream) back.

This module provides:
- create_app: FastAPI application factory
- AdmissionCache: API key validation and fixed-window rate limiting
- Translation helpers and the incremental stream transcoder

Example:
    >>> from anthrorouter import create_app, GatewaySettings
    >>> import uvicorn
    >>> uvicorn.run(create_app(GatewaySettings()), host="127.0.0.1", port=3000)
"""

from .admission import AdmissionCache, KeyPolicy, RateLimitStatus
from .app import create_app
from .config_loader import GatewaySettings, load_config
from .core import GatewayError, UpstreamClient
from .logging import setup_logging
from .messages import (
    ChatToMessagesStreamTranscoder,
    chat_completion_to_messages,
    messages_to_chat_completions,
)

__version__ = "0.1.0"

__all__ = [
    "AdmissionCache",
    "ChatToMessagesStreamTranscoder",
    "GatewayError",
    "GatewaySettings",
    "KeyPolicy",
    "RateLimitStatus",
    "UpstreamClient",
    "chat_completion_to_messages",
    "create_app",
    "load_config",
    "messages_to_chat_completions",
    "setup_logging",
]
