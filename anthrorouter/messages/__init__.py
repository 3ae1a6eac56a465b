"""Anthropic Messages API translation helpers.

Provides translation between Anthropic Messages API format and OpenAI Chat
Completions API format, enabling the gateway to serve Anthropic-format clients
from an OpenAI-compatible upstream.
"""

from .translator import (
    IMAGE_PLACEHOLDER,
    chat_completion_to_messages,
    flatten_content,
    map_finish_reason,
    messages_to_chat_completions,
    usage_count,
)
from .stream_adapter import (
    ChatToMessagesStreamTranscoder,
    SourceFrame,
    transcode_stream,
    transcode_stream_sync,
)

__all__ = [
    "IMAGE_PLACEHOLDER",
    "ChatToMessagesStreamTranscoder",
    "SourceFrame",
    "chat_completion_to_messages",
    "flatten_content",
    "map_finish_reason",
    "messages_to_chat_completions",
    "transcode_stream",
    "transcode_stream_sync",
    "usage_count",
]
