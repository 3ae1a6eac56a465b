"""Anthropic Messages <-> OpenAI Chat Completions translation.

This module translates Anthropic Messages requests into the Chat Completions
shape the upstream provider accepts, and completed Chat Completions responses
back into Anthropic messages.

Key mappings:
- Anthropic system (top-level) -> leading OpenAI system message
- Anthropic content blocks -> a single newline-joined string
- Anthropic stop_sequences -> OpenAI stop
- OpenAI finish_reason -> Anthropic stop_reason

Reference:
- Anthropic Messages API: https://docs.anthropic.com/en/api/messages
- OpenAI Chat Completions: https://platform.openai.com/docs/api-reference/chat
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Mapping, Optional

from ..core.exceptions import MalformedUpstream
from .types import SourceResponse, TargetMessage, TargetRequest

logger = logging.getLogger("anthrorouter")

IMAGE_PLACEHOLDER = "[Image content not supported in this proxy]"

_FINISH_REASONS = {
    "stop": "end_turn",
    "length": "max_tokens",
    "content_filter": "stop_sequence",
}

_OPTIONAL_PARAMS = ("max_tokens", "temperature", "top_p")


def map_finish_reason(finish_reason: Optional[str]) -> Optional[str]:
    """Convert an OpenAI finish_reason to an Anthropic stop_reason.

    Unknown reasons pass through unchanged; ``None`` stays ``None``.
    """
    if finish_reason is None:
        return None
    return _FINISH_REASONS.get(finish_reason, finish_reason)


def usage_count(usage: Any, field: str) -> int:
    """Read one token count from an upstream usage object, 0 when unusable."""
    if not isinstance(usage, Mapping):
        return 0
    value = usage.get(field)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def flatten_content(content: Any) -> str:
    """Reduce Anthropic message content to the single string OpenAI expects.

    Strings pass through. Block lists keep non-empty text blocks and swap
    image blocks for a fixed placeholder, joined by newlines in order.
    """
    if isinstance(content, str):
        return content

    if content is None:
        return ""

    if not isinstance(content, list):
        return str(content)

    parts: list[str] = []
    for block in content:
        if not isinstance(block, Mapping):
            continue
        block_type = block.get("type", "")
        if block_type == "text":
            text = block.get("text")
            if text:
                parts.append(str(text))
        elif block_type == "image":
            parts.append(IMAGE_PLACEHOLDER)
        else:
            logger.debug(f"Dropping unsupported content block type: {block_type}")

    return "\n".join(parts)


def messages_to_chat_completions(payload: Mapping[str, Any]) -> TargetRequest:
    """Translate an Anthropic Messages request to OpenAI Chat Completions.

    Args:
        payload: Anthropic Messages API request body

    Returns:
        OpenAI Chat Completions API request body
    """
    openai_messages: list[TargetMessage] = []

    system = payload.get("system")
    if system:
        openai_messages.append({"role": "system", "content": flatten_content(system)})

    for msg in payload.get("messages") or []:
        openai_messages.append({
            "role": msg.get("role", "user"),
            "content": flatten_content(msg.get("content")),
        })

    result: TargetRequest = {
        "model": payload.get("model", ""),
        "messages": openai_messages,
    }

    for param in _OPTIONAL_PARAMS:
        if payload.get(param) is not None:
            result[param] = payload[param]

    stop_sequences = payload.get("stop_sequences")
    if stop_sequences:
        result["stop"] = list(stop_sequences)

    result["stream"] = bool(payload.get("stream") or False)

    # top_k is Anthropic-specific and has no Chat Completions counterpart
    if payload.get("top_k") is not None:
        logger.debug(f"top_k={payload['top_k']} is not supported upstream, ignoring")

    return result


def chat_completion_to_messages(
    payload: Mapping[str, Any],
    original_model: str,
) -> SourceResponse:
    """Translate an OpenAI Chat Completions response to an Anthropic message.

    Only the first choice is used. The reported model is the one the client
    asked for, not the one the upstream echoed back.

    Args:
        payload: OpenAI Chat Completions API response body
        original_model: ``model`` from the client's original request

    Returns:
        Anthropic Messages API response body

    Raises:
        MalformedUpstream: If the response has no usable first choice, or its
            content or finish_reason is not a string.
    """
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        raise MalformedUpstream("Upstream response contained no choices")

    choice = choices[0]
    message = choice.get("message") if isinstance(choice, Mapping) else None
    if not isinstance(message, Mapping):
        raise MalformedUpstream("Upstream response choice had no message")

    text = message.get("content")
    if text is not None and not isinstance(text, str):
        raise MalformedUpstream("Upstream message content must be a string")

    finish_reason = choice.get("finish_reason")
    if finish_reason is not None and not isinstance(finish_reason, str):
        raise MalformedUpstream("Upstream finish_reason must be a string")

    usage = payload.get("usage")

    return {
        "id": payload.get("id") or f"msg_{uuid.uuid4().hex[:24]}",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": text if text is not None else ""}],
        "model": original_model,
        "stop_reason": map_finish_reason(finish_reason),
        "stop_sequence": None,  # OpenAI doesn't report which stop string matched
        "usage": {
            "input_tokens": usage_count(usage, "prompt_tokens"),
            "output_tokens": usage_count(usage, "completion_tokens"),
        },
    }
