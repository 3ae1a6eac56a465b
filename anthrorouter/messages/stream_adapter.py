"""Stream transcoder from OpenAI Chat Completions SSE to Anthropic Messages SSE.

OpenAI Chat Completion Events:
    data: {"choices":[{"delta":{"content":"Hello"},"index":0}]}
    data: {"choices":[{"delta":{},"finish_reason":"stop","index":0}]}
    data: [DONE]

Anthropic Messages Events (one ``data:`` frame each):
    data: {"type":"message_start","message":{...}}
    data: {"type":"content_block_delta","index":0,"delta":{"type":"text_delta","text":"Hello"}}
    data: {"type":"message_delta","delta":{"stop_reason":"end_turn","stop_sequence":null},"usage":{"output_tokens":10}}
    data: {"type":"message_stop"}

Every upstream frame maps to at most one output frame, so the transcoder keeps
no per-message state beyond its decode buffer. Output does not depend on how
the upstream bytes were split into chunks.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Iterator, Mapping, Optional

from ..core.exceptions import TranscodeSkip
from .translator import map_finish_reason, usage_count
from .types import SourceStreamEvent

logger = logging.getLogger("anthrorouter")

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class SourceFrame:
    """One unit of transcoder output.

    A frame either carries an event or is a blank separator passed through
    from the upstream stream.
    """

    event: Optional[SourceStreamEvent] = None

    @property
    def is_separator(self) -> bool:
        return self.event is None

    def encode(self) -> bytes:
        if self.event is None:
            return b"\n"
        json_str = json.dumps(self.event, ensure_ascii=False)
        return f"{DATA_PREFIX}{json_str}\n\n".encode("utf-8")


SEPARATOR = SourceFrame()


class ChatToMessagesStreamTranscoder:
    """Incremental parser turning upstream SSE bytes into Anthropic frames.

    Usage:
        transcoder = ChatToMessagesStreamTranscoder()
        for chunk in upstream_chunks:
            for frame in transcoder.feed(chunk):
                send(frame.encode())
        for frame in transcoder.finish():
            send(frame.encode())

    Bytes are decoded incrementally so multi-byte characters split across
    chunks survive. The last unterminated line is held until its newline
    arrives or ``finish`` is called. Once ``data: [DONE]`` is seen the
    transcoder emits ``message_stop`` and ignores everything after it.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self.done = False
        self.skipped_frames = 0

    def feed(self, chunk: bytes) -> list[SourceFrame]:
        """Consume one chunk of upstream bytes.

        Args:
            chunk: Raw bytes, with no alignment to lines or events

        Returns:
            Frames completed by this chunk, in upstream order
        """
        if self.done or not chunk:
            return []

        text = self._pending + self._decoder.decode(chunk)
        lines = text.split("\n")
        self._pending = lines.pop()
        return self._process_lines(lines)

    def finish(self) -> list[SourceFrame]:
        """Flush the decoder and treat any leftover text as a final line."""
        if self.done:
            return []

        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        if not text:
            return []
        return self._process_lines(text.split("\n"))

    def _process_lines(self, lines: list[str]) -> list[SourceFrame]:
        frames: list[SourceFrame] = []
        for line in lines:
            if line.endswith("\r"):
                line = line[:-1]

            if not line.strip():
                frames.append(SEPARATOR)
                continue

            if not line.startswith(DATA_PREFIX):
                continue

            data = line[len(DATA_PREFIX):]
            if data == DONE_SENTINEL:
                frames.append(SourceFrame({"type": "message_stop"}))
                self.done = True
                break

            try:
                event = self._transcode_payload(data)
            except TranscodeSkip as exc:
                self.skipped_frames += 1
                logger.warning(f"Skipping stream frame: {exc.message} ({exc.line[:100]!r})")
                continue

            if event is not None:
                frames.append(SourceFrame(event))

        return frames

    def _transcode_payload(self, data: str) -> Optional[SourceStreamEvent]:
        """Map one upstream JSON payload to at most one Anthropic event.

        Raises:
            TranscodeSkip: If the payload is not a JSON object or one of the
                fields it relies on has the wrong type.
        """
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError as exc:
            raise TranscodeSkip(f"invalid JSON: {exc}", data) from exc

        if not isinstance(chunk, Mapping):
            raise TranscodeSkip("payload is not a JSON object", data)

        try:
            return _classify_chunk(chunk)
        except (TypeError, AttributeError, ValueError) as exc:
            raise TranscodeSkip(f"unexpected field types: {exc}", data) from exc


def _classify_chunk(chunk: Mapping[str, Any]) -> Optional[SourceStreamEvent]:
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, Mapping):
        return None

    delta = choice.get("delta")
    if isinstance(delta, Mapping) and delta.get("content"):
        content = delta["content"]
        if not isinstance(content, str):
            raise TypeError(f"delta.content must be a string, got {type(content).__name__}")
        return {
            "type": "content_block_delta",
            "index": 0,
            "delta": {"type": "text_delta", "text": content},
        }

    if choice.get("message") is not None:
        return _message_start(chunk)

    finish_reason = choice.get("finish_reason")
    if finish_reason:
        if not isinstance(finish_reason, str):
            raise TypeError(
                f"finish_reason must be a string, got {type(finish_reason).__name__}"
            )
        return {
            "type": "message_delta",
            "delta": {
                "stop_reason": map_finish_reason(finish_reason),
                "stop_sequence": None,
            },
            "usage": {"output_tokens": usage_count(chunk.get("usage"), "completion_tokens")},
        }

    return None


def _message_start(chunk: Mapping[str, Any]) -> SourceStreamEvent:
    return {
        "type": "message_start",
        "message": {
            "id": chunk.get("id"),
            "type": "message",
            "role": "assistant",
            "content": [],
            "model": chunk.get("model"),
            "stop_reason": None,
            "stop_sequence": None,
            "usage": {"input_tokens": 0, "output_tokens": 0},
        },
    }


async def transcode_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
    """Adapt an async upstream byte stream to encoded Anthropic frames.

    Args:
        chunks: The incoming OpenAI chat completion SSE stream

    Yields:
        Encoded Anthropic Messages SSE frames
    """
    transcoder = ChatToMessagesStreamTranscoder()
    async for chunk in chunks:
        for frame in transcoder.feed(chunk):
            yield frame.encode()
    for frame in transcoder.finish():
        yield frame.encode()
    if not transcoder.done:
        logger.warning("Upstream stream ended without a [DONE] sentinel")


def transcode_stream_sync(chunks: Iterable[bytes]) -> Iterator[bytes]:
    """Blocking counterpart of ``transcode_stream``."""
    transcoder = ChatToMessagesStreamTranscoder()
    for chunk in chunks:
        for frame in transcoder.feed(chunk):
            yield frame.encode()
    for frame in transcoder.finish():
        yield frame.encode()
    if not transcoder.done:
        logger.warning("Upstream stream ended without a [DONE] sentinel")
