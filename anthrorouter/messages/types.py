"""Wire shapes for the two chat schemas the gateway speaks.

Source types follow the Anthropic Messages API that clients talk to. Target
types follow the OpenAI-style Chat Completions API of the upstream provider.
Only the fields the gateway reads or writes are declared.
"""

from typing import Any, Literal, Optional, Union

from typing_extensions import TypedDict


# =============================================================================
# Source (client-facing) types
# =============================================================================


class SourceContentBlock(TypedDict, total=False):
    """A content block inside a source message.

    Attributes:
        type: Block tag, "text" or "image". Other tags are tolerated and
            dropped during translation.
        text: Text payload for "text" blocks.
        source: Opaque image payload for "image" blocks.
    """
    type: str
    text: str
    source: dict[str, Any]


class SourceMessage(TypedDict):
    role: Literal["user", "assistant"]
    content: Union[str, list[SourceContentBlock]]


class SourceRequest(TypedDict, total=False):
    model: str
    messages: list[SourceMessage]
    system: Union[str, list[SourceContentBlock]]
    max_tokens: int
    temperature: float
    top_p: float
    top_k: int
    stop_sequences: list[str]
    stream: bool
    metadata: dict[str, Any]


class SourceTextBlock(TypedDict):
    type: Literal["text"]
    text: str


class SourceUsage(TypedDict):
    input_tokens: int
    output_tokens: int


class SourceResponse(TypedDict):
    """A completed message returned to the client."""
    id: str
    type: Literal["message"]
    role: Literal["assistant"]
    content: list[SourceTextBlock]
    model: str
    stop_reason: Optional[str]
    stop_sequence: None
    usage: SourceUsage


# =============================================================================
# Target (upstream) types
# =============================================================================


class TargetMessage(TypedDict):
    role: Literal["user", "assistant", "system"]
    content: str


class TargetRequest(TypedDict, total=False):
    model: str
    messages: list[TargetMessage]
    max_tokens: int
    temperature: float
    top_p: float
    stop: list[str]
    stream: bool


class TargetChoiceMessage(TypedDict, total=False):
    role: str
    content: Optional[str]


class TargetDelta(TypedDict, total=False):
    role: str
    content: Optional[str]


class TargetChoice(TypedDict, total=False):
    """A choice in a completed response or a streamed chunk.

    Completed responses carry ``message``; streamed chunks carry ``delta``.
    Some providers send a non-delta first frame that carries ``message``.
    """
    index: int
    message: TargetChoiceMessage
    delta: TargetDelta
    finish_reason: Optional[str]


class TargetUsage(TypedDict, total=False):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class TargetResponse(TypedDict, total=False):
    id: str
    object: str
    created: int
    model: str
    choices: list[TargetChoice]
    usage: TargetUsage


# =============================================================================
# Source stream events
# =============================================================================


class MessageStartEvent(TypedDict):
    type: Literal["message_start"]
    message: dict[str, Any]


class TextDelta(TypedDict):
    type: Literal["text_delta"]
    text: str


class ContentBlockDeltaEvent(TypedDict):
    type: Literal["content_block_delta"]
    index: int
    delta: TextDelta


class StopDelta(TypedDict):
    stop_reason: Optional[str]
    stop_sequence: None


class OutputUsage(TypedDict):
    output_tokens: int


class MessageDeltaEvent(TypedDict):
    type: Literal["message_delta"]
    delta: StopDelta
    usage: OutputUsage


class MessageStopEvent(TypedDict):
    type: Literal["message_stop"]


SourceStreamEvent = Union[
    MessageStartEvent,
    ContentBlockDeltaEvent,
    MessageDeltaEvent,
    MessageStopEvent,
]
