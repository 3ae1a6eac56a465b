"""Pytest configuration and fixtures for testing."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Generator, Iterable

import pytest

from anthrorouter.admission import AdmissionCache, KeyPolicy
from anthrorouter.testing import FakeClock, GatewayHarness

VALID_KEY = "sk-ant-" + "a" * 40
DEV_KEY = "test-api-key-123"


# =============================================================================
# Clock and admission fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """A manually advanced epoch-millisecond clock."""
    return FakeClock()


class CountingPolicy:
    """Key policy stub that records every evaluation."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.calls: list[str] = []

    def __call__(self, raw_key: str) -> bool:
        self.calls.append(raw_key)
        return self.result


@pytest.fixture
def counting_policy() -> CountingPolicy:
    return CountingPolicy()


@pytest.fixture
def admission(clock: FakeClock) -> AdmissionCache:
    """Admission cache with the default policy and a fake clock."""
    return AdmissionCache(KeyPolicy(), clock=clock)


# =============================================================================
# Gateway harness
# =============================================================================


@pytest.fixture
def gateway() -> Generator[GatewayHarness, None, None]:
    """In-process gateway wired to a FakeUpstream."""
    with GatewayHarness() as harness:
        yield harness


# =============================================================================
# Helpers
# =============================================================================


async def aiter_chunks(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


def parse_sse_frames(raw: bytes | str) -> list[dict[str, Any]]:
    """Parse ``data:`` frames from an Anthropic SSE body into event dicts."""
    text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    events: list[dict[str, Any]] = []
    for line in text.split("\n"):
        if line.startswith("data: "):
            events.append(json.loads(line[len("data: "):]))
    return events


def build_messages_request(
    content: Any = "Hello",
    *,
    model: str = "anthropic/claude-3.5-sonnet",
    stream: bool = False,
    **extra: Any,
) -> dict[str, Any]:
    """Build an Anthropic Messages request body."""
    payload: dict[str, Any] = {
        "model": model,
        "max_tokens": 256,
        "messages": [{"role": "user", "content": content}],
    }
    if stream:
        payload["stream"] = True
    payload.update(extra)
    return payload
