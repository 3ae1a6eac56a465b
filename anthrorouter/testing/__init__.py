"""Testing helpers: a fake upstream provider and an in-process gateway harness."""

from .fake_upstream import (
    FakeUpstream,
    UpstreamResponse,
    build_openai_stream_chunks,
    encode_sse_data,
    split_every,
)
from .gateway_harness import FakeClock, GatewayHarness, UPSTREAM_BASE_URL

__all__ = [
    "FakeClock",
    "FakeUpstream",
    "GatewayHarness",
    "UPSTREAM_BASE_URL",
    "UpstreamResponse",
    "build_openai_stream_chunks",
    "encode_sse_data",
    "split_every",
]
