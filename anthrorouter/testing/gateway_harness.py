"""Gateway harness for in-process simulation tests."""

from __future__ import annotations

from typing import Any, Optional

import httpx
from fastapi import FastAPI

from ..admission import AdmissionCache
from ..app import build_admission_cache, create_app
from ..config_loader import GatewaySettings, UpstreamSettings
from .fake_upstream import FakeUpstream

UPSTREAM_BASE_URL = "http://upstream.local/v1"


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class GatewayHarness:
    """Build a gateway app wired to a FakeUpstream and a fake clock.

    Features:
    - Creates an in-process gateway app
    - Routes upstream traffic to the FakeUpstream through ASGITransport
    - Exposes the admission cache and clock for expiry tests

    Usage:
        with GatewayHarness() as gateway:
            gateway.upstream.enqueue_openai_chat_response("Hello")
            async with gateway.make_async_client() as client:
                response = await client.post("/v1/messages", json={...}, headers=...)
    """

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        *,
        upstream: Optional[FakeUpstream] = None,
        clock: Optional[FakeClock] = None,
    ) -> None:
        self.settings = settings or GatewaySettings(
            upstream=UpstreamSettings(base_url=UPSTREAM_BASE_URL, api_key="upstream-key"),
        )
        self.upstream = upstream or FakeUpstream()
        self.clock = clock or FakeClock()
        self.admission: AdmissionCache = build_admission_cache(self.settings, clock=self.clock)
        self.app: FastAPI = create_app(
            self.settings,
            admission=self.admission,
            transport=httpx.ASGITransport(app=self.upstream.app),
        )

    def close(self) -> None:
        """Clean up harness state."""
        self.upstream.clear()

    def __enter__(self) -> "GatewayHarness":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def make_async_client(
        self, base_url: str = "http://gateway.local"
    ) -> httpx.AsyncClient:
        """Create an async HTTP client for the gateway."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.app),
            base_url=base_url,
        )

    @staticmethod
    def auth_headers(api_key: str = "test-api-key-123") -> dict[str, Any]:
        return {"x-api-key": api_key}
