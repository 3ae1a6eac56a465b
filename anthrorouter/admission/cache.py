"""Expiring API key memo and fixed-window rate limiter."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..logging import mask_key
from .policy import KeyPolicy

logger = logging.getLogger("anthrorouter")

DEFAULT_KEY_TTL_MS = 5 * 60 * 1000
DEFAULT_RATE_LIMIT = 100
DEFAULT_RATE_WINDOW_MS = 60 * 1000
DEFAULT_SWEEP_INTERVAL_S = 60.0

RATE_LIMIT_HEADERS = ("X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset")

Clock = Callable[[], int]


def epoch_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def hash_api_key(raw_key: str) -> str:
    """One-way digest used as the rate table key."""
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


@dataclass
class AdmissionEntry:
    """Memoized validity of one raw key."""

    valid: bool
    expires_at: int


@dataclass
class RateWindow:
    """Request counter for one hashed key."""

    count: int
    reset_at: int


@dataclass(frozen=True)
class RateLimitStatus:
    """Result of metering one request against its window."""

    allowed: bool
    remaining: int
    reset_at: int
    limit: int = DEFAULT_RATE_LIMIT

    @property
    def reset_epoch_seconds(self) -> int:
        return self.reset_at // 1000

    def headers(self) -> dict[str, str]:
        values = (self.limit, self.remaining, self.reset_epoch_seconds)
        return {name: str(value) for name, value in zip(RATE_LIMIT_HEADERS, values)}


class AdmissionCache:
    """Process-wide admission state shared by every request.

    Holds two tables:
    - raw key -> AdmissionEntry, so the key policy runs at most once per TTL
    - sha256(key) -> RateWindow, a fixed window counter per key

    Thread Safety:
    - Every read-modify-write happens under one lock, so concurrent bursts
      cannot undercount a window.
    - The sweeper takes the same lock and never blocks on I/O.

    Both tables are purged lazily on access and by ``sweep``, which
    ``start_sweeper`` runs periodically as a background task.
    """

    def __init__(
        self,
        policy: Optional[Callable[[str], bool]] = None,
        *,
        clock: Clock = epoch_millis,
        key_ttl_ms: int = DEFAULT_KEY_TTL_MS,
        rate_limit: int = DEFAULT_RATE_LIMIT,
        rate_window_ms: int = DEFAULT_RATE_WINDOW_MS,
        sweep_interval_s: float = DEFAULT_SWEEP_INTERVAL_S,
    ) -> None:
        self.policy = policy if policy is not None else KeyPolicy()
        self.clock = clock
        self.key_ttl_ms = key_ttl_ms
        self.rate_limit = rate_limit
        self.rate_window_ms = rate_window_ms
        self.sweep_interval_s = sweep_interval_s

        self._lock = threading.Lock()
        self._entries: dict[str, AdmissionEntry] = {}
        self._windows: dict[str, RateWindow] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def validate(self, raw_key: str) -> bool:
        """Return whether ``raw_key`` is acceptable, memoized for the TTL."""
        with self._lock:
            now = self.clock()
            cached = self._entries.get(raw_key)
            if cached is not None and cached.expires_at > now:
                return cached.valid

            is_valid = bool(self.policy(raw_key))
            self._entries[raw_key] = AdmissionEntry(
                valid=is_valid,
                expires_at=now + self.key_ttl_ms,
            )

        if is_valid and logger.isEnabledFor(logging.DEBUG):
            logger.debug("API key used: %s", mask_key(raw_key))
        return is_valid

    def check_rate(self, raw_key: str) -> RateLimitStatus:
        """Meter one request for ``raw_key``.

        Every call counts, including calls whose request ends up rejected,
        so callers must invoke this at most once per inbound request.
        """
        key_hash = hash_api_key(raw_key)
        with self._lock:
            now = self.clock()
            window = self._windows.get(key_hash)
            if window is None or window.reset_at < now:
                window = RateWindow(count=0, reset_at=now + self.rate_window_ms)
                self._windows[key_hash] = window

            window.count += 1
            count = window.count
            reset_at = window.reset_at

        return RateLimitStatus(
            allowed=count <= self.rate_limit,
            remaining=max(0, self.rate_limit - count),
            reset_at=reset_at,
            limit=self.rate_limit,
        )

    def sweep(self) -> int:
        """Evict expired entries and windows. Returns how many were removed."""
        with self._lock:
            now = self.clock()
            stale_keys = [key for key, entry in self._entries.items() if entry.expires_at < now]
            for key in stale_keys:
                del self._entries[key]
            stale_windows = [key for key, window in self._windows.items() if window.reset_at < now]
            for key in stale_windows:
                del self._windows[key]

        evicted = len(stale_keys) + len(stale_windows)
        if evicted:
            logger.debug(
                "Admission sweep evicted %d key entries and %d rate windows",
                len(stale_keys),
                len(stale_windows),
            )
        return evicted

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def window_count(self) -> int:
        with self._lock:
            return len(self._windows)

    # -------------------------------------------------------------------------
    # Background sweeper
    # -------------------------------------------------------------------------

    def start_sweeper(self) -> asyncio.Task:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop())
        return self._sweeper

    async def stop_sweeper(self) -> None:
        sweeper = self._sweeper
        self._sweeper = None
        if sweeper is None:
            return
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_s)
            self.sweep()
