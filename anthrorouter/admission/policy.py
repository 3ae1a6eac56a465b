"""API key validity policy."""

from __future__ import annotations

import hmac
from typing import Iterable, Optional

DEFAULT_KEY_PREFIX = "sk-ant-"
DEFAULT_MIN_KEY_LENGTH = 40
DEFAULT_DEV_KEY = "test-api-key-123"


class KeyPolicy:
    """Decides whether a raw API key is acceptable.

    A key passes if any of these hold:
    - it has the expected prefix and is longer than ``min_length``
    - it is in the configured allow-list
    - it equals the development key (when one is configured)

    Malformed keys are simply invalid; the policy never raises.
    """

    def __init__(
        self,
        allowed_keys: Iterable[str] = (),
        dev_key: Optional[str] = DEFAULT_DEV_KEY,
        prefix: str = DEFAULT_KEY_PREFIX,
        min_length: int = DEFAULT_MIN_KEY_LENGTH,
    ) -> None:
        self.allowed_keys = tuple(key for key in allowed_keys if key)
        self.dev_key = dev_key or None
        self.prefix = prefix
        self.min_length = min_length

    def __call__(self, raw_key: str) -> bool:
        if not isinstance(raw_key, str) or not raw_key:
            return False

        is_valid_format = raw_key.startswith(self.prefix) and len(raw_key) > self.min_length
        is_allowed = self._in_allow_list(raw_key)
        is_dev_key = self.dev_key is not None and hmac.compare_digest(raw_key, self.dev_key)

        return is_valid_format or is_allowed or is_dev_key

    def _in_allow_list(self, raw_key: str) -> bool:
        # Constant-time comparison against every entry
        matched = False
        for allowed in self.allowed_keys:
            if hmac.compare_digest(raw_key, allowed):
                matched = True
        return matched
