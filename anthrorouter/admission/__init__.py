"""Admission control: API key validation and per-key rate limiting.

Usage:
    from anthrorouter.admission import AdmissionCache, KeyPolicy

    cache = AdmissionCache(KeyPolicy(allowed_keys=["my-key"]))
    if cache.validate(raw_key):
        status = cache.check_rate(raw_key)
"""

from .cache import (
    AdmissionCache,
    AdmissionEntry,
    RateLimitStatus,
    RateWindow,
    epoch_millis,
    hash_api_key,
)
from .policy import DEFAULT_DEV_KEY, KeyPolicy

__all__ = [
    "AdmissionCache",
    "AdmissionEntry",
    "DEFAULT_DEV_KEY",
    "KeyPolicy",
    "RateLimitStatus",
    "RateWindow",
    "epoch_millis",
    "hash_api_key",
]
