"""exceptions.py - Exception hierarchy for stablecache.

Defines exceptions for:
- Lookups through the indexing accessor on absent keys
- Exclusive-mode sessions that cannot be granted or have ended
- Invalid cache configuration

Failures raised by a ``compute`` callback are never wrapped; they propagate
to the caller unchanged.
"""

from __future__ import annotations

from typing import Any


class StableCacheError(Exception):
    """Base exception for all stablecache errors."""

    pass


class KeyNotFoundError(StableCacheError, KeyError):
    """Raised by ``cache[key]`` when *key* has no entry.

    Use ``cache.get(key)`` for a lookup that reports absence with ``None``.
    """

    def __init__(self, key: Any):
        self.key = key
        super().__init__(key)

    def __str__(self) -> str:
        return f"Key not found in cache: {self.key!r}"


class ExclusiveAccessError(StableCacheError, RuntimeError):
    """Raised when exclusive access cannot be granted or has already ended.

    Examples:
        - ``exclusive()`` called from inside a running ``compute`` callback
        - ``exclusive()`` nested inside another session of the same cache
        - an ``ExclusiveView`` used after its ``with`` block exited
    """

    pass


class CacheConfigError(StableCacheError, ValueError):
    """Raised when a CacheConfig field has an invalid value."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid cache config field '{field}': {reason}")
