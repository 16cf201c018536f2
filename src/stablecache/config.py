"""config.py - Per-cache configuration for stablecache

A cache needs no configuration; ``StableCache()`` uses ``CacheConfig.from_env()``.
The config only affects observability (the name used as a metrics label and
in log messages, and whether metrics are recorded at all).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any

from .exceptions import CacheConfigError

ENV_METRICS = "STABLECACHE_METRICS"
ENV_NAME = "STABLECACHE_NAME"
DEFAULT_NAME = "default"


def _metrics_enabled_from_env() -> bool:
    return os.getenv(ENV_METRICS, "1") != "0"


def _name_from_env() -> str:
    return os.getenv(ENV_NAME, DEFAULT_NAME)


@dataclass(frozen=True)
class CacheConfig:
    """Configuration for a single StableCache.

    Immutable; derive variants with ``with_name()`` or ``dataclasses.replace``.
    """

    name: str = field(default_factory=_name_from_env)
    "Label for metrics and log messages; several caches may share one."
    metrics_enabled: bool = field(default_factory=_metrics_enabled_from_env)
    registry: Any = None
    "prometheus_client CollectorRegistry; None means the global REGISTRY."

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise CacheConfigError("name", "must be a non-empty string")
        if not isinstance(self.metrics_enabled, bool):
            raise CacheConfigError("metrics_enabled", "must be a bool")

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Build a config from STABLECACHE_NAME and STABLECACHE_METRICS."""
        return cls()

    def with_name(self, name: str) -> "CacheConfig":
        return replace(self, name=name)
