"""metrics.py - Prometheus counters for StableCache instances"""

from __future__ import annotations

import threading
import weakref
from dataclasses import dataclass

from prometheus_client import REGISTRY, CollectorRegistry, Counter


@dataclass(frozen=True)
class CacheMetrics:
    """Counter families shared by every cache that reports to one registry."""

    hits: Counter
    misses: Counter
    inserts: Counter
    conflicts: Counter
    compute_failures: Counter

    def bind(self, name: str) -> "BoundCacheMetrics":
        """Return the label children for the cache called *name*."""
        return BoundCacheMetrics(
            hits=self.hits.labels(cache=name),
            misses=self.misses.labels(cache=name),
            inserts=self.inserts.labels(cache=name),
            conflicts=self.conflicts.labels(cache=name),
            compute_failures=self.compute_failures.labels(cache=name),
        )


@dataclass(frozen=True)
class BoundCacheMetrics:
    hits: Counter
    misses: Counter
    inserts: Counter
    conflicts: Counter
    compute_failures: Counter


def create_cache_metrics(registry: CollectorRegistry | None = None) -> CacheMetrics:
    """Register the stablecache counter families on *registry*.

    Registering twice on the same registry raises ``ValueError``
    (duplicated timeseries); use ``metrics_for`` to share families.
    """
    registry = registry if registry is not None else REGISTRY
    return CacheMetrics(
        hits=Counter(
            "stablecache_hits_total",
            "Lookups that found an existing entry",
            ["cache"],
            registry=registry,
        ),
        misses=Counter(
            "stablecache_misses_total",
            "Lookups that found no entry",
            ["cache"],
            registry=registry,
        ),
        inserts=Counter(
            "stablecache_inserts_total",
            "Entries added to the cache",
            ["cache"],
            registry=registry,
        ),
        conflicts=Counter(
            "stablecache_conflicts_total",
            "Shared-mode inserts ignored because the key already had an entry",
            ["cache"],
            registry=registry,
        ),
        compute_failures=Counter(
            "stablecache_compute_failures_total",
            "get_or_insert compute callbacks that raised",
            ["cache"],
            registry=registry,
        ),
    )


_metrics_lock = threading.Lock()
_metrics_by_registry: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()


def metrics_for(registry: CollectorRegistry | None = None) -> CacheMetrics:
    """Return the counter families for *registry*, creating them once."""
    registry = registry if registry is not None else REGISTRY
    with _metrics_lock:
        metrics = _metrics_by_registry.get(registry)
        if metrics is None:
            metrics = create_cache_metrics(registry)
            _metrics_by_registry[registry] = metrics
        return metrics
