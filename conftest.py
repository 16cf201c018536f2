import logging

import pytest
from prometheus_client import CollectorRegistry

from stablecache.cache import StableCache
from stablecache.config import CacheConfig


@pytest.fixture
def registry():
    """Fresh Prometheus registry so counter values start at zero per test."""
    return CollectorRegistry()


@pytest.fixture
def config(registry):
    return CacheConfig(name="test", metrics_enabled=True, registry=registry)


@pytest.fixture
def cache(config):
    return StableCache(config=config)


@pytest.fixture
def sample(registry):
    """Read a stablecache counter for the ``test`` cache from the registry."""

    def _sample(counter: str, name: str = "test") -> float:
        value = registry.get_sample_value(
            f"stablecache_{counter}_total", {"cache": name}
        )
        return 0.0 if value is None else value

    return _sample


@pytest.fixture
def debug_logs(caplog):
    caplog.set_level(logging.DEBUG, logger="stablecache")
    return caplog
