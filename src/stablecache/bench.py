"""
stablecache micro-benchmarks

Usage:
    python -m stablecache.bench [--size N] [--modulus M] [--repeat R] [--number K] [--metrics]

Scenarios:
    insert       - add N distinct integer keys to a fresh container
    insert/get   - N get-or-insert calls over keys i % M (mostly hits)

Each scenario runs against StableCache, a plain dict of cells (the same
layout without the shared-mode contract) and a dict.setdefault interning
map. The fastest of R repeats of K runs is reported.
"""

from __future__ import annotations

import argparse
import platform
import timeit
from collections.abc import Callable
from dataclasses import dataclass

from .cache import Cell, StableCache
from .config import CacheConfig
from .logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BenchResult:
    name: str
    best_seconds: float
    "Best time for one run of the scenario"
    ops: int

    @property
    def ops_per_second(self) -> float:
        if self.best_seconds <= 0:
            return float("inf")
        return self.ops / self.best_seconds


def build_scenarios(
    size: int, modulus: int, config: CacheConfig
) -> dict[str, Callable[[], object]]:
    """Return scenario name -> zero-argument callable doing one run."""

    def stablecache_insert():
        cache = StableCache(config=config)
        for i in range(size):
            cache.insert(i, i)
        return cache

    def dict_insert():
        index = {}
        for i in range(size):
            index[i] = Cell(i)
        return index

    def setdefault_insert():
        index = {}
        for i in range(size):
            index.setdefault(i, i)
        return index

    def stablecache_insert_get():
        cache = StableCache(config=config)
        for i in range(size):
            cache.get_or_insert(i % modulus, lambda: i)
        return cache

    def dict_insert_get():
        index = {}
        for i in range(size):
            key = i % modulus
            try:
                index[key].value
            except KeyError:
                index[key] = Cell(i)
        return index

    def setdefault_insert_get():
        index = {}
        for i in range(size):
            index.setdefault(i % modulus, i)
        return index

    return {
        f"stablecache insert {size}": stablecache_insert,
        f"dict insert {size}": dict_insert,
        f"setdefault insert {size}": setdefault_insert,
        f"stablecache insert/get {size}": stablecache_insert_get,
        f"dict insert/get {size}": dict_insert_get,
        f"setdefault insert/get {size}": setdefault_insert_get,
    }


def run_benchmarks(
    scenarios: dict[str, Callable[[], object]], size: int, repeat: int, number: int
) -> list[BenchResult]:
    results = []
    for name, fn in scenarios.items():
        logger.debug(f"[bench] running {name!r} ({repeat}x{number})")
        timings = timeit.repeat(fn, repeat=repeat, number=number)
        results.append(BenchResult(name, min(timings) / number, size))
    return results


def format_results(results: list[BenchResult]) -> str:
    width = max(len(r.name) for r in results)
    lines = [f"{'scenario':<{width}}  {'time/run':>12}  {'ops/s':>14}"]
    for r in results:
        lines.append(
            f"{r.name:<{width}}  {r.best_seconds * 1e6:>10.1f}us  {r.ops_per_second:>14,.0f}"
        )
    return "\n".join(lines)


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return value


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="stablecache micro-benchmarks")
    parser.add_argument("--size", type=_positive_int, default=1000, help="Operations per run")
    parser.add_argument(
        "--modulus", type=_positive_int, default=128, help="Key space for insert/get"
    )
    parser.add_argument("--repeat", type=_positive_int, default=5, help="Timing repeats")
    parser.add_argument("--number", type=_positive_int, default=100, help="Runs per repeat")
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Record Prometheus metrics in the StableCache scenarios",
    )
    args = parser.parse_args(argv)

    print(f"{platform.python_implementation()} {platform.python_version()}\n")

    config = CacheConfig(name="bench", metrics_enabled=args.metrics)
    scenarios = build_scenarios(args.size, args.modulus, config)
    results = run_benchmarks(scenarios, args.size, args.repeat, args.number)
    print(format_results(results))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
