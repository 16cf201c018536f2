"""cache.py - StableCache: append-only keyed cache with stable value references

The index is a plain ``dict`` mapping each key to a ``Cell``. The cell is
allocated once, when the entry is added, and holds the value; growing the
dict reorganises only its hash table, never the cells. Through the shared
interface (``insert``, ``get``, ``get_or_insert``, ``cache[key]``) an entry is
only ever added, so a value handed out once is the same object, with the same
contents, for the rest of the cache's life.

Removal, overwrite and iteration exist only inside ``exclusive()``, which the
caller may enter only when it holds no value obtained from the cache.

Note that ``insert`` on an existing key is a silent no-op (first write wins).
Replacing the value would change what earlier ``get`` calls returned, so
upsert is only available in exclusive mode.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Hashable, Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .config import CacheConfig
from .exceptions import ExclusiveAccessError, KeyNotFoundError
from .logger import get_logger
from .metrics import BoundCacheMetrics, metrics_for

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING: Any = object()


@dataclass(frozen=True, slots=True)
class Cell(Generic[V]):
    """Holder for one stored value, allocated once per entry."""

    value: V


class StableCache(Generic[K, V]):
    """
    StableCache: keyed cache that only grows through its shared interface.

    - ``insert`` / ``get_or_insert`` add entries; existing entries are never
      replaced by them.
    - Values returned by ``get`` / ``get_or_insert`` / ``cache[key]`` stay
      valid while later entries are added.
    - ``compute`` callbacks run under a re-entrant lock, so they may call back
      into the same cache (recursive memoisation) and run at most once per
      absent key, also across threads.
    - ``exclusive()`` gives raw mutable access to the index.

    Example:
        cache = StableCache()
        node = cache.get_or_insert(("Add", 1, 2), lambda: build_node(1, 2))
    """

    # Shared mode has no iteration; use exclusive() for it.
    __iter__ = None

    def __init__(self, *, config: CacheConfig | None = None) -> None:
        self.config = config if config is not None else CacheConfig.from_env()
        self._index: dict[K, Cell[V]] = {}
        self._writer_lock = threading.RLock()
        self._compute_depth = 0
        "Number of compute callbacks running; only touched by the lock owner"
        self._exclusive_view: ExclusiveView[K, V] | None = None
        "View of the open exclusive session, if any"
        self._metrics: BoundCacheMetrics | None = None
        if self.config.metrics_enabled:
            self._metrics = metrics_for(self.config.registry).bind(self.config.name)

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[K, V], *, config: CacheConfig | None = None
    ) -> StableCache[K, V]:
        """Create a cache pre-populated with the entries of *mapping*."""
        cache = cls(config=config)
        cache._index = {key: Cell(value) for key, value in mapping.items()}
        if cache._metrics is not None and cache._index:
            cache._metrics.inserts.inc(len(cache._index))
        logger.debug(
            "[StableCache.from_mapping] %s: loaded %d entries",
            cache.config.name,
            len(cache._index),
        )
        return cache

    def insert(self, key: K, value: V) -> None:
        """Store *value* under *key* unless *key* already has an entry.

        An existing entry is kept as is; the call is then a no-op.
        """
        with self._writer_lock:
            if key in self._index:
                logger.debug(
                    "[StableCache.insert] %s: key %r already present, insert ignored",
                    self.config.name,
                    key,
                )
                if self._metrics is not None:
                    self._metrics.conflicts.inc()
                return
            self._index[key] = Cell(value)
        if self._metrics is not None:
            self._metrics.inserts.inc()

    def get(self, key: K, default: V | None = None) -> V | None:
        """Return the value stored under *key*, or *default* if absent."""
        with self._writer_lock:
            cell = self._index.get(key)
        if cell is None:
            if self._metrics is not None:
                self._metrics.misses.inc()
            return default
        if self._metrics is not None:
            self._metrics.hits.inc()
        return cell.value

    def get_or_insert(self, key: K, compute: Callable[[], V]) -> V:
        """Return the value under *key*, computing and storing it on a miss.

        *compute* is called with no arguments, only when *key* is absent. If
        it raises, nothing is stored and the exception propagates unchanged.

        *compute* may call back into this cache. If such a nested call stores
        *key* itself, that first value is kept and returned; the outer result
        is discarded.
        """
        with self._writer_lock:
            cell = self._index.get(key)
            if cell is not None:
                if self._metrics is not None:
                    self._metrics.hits.inc()
                return cell.value

            if self._metrics is not None:
                self._metrics.misses.inc()
            self._compute_depth += 1
            try:
                value = compute()
            except BaseException:
                logger.debug(
                    "[StableCache.get_or_insert] %s: compute for key %r raised",
                    self.config.name,
                    key,
                    exc_info=True,
                )
                if self._metrics is not None:
                    self._metrics.compute_failures.inc()
                raise
            finally:
                self._compute_depth -= 1

            cell = self._index.get(key)
            if cell is not None:
                logger.warning(
                    "[StableCache.get_or_insert] %s: key %r was stored while its own "
                    "compute was running; keeping the first value",
                    self.config.name,
                    key,
                )
                return cell.value
            cell = Cell(value)
            self._index[key] = cell
        if self._metrics is not None:
            self._metrics.inserts.inc()
        return cell.value

    def __getitem__(self, key: K) -> V:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            raise KeyNotFoundError(key)
        return value

    def __contains__(self, key: object) -> bool:
        with self._writer_lock:
            return key in self._index

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"StableCache(name={self.config.name!r}, entries={len(self._index)})"

    @contextmanager
    def exclusive(self) -> Iterator[ExclusiveView[K, V]]:
        """Open an exclusive session on the raw index.

        Inside the block the yielded view supports overwrite, removal and
        iteration. Values obtained earlier from the cache may no longer be
        the stored ones afterwards, so the caller must not hold any.

        Other threads using this cache block until the session ends. The view
        belongs to the thread that opened the session; other threads may not
        use it.

        Raises:
            ExclusiveAccessError: when called from inside a ``compute``
                callback, or while another session of this cache is open.
                The view raises it when used after the block or from another
                thread.
        """
        with self._writer_lock:
            if self._compute_depth:
                raise ExclusiveAccessError(
                    "exclusive() called from inside a get_or_insert compute callback"
                )
            if self._exclusive_view is not None:
                raise ExclusiveAccessError(
                    f"an exclusive session is already open on cache {self.config.name!r}"
                )
            view = ExclusiveView(self)
            self._exclusive_view = view
            logger.debug("[StableCache.exclusive] %s: session opened", self.config.name)
            try:
                yield view
            finally:
                view._open = False
                self._exclusive_view = None
                logger.debug(
                    "[StableCache.exclusive] %s: session closed (%d entries)",
                    self.config.name,
                    len(self._index),
                )


class ExclusiveView(MutableMapping[K, V]):
    """Mutable mapping over a cache's index, usable only inside ``exclusive()``.

    Assigning a key stores the value in a fresh cell; shared-mode lookups see
    the new value from then on.
    """

    __slots__ = ("_cache", "_open", "_owner")

    def __init__(self, cache: StableCache[K, V]) -> None:
        self._cache = cache
        self._open = True
        self._owner = threading.get_ident()
        "Thread that opened the session; the only one holding the cache lock"

    def _index(self) -> dict[K, Cell[V]]:
        if not self._open:
            raise ExclusiveAccessError("exclusive view used after its session ended")
        if threading.get_ident() != self._owner:
            raise ExclusiveAccessError(
                "exclusive view used from a thread other than the one that opened it"
            )
        return self._cache._index

    def __getitem__(self, key: K) -> V:
        index = self._index()
        try:
            cell = index[key]
        except KeyError:
            raise KeyNotFoundError(key) from None
        return cell.value

    def __setitem__(self, key: K, value: V) -> None:
        index = self._index()
        is_new = key not in index
        index[key] = Cell(value)
        if is_new and self._cache._metrics is not None:
            self._cache._metrics.inserts.inc()

    def __delitem__(self, key: K) -> None:
        index = self._index()
        try:
            del index[key]
        except KeyError:
            raise KeyNotFoundError(key) from None

    def __iter__(self) -> Iterator[K]:
        return iter(self._index())

    def __len__(self) -> int:
        return len(self._index())

    def __contains__(self, key: object) -> bool:
        return key in self._index()

    def clear(self) -> None:
        self._index().clear()

    def __repr__(self) -> str:
        state = "open" if self._open else "closed"
        return f"ExclusiveView(cache={self._cache.config.name!r}, {state})"
