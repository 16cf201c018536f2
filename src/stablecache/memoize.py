"""memoize.py - Function memoisation backed by StableCache.get_or_insert"""

from __future__ import annotations

import functools
from collections.abc import Callable, Hashable
from typing import Any

from .cache import StableCache


def default_key(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Hashable:
    """Cache key for a call: the positional args, plus sorted keyword items."""
    if not kwargs:
        return args
    return (args, tuple(sorted(kwargs.items())))


def memoize(
    func: Callable[..., Any] | None = None,
    *,
    cache: StableCache | None = None,
    key: Callable[[tuple[Any, ...], dict[str, Any]], Hashable] = default_key,
):
    """Memoise *func* so each distinct call key is computed once.

    Usable bare (``@memoize``) or with options (``@memoize(cache=shared)``).
    Recursive functions are supported: the inner calls re-enter the cache
    while the outer call's value is still being computed.

    The wrapper exposes its backing cache as ``wrapper.cache``. Exceptions
    raised by *func* are not cached.

    Example:
        @memoize
        def fib(n):
            return n if n < 2 else fib(n - 1) + fib(n - 2)
    """

    def decorate(fn: Callable[..., Any]) -> Callable[..., Any]:
        backing = cache if cache is not None else StableCache()

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return backing.get_or_insert(
                key(args, kwargs), lambda: fn(*args, **kwargs)
            )

        wrapper.cache = backing  # type: ignore[attr-defined]
        return wrapper

    if func is not None:
        return decorate(func)
    return decorate
