"""
Memoizing Wrappers — In-Memory Method Caches

Implements:
- cached(controller)              → single-slot cache, sync
- cached_by_key(controller)       → cache keyed by first argument, sync
- cached_async(controller)        → single-slot cache, async
- cached_by_key_async(controller) → cache keyed by first argument, async
- memoize(func, controller, keyed, is_async) → the generic wrapper behind all four

Every wrapper checks its controller's epoch token on each call. A changed
token means the whole cache is stale: it is dropped before any lookup
(lazy clear). Failures are never cached.

Async wrappers cache the pending task itself, so concurrent callers share
one in-flight call per key. Callers await the task through asyncio.shield:
one caller giving up never cancels the computation for the others.
"""

import asyncio
import functools
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from .controller import DEFAULT_CONTROLLER, CacheController

logger = logging.getLogger(__name__)

_NOTHING = object()
_UNKEYED = object()


@dataclass
class CacheStats:
    """Per-wrapper counters. Informational only."""
    hits: int = 0
    misses: int = 0
    clears: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class _CacheStore:
    """Entries of one wrapper plus the epoch token they were computed under."""

    def __init__(self, controller: CacheController, name: str):
        self.controller = controller
        self.name = name
        self.stats = CacheStats()
        self._token = controller.current_token
        self._entries: Dict[Hashable, Any] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def reconcile(self) -> None:
        token = self.controller.current_token
        if self._token is token:
            return
        if self._entries:
            logger.debug(f"Dropping {len(self._entries)} stale entries for {self.name}")
        self._entries = {}
        self._token = token
        self.stats.clears += 1

    def lookup(self, key: Hashable) -> Any:
        self.reconcile()
        value = self._entries.get(key, _NOTHING)
        if value is _NOTHING:
            self.stats.misses += 1
        else:
            self.stats.hits += 1
        return value

    def store(self, key: Hashable, value: Any) -> None:
        self._entries[key] = value

    def discard(self, key: Hashable, value: Any) -> None:
        # Identity check: the slot may already hold a newer value.
        if self._entries.get(key, _NOTHING) is value:
            del self._entries[key]


class _Memoized:
    """Synchronous memoizing wrapper."""

    def __init__(self, func: Callable, controller: CacheController, keyed: bool):
        functools.update_wrapper(self, func)
        self.keyed = keyed
        self._store = _CacheStore(controller, getattr(func, "__qualname__", repr(func)))

    @property
    def cache_controller(self) -> CacheController:
        return self._store.controller

    @property
    def cache_stats(self) -> CacheStats:
        return self._store.stats

    def __call__(self, *args, **kwargs):
        return self._invoke(args, kwargs, ())

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return _BoundMemoized(self, instance)

    def __repr__(self) -> str:
        return f"<memoized {self._store.name} keyed={self.keyed}>"

    def _key(self, args: Tuple) -> Hashable:
        if not self.keyed:
            return _UNKEYED
        if not args:
            raise TypeError(f"{self._store.name}() missing required cache key argument")
        return args[0]

    def _invoke(self, args: Tuple, kwargs: Dict[str, Any], bound: Tuple):
        key = self._key(args)
        value = self._store.lookup(key)
        if value is _NOTHING:
            logger.debug(f"Cache miss: {self._store.name}")
            value = self.__wrapped__(*bound, *args, **kwargs)
            self._store.store(key, value)
        return value


class _AsyncMemoized(_Memoized):
    """Asynchronous memoizing wrapper. Caches the task, not its result."""

    def _invoke(self, args: Tuple, kwargs: Dict[str, Any], bound: Tuple):
        return self._call(args, kwargs, bound)

    async def _call(self, args: Tuple, kwargs: Dict[str, Any], bound: Tuple):
        # Nothing below awaits until the task is stored.
        key = self._key(args)
        task = self._store.lookup(key)
        if task is not _NOTHING and _failed(task):
            # Finished before its done callback ran.
            self._store.discard(key, task)
            task = _NOTHING
        if task is _NOTHING:
            logger.debug(f"Cache miss: {self._store.name}")
            task = asyncio.ensure_future(self.__wrapped__(*bound, *args, **kwargs))
            # Registered before any waiter, so the slot is empty by the time they see the failure.
            task.add_done_callback(functools.partial(self._discard_failed, key))
            self._store.store(key, task)
        return await asyncio.shield(task)

    def _discard_failed(self, key: Hashable, task: "asyncio.Future") -> None:
        if _failed(task):
            self._store.discard(key, task)


def _failed(task: "asyncio.Future") -> bool:
    """True once a task has ended by cancellation or exception."""
    return task.done() and (task.cancelled() or task.exception() is not None)


class _BoundMemoized:
    """A memoized function accessed through an instance."""

    __slots__ = ("_memoized", "_instance")

    def __init__(self, memoized: _Memoized, instance: Any):
        self._memoized = memoized
        self._instance = instance

    def __call__(self, *args, **kwargs):
        return self._memoized._invoke(args, kwargs, (self._instance,))

    def __getattr__(self, name: str) -> Any:
        return getattr(self._memoized, name)


def memoize(
    func: Callable,
    controller: Optional[CacheController] = None,
    keyed: bool = False,
    is_async: bool = False,
) -> _Memoized:
    """
    Wrap func in a cache bound to controller.

    Args:
        func: Callable to wrap. Must return an awaitable when is_async.
        controller: Invalidation controller (DEFAULT_CONTROLLER if None)
        keyed: Cache per first positional argument instead of a single slot.
            Remaining arguments are passed through and do not affect the key.
        is_async: Cache the pending computation of an async callable.

    Returns:
        Replacement callable with func's signature.
    """
    wrapper_cls = _AsyncMemoized if is_async else _Memoized
    return wrapper_cls(func, controller or DEFAULT_CONTROLLER, keyed)


def cached(controller: CacheController = None) -> Callable[[Callable], _Memoized]:
    """Decorator: cache the single result of a function until invalidation."""
    return functools.partial(memoize, controller=controller)


def cached_by_key(controller: CacheController = None) -> Callable[[Callable], _Memoized]:
    """Decorator: cache results per first argument until invalidation."""
    return functools.partial(memoize, controller=controller, keyed=True)


def cached_async(controller: CacheController = None) -> Callable[[Callable], _Memoized]:
    """Decorator: like cached(), for coroutine functions."""
    return functools.partial(memoize, controller=controller, is_async=True)


def cached_by_key_async(controller: CacheController = None) -> Callable[[Callable], _Memoized]:
    """Decorator: like cached_by_key(), for coroutine functions."""
    return functools.partial(memoize, controller=controller, keyed=True, is_async=True)
