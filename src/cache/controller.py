"""
Cache Controller — Generational Invalidation

A controller owns one epoch token. Every memoized function bound to the
controller remembers the token that was current when its cache was last
valid, and compares it against the live token on each call. Swapping the
token therefore invalidates every bound cache at once without touching any
of them.
"""

import logging

logger = logging.getLogger(__name__)


class EpochToken:
    """Opaque marker for one cache generation. Compared by identity only."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"<EpochToken at {id(self):#x}>"


class CacheController:
    """
    Owner of the current epoch token.

    The controller has no knowledge of which caches are bound to it;
    invalidate() is O(1) regardless of how many exist.
    """

    def __init__(self, name: str = None):
        self.name = name or "default"
        self._token = EpochToken()

    @property
    def current_token(self) -> EpochToken:
        return self._token

    def invalidate(self) -> None:
        """Start a new cache generation. Bound caches clear on their next call."""
        self._token = EpochToken()
        logger.debug(f"Cache epoch advanced for controller '{self.name}'")

    def __repr__(self) -> str:
        return f"CacheController(name={self.name!r})"


DEFAULT_CONTROLLER = CacheController()


def clear_all_caches() -> None:
    """Invalidate every cache bound to the process-wide default controller."""
    DEFAULT_CONTROLLER.invalidate()
