"""
mcmeta-util Cache Layer
Generational in-memory memoization: one epoch token per controller,
lazily checked by every cached function bound to it.
"""

from .controller import CacheController, EpochToken, DEFAULT_CONTROLLER, clear_all_caches
from .memoize import (
    CacheStats, memoize,
    cached, cached_by_key, cached_async, cached_by_key_async,
)

__all__ = [
    'CacheController', 'EpochToken', 'DEFAULT_CONTROLLER', 'clear_all_caches',
    'CacheStats', 'memoize',
    'cached', 'cached_by_key', 'cached_async', 'cached_by_key_async',
]
