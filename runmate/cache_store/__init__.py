"""Dashboard cache storage backends."""

from .base import CacheStore
from .memory import InMemoryCacheStore
from .redis import RedisCacheStore

__all__ = [
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
]
