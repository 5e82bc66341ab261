"""Durable key/value cache used for memoization."""

from orgsync.cache.base import DurableCache, cache_key, memoize
from orgsync.cache.file_cache import FileCache
from orgsync.cache.memory_cache import MemoryCache

__all__ = ["DurableCache", "FileCache", "MemoryCache", "cache_key", "memoize"]
