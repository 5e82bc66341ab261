"""Durable cache contract and memoization helper."""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterator, Optional, TypeVar

T = TypeVar("T")


class DurableCache(ABC):
    """Persisted key/value store. Values must be JSON serializable."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when absent."""

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """Store a value, overwriting any previous one."""

    @abstractmethod
    def list(self, prefix: str = "") -> Iterator[str]:
        """Lazily yield keys starting with prefix."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""

    def clear(self, prefix: str = "") -> int:
        """Delete every key under prefix and return how many were removed."""
        keys = list(self.list(prefix))
        for key in keys:
            self.delete(key)
        return len(keys)


def cache_key(connection_key: str, *parts: str) -> str:
    """
    Build a cache key namespaced by the org it belongs to.

    Args:
        connection_key: Identity of the connection (org id)
        parts: Remaining key segments

    Returns:
        Slash separated key
    """
    if not connection_key:
        raise ValueError("connection_key is required")
    return "/".join([connection_key, *parts])


async def memoize(
    cache: Optional[DurableCache],
    key: str,
    fetch: Callable[[], Awaitable[T]],
    enabled: bool = True,
    should_cache: Callable[[T], bool] = lambda value: value is not None,
) -> T:
    """
    Return the cached value for key, or await fetch and store its result.

    Args:
        cache: Cache to use (None disables memoization)
        key: Cache key
        fetch: Coroutine function producing the value
        enabled: Whether to consult and fill the cache
        should_cache: Predicate deciding whether a fetched value is stored

    Returns:
        Cached or freshly fetched value
    """
    if cache is None or not enabled:
        return await fetch()

    cached = cache.get(key)
    if cached is not None:
        return cached

    value = await fetch()
    if should_cache(value):
        cache.put(key, value)
    return value
