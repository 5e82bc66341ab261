"""In-process cache backend."""

from typing import Any, Dict, Iterator, Optional

from orgsync.cache.base import DurableCache


class MemoryCache(DurableCache):
    """Dictionary backed cache; lives as long as the process."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def put(self, key: str, value: Any) -> None:
        self._data[key] = value

    def list(self, prefix: str = "") -> Iterator[str]:
        for key in list(self._data):
            if key.startswith(prefix):
                yield key

    def delete(self, key: str) -> None:
        self._data.pop(key, None)
