"""File backed cache: one JSON document per key."""

import hashlib
import json
import os
from pathlib import Path
from typing import Any, Iterator, Optional

from orgsync.cache.base import DurableCache
from orgsync.observability.logging_config import get_logger

logger = get_logger(__name__)


class FileCache(DurableCache):
    """
    Cache persisted in a directory.

    Each entry is stored as ``<md5(key)>.json`` holding ``{"key": ..., "value": ...}``
    so keys of any shape map to safe file names and can be listed back.
    Writers are not coordinated: concurrent puts to the same key leave the
    last complete write.
    """

    def __init__(self, directory: str) -> None:
        """
        Initialize file cache.

        Args:
            directory: Directory holding cache entries (created if missing)
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Using file cache at {self.directory}")

    def __repr__(self) -> str:
        return f"FileCache(directory={str(self.directory)!r})"

    def _path(self, key: str) -> Path:
        digest = hashlib.md5(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def _read(self, path: Path) -> Optional[dict]:
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable cache entry {path.name}: {e}")
            return None

    def get(self, key: str) -> Optional[Any]:
        entry = self._read(self._path(key))
        if entry is None or entry.get("key") != key:
            return None
        return entry.get("value")

    def put(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_name(f"{path.name}.{os.getpid()}.tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump({"key": key, "value": value}, f, default=str)
        os.replace(tmp_path, path)

    def list(self, prefix: str = "") -> Iterator[str]:
        for path in sorted(self.directory.glob("*.json")):
            entry = self._read(path)
            if entry is None:
                continue
            key = entry.get("key", "")
            if key.startswith(prefix):
                yield key

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
