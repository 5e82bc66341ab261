"""Common utility functions."""

import asyncio
import hashlib
import json
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Tuple, Type, TypeVar

T = TypeVar("T")


def calculate_checksum(data: Dict[str, Any]) -> str:
    """Calculate MD5 checksum of data dictionary."""
    # Sort keys for consistent hashing
    sorted_data = json.dumps(data, sort_keys=True, default=str)
    return hashlib.md5(sorted_data.encode()).hexdigest()


def content_hash(record: Dict[str, Any]) -> str:
    """
    Stable hash of a transformed record.

    Key order does not change the hash, so two records with the same
    fields and values always map to the same upsert cache entry.
    """
    return calculate_checksum(record)


def chunk(items: Iterable[T], chunk_size: int) -> List[List[T]]:
    """
    Split items into lists of at most chunk_size elements.

    Args:
        items: Items to split
        chunk_size: Maximum size of each chunk

    Returns:
        List of chunks (empty list for no items)
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    chunks: List[List[T]] = []
    for item in items:
        if not chunks or len(chunks[-1]) >= chunk_size:
            chunks.append([])
        chunks[-1].append(item)
    return chunks


def flatten_dict(data: Dict[str, Any], parent_key: str = "", sep: str = ".") -> Dict[str, Any]:
    """
    Flatten nested dictionary.

    Args:
        data: Dictionary to flatten
        parent_key: Parent key for recursion
        sep: Separator for nested keys

    Returns:
        Flattened dictionary
    """
    items: List[tuple] = []
    for k, v in data.items():
        new_key = f"{parent_key}{sep}{k}" if parent_key else k
        if isinstance(v, dict):
            items.extend(flatten_dict(v, new_key, sep=sep).items())
        else:
            items.append((new_key, v))
    return dict(items)


def is_blank(value: Any) -> bool:
    """Falsy values (None, "", 0, False, empty containers) and whitespace-only strings."""
    if isinstance(value, str):
        return not value.strip()
    return not value


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
) -> T:
    """
    Retry coroutine function with exponential backoff.

    Args:
        func: Zero-argument coroutine function to retry
        retry_on: Exception types that trigger a retry
        max_retries: Maximum number of retries
        initial_delay: Initial delay in seconds
        backoff_factor: Backoff multiplier

    Returns:
        Function result

    Raises:
        Last exception if all retries fail
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return await func()
        except retry_on:
            if attempt >= max_retries:
                raise
            await asyncio.sleep(delay)
            delay *= backoff_factor

    raise RuntimeError("unreachable")  # pragma: no cover
