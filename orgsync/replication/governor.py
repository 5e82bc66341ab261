"""Concurrency governor for remote calls."""

import asyncio
from typing import Any, Awaitable, Callable, Dict, TypeVar

from orgsync.common.config import ReplicationConfig
from orgsync.common.utils import retry_with_backoff
from orgsync.observability.logging_config import get_logger
from orgsync.replication.errors import TransientRemoteError

logger = get_logger(__name__)

T = TypeVar("T")


class ConcurrencyGovernor:
    """
    Bounds the number of outstanding calls of one kind.

    Waiting callers are admitted in arrival order as slots free up.
    Calls failing with TransientRemoteError are retried with exponential
    backoff; the slot is released while the caller sleeps.
    """

    def __init__(
        self,
        name: str,
        limit: int,
        max_retries: int = 3,
        initial_delay: float = 1.0,
    ) -> None:
        """
        Initialize governor.

        Args:
            name: Name used in logs
            limit: Maximum concurrent calls
            max_retries: Retries for transient failures
            initial_delay: First backoff delay in seconds
        """
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        self.name = name
        self.limit = limit
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self._semaphore = asyncio.Semaphore(limit)
        self._in_flight = 0

    def __repr__(self) -> str:
        return f"ConcurrencyGovernor(name={self.name!r}, limit={self.limit})"

    @property
    def in_flight(self) -> int:
        """Calls currently holding a slot."""
        return self._in_flight

    async def _attempt(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        async with self._semaphore:
            self._in_flight += 1
            try:
                return await func(*args, **kwargs)
            finally:
                self._in_flight -= 1

    async def run(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Run a coroutine function within the concurrency limit.

        Args:
            func: Coroutine function
            args: Positional arguments
            kwargs: Keyword arguments

        Returns:
            The function result
        """
        attempts = 0

        async def attempt() -> T:
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                logger.warning(f"[{self.name}] retrying transient failure (attempt {attempts})")
            return await self._attempt(func, *args, **kwargs)

        return await retry_with_backoff(
            attempt,
            retry_on=(TransientRemoteError,),
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
        )


def build_governors(config: ReplicationConfig) -> Dict[str, ConcurrencyGovernor]:
    """Create the describe/query/upsert governors from configuration."""
    limits: Dict[str, int] = {
        "describe": config.describe_concurrency,
        "query": config.query_concurrency,
        "upsert": config.upsert_concurrency,
    }
    return {
        name: ConcurrencyGovernor(
            name,
            limit,
            max_retries=config.max_retries,
            initial_delay=config.retry_initial_delay,
        )
        for name, limit in limits.items()
    }
