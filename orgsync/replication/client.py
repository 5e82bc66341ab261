"""Governed, memoizing access to a remote store."""

import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from orgsync.cache.base import DurableCache, cache_key, memoize
from orgsync.common.config import ReplicationConfig
from orgsync.common.utils import calculate_checksum
from orgsync.observability.logging_config import get_logger
from orgsync.observability.metrics import MetricsExporter
from orgsync.replication.governor import ConcurrencyGovernor, build_governors
from orgsync.stores.base import Query, RemoteStore

logger = get_logger(__name__)

T = TypeVar("T")


class StoreClient:
    """
    Front door to a RemoteStore for the replication engine.

    Every call goes through the governor of its kind (describe, query or
    upsert). Describe and identity payloads are memoized in the durable
    cache; query results only when memoize_queries is set, and empty
    results never, so records created later are still picked up.
    """

    def __init__(
        self,
        store: RemoteStore,
        cache: Optional[DurableCache] = None,
        governors: Optional[Dict[str, ConcurrencyGovernor]] = None,
        metrics: Optional[MetricsExporter] = None,
        memoize_queries: bool = False,
        label: str = "store",
    ) -> None:
        """
        Initialize store client.

        Args:
            store: Remote store adapter
            cache: Durable cache for memoization (None disables it)
            governors: Governors keyed by call kind (defaults from configuration)
            metrics: Optional metrics exporter
            memoize_queries: Whether query results are memoized by default
            label: Name used in logs
        """
        self.store = store
        self.cache = cache
        self.governors = governors or build_governors(ReplicationConfig())
        self.metrics = metrics
        self.memoize_queries = memoize_queries
        self.label = label

    def __repr__(self) -> str:
        return f"StoreClient(label={self.label!r}, store={self.store!r})"

    @property
    def connection_key(self) -> str:
        return self.store.connection_key

    async def connect(self) -> None:
        await self.store.connect()

    def key(self, *parts: str) -> str:
        """Cache key namespaced by this connection."""
        return cache_key(self.connection_key, *parts)

    async def _governed(
        self, kind: str, call: str, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        started = time.monotonic()
        try:
            return await self.governors[kind].run(func, *args, **kwargs)
        finally:
            if self.metrics:
                self.metrics.record_remote_call(call, time.monotonic() - started)

    async def identity(self) -> Dict[str, Any]:
        return await memoize(
            self.cache,
            self.key("identity"),
            lambda: self._governed("describe", "identity", self.store.identity),
        )

    async def describe_global(self) -> Dict[str, Any]:
        return await memoize(
            self.cache,
            self.key("describeGlobal"),
            lambda: self._governed("describe", "describe_global", self.store.describe_global),
        )

    async def describe(self, object_type: str) -> Dict[str, Any]:
        return await memoize(
            self.cache,
            self.key("describe", object_type),
            lambda: self._governed("describe", "describe", self.store.describe, object_type),
        )

    async def query(self, query: Query, use_cache: Optional[bool] = None) -> Dict[str, Any]:
        """
        Run a query.

        Args:
            query: Query expression
            use_cache: Override the client's memoize_queries default

        Returns:
            {"records": [...]}
        """
        enabled = self.memoize_queries if use_cache is None else use_cache
        soql = query.to_soql()
        return await memoize(
            self.cache,
            self.key("query", calculate_checksum({"soql": soql})),
            lambda: self._governed("query", "query", self.store.query, query),
            enabled=enabled,
            should_cache=lambda res: bool(res and res.get("records")),
        )

    async def count(self, object_type: str) -> int:
        return await self._governed("query", "count", self.store.count, object_type)

    async def upsert_one(
        self, object_type: str, record: Dict[str, Any], external_id_field: str
    ) -> Dict[str, Any]:
        return await self._governed(
            "upsert", "upsert_one", self.store.upsert_one, object_type, record, external_id_field
        )

    async def upsert_bulk(
        self, object_type: str, records: Sequence[Dict[str, Any]], external_id_field: str
    ) -> List[Dict[str, Any]]:
        return await self._governed(
            "upsert", "upsert_bulk", self.store.upsert_bulk, object_type, records, external_id_field
        )
