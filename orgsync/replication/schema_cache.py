"""Memoized describe lookups."""

import asyncio
from typing import Dict, List, Tuple

from orgsync.observability.logging_config import get_logger
from orgsync.replication import ObjectDescriptor
from orgsync.replication.client import StoreClient

logger = get_logger(__name__)


class SchemaCache:
    """
    Per-run cache of object descriptors.

    Entries are keyed by (connection key, object type) and never evicted.
    Concurrent requests for the same type await one shared fetch.
    """

    def __init__(self) -> None:
        self._tasks: Dict[Tuple[str, str], "asyncio.Task[ObjectDescriptor]"] = {}
        self._global: Dict[str, "asyncio.Task[List[ObjectDescriptor]]"] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    async def describe(self, client: StoreClient, object_type: str) -> ObjectDescriptor:
        """
        Describe an object type.

        Args:
            client: Store client of the org to describe
            object_type: Object type name

        Returns:
            Object descriptor
        """
        key = (client.connection_key, object_type)
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(client, object_type))
            self._tasks[key] = task

        try:
            return await asyncio.shield(task)
        except Exception:
            # Failed fetches are not memoized
            if self._tasks.get(key) is task:
                del self._tasks[key]
            raise

    async def _fetch(self, client: StoreClient, object_type: str) -> ObjectDescriptor:
        logger.debug(f"[{client.label}] describing {object_type}")
        payload = await client.describe(object_type)
        return ObjectDescriptor.from_dict(payload)

    async def describe_global(self, client: StoreClient) -> List[ObjectDescriptor]:
        """Return the object summaries of an org (descriptors without fields)."""
        key = client.connection_key
        task = self._global.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_global(client))
            self._global[key] = task

        try:
            return await asyncio.shield(task)
        except Exception:
            if self._global.get(key) is task:
                del self._global[key]
            raise

    async def _fetch_global(self, client: StoreClient) -> List[ObjectDescriptor]:
        payload = await client.describe_global()
        return [ObjectDescriptor.from_dict(s) for s in payload.get("sobjects", [])]

    async def has_field(self, client: StoreClient, object_type: str, field_name: str) -> bool:
        """
        Whether an object type exposes a field.

        Types that cannot be described are reported as not having it.
        """
        try:
            descriptor = await self.describe(client, object_type)
        except Exception as e:
            logger.warning(f"[{client.label}] could not describe {object_type}: {e}")
            return False
        return descriptor.has_field(field_name)
