"""Source identity to destination identity mapping."""

from typing import Dict, Optional, Set

from orgsync.observability.logging_config import get_logger
from orgsync.replication import ID_FIELD
from orgsync.replication.client import StoreClient
from orgsync.replication.pagination import query_all
from orgsync.replication.schema_cache import SchemaCache
from orgsync.stores.base import Condition, Query

logger = get_logger(__name__)


class ExternalIdMapper:
    """
    Per object type, append-only table of source id -> destination id.

    Tables are filled once per run from destination records carrying the
    external-id field, then extended with ids learned from upserts and
    lookups. Existing entries are never overwritten.
    """

    def __init__(
        self,
        destination: StoreClient,
        schema_cache: SchemaCache,
        external_id_field: str,
        page_size: int = 5000,
    ) -> None:
        """
        Initialize mapper.

        Args:
            destination: Destination store client
            schema_cache: Shared schema cache
            external_id_field: Destination field holding the source id
            page_size: Page size for the mapping scan
        """
        self.destination = destination
        self.schema_cache = schema_cache
        self.external_id_field = external_id_field
        self.page_size = page_size
        self._tables: Dict[str, Dict[str, str]] = {}
        self._loaded: Set[str] = set()
        self._unmappable: Set[str] = set()

    def is_loaded(self, object_type: str) -> bool:
        return object_type in self._loaded

    def is_mappable(self, object_type: str) -> bool:
        """False once a load found the type without the external-id field."""
        return object_type not in self._unmappable

    async def load_mapping(self, object_type: str) -> int:
        """
        Scan destination records of a type that carry a source id.

        Repeat calls for a loaded type are no-ops. Types without the
        external-id field are marked unmappable and not queried.

        Args:
            object_type: Object type name

        Returns:
            Number of mappings added by this call
        """
        if object_type in self._loaded:
            logger.debug(f"Mapping for {object_type} already loaded")
            return 0

        if not await self.schema_cache.has_field(
            self.destination, object_type, self.external_id_field
        ):
            logger.info(f"{object_type} has no {self.external_id_field} field, not mapping")
            self._unmappable.add(object_type)
            self._loaded.add(object_type)
            return 0

        logger.debug(f"Loading id mapping for {object_type}")
        query = Query(
            object_type=object_type,
            fields=(ID_FIELD, self.external_id_field),
            where=(
                Condition(self.external_id_field, "!=", ""),
                Condition("IsDeleted", "=", False),
            ),
        )

        added = 0
        async for row in query_all(self.destination, query, page_size=self.page_size):
            source_id = row.get(self.external_id_field)
            if source_id and self.record(object_type, source_id, row[ID_FIELD]):
                added += 1

        self._loaded.add(object_type)
        logger.info(f"Loaded {added} id mappings for {object_type}")
        return added

    def get(self, source_id: str, object_type: Optional[str] = None) -> Optional[str]:
        """
        Destination id for a source id.

        Args:
            source_id: Source record identity
            object_type: Restrict the lookup to one type's table

        Returns:
            Destination id, or None when unmapped
        """
        if object_type is not None:
            return self._tables.get(object_type, {}).get(source_id)
        for table in self._tables.values():
            if source_id in table:
                return table[source_id]
        return None

    def record(self, object_type: str, source_id: str, dest_id: str) -> bool:
        """
        Add a mapping unless the source id is already mapped.

        Returns:
            True if the mapping was added
        """
        table = self._tables.setdefault(object_type, {})
        if source_id in table:
            if table[source_id] != dest_id:
                logger.warning(
                    f"Ignoring remapping of {object_type} {source_id}: "
                    f"{table[source_id]} kept, {dest_id} seen"
                )
            return False
        table[source_id] = dest_id
        return True

    def size(self, object_type: Optional[str] = None) -> int:
        """Number of mappings for one type, or all types."""
        if object_type is not None:
            return len(self._tables.get(object_type, {}))
        return sum(len(t) for t in self._tables.values())
