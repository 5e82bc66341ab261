"""Source record to destination record transformation."""

from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator, List, Optional, Set

from orgsync.common.utils import is_blank
from orgsync.observability.logging_config import get_logger
from orgsync.replication import ID_FIELD, FieldDescriptor, ObjectDescriptor, Record
from orgsync.replication.client import StoreClient
from orgsync.replication.field_policy import FieldPolicy, FieldPolicyTable
from orgsync.replication.id_mapper import ExternalIdMapper
from orgsync.replication.schema_cache import SchemaCache
from orgsync.stores.base import Condition, Query

logger = get_logger(__name__)

# (referenced object type, source id) -> destination id or None
MissingReferenceResolver = Callable[[str, str], Awaitable[Optional[str]]]


class InFlightSet:
    """Source identities currently being resolved in this run."""

    def __init__(self) -> None:
        self._ids: Set[str] = set()

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @contextmanager
    def hold(self, source_id: Optional[str]) -> Iterator[bool]:
        """
        Mark an identity as in flight for the duration of the block.

        Yields False without marking anything when the identity is already
        held by an outer frame.
        """
        if not source_id or source_id in self._ids:
            yield False
            return
        self._ids.add(source_id)
        try:
            yield True
        finally:
            self._ids.discard(source_id)


class RecordTransformer:
    """Converts source records into destination-shaped records."""

    def __init__(
        self,
        destination: StoreClient,
        schema_cache: SchemaCache,
        mapper: ExternalIdMapper,
        policy: FieldPolicyTable,
        external_id_field: str,
        in_flight: Optional[InFlightSet] = None,
        max_reference_targets: int = 2,
        resolve_missing: Optional[MissingReferenceResolver] = None,
    ) -> None:
        """
        Initialize transformer.

        Args:
            destination: Destination store client, used for reference lookups
            schema_cache: Shared schema cache
            mapper: External-id mapper
            policy: Field policy table
            external_id_field: Destination field receiving the source id
            in_flight: Shared in-flight set (a new one if omitted)
            max_reference_targets: Polymorphic references to more types are omitted
            resolve_missing: Called when no lookup matched, to copy the referenced record
        """
        self.destination = destination
        self.schema_cache = schema_cache
        self.mapper = mapper
        self.policy = policy
        self.external_id_field = external_id_field
        self.in_flight = in_flight if in_flight is not None else InFlightSet()
        self.max_reference_targets = max_reference_targets
        self.resolve_missing = resolve_missing

    async def transform(
        self,
        record: Record,
        source_descriptor: ObjectDescriptor,
        dest_descriptor: ObjectDescriptor,
    ) -> Optional[Record]:
        """
        Build the destination record for one source record.

        Args:
            record: Source record (must carry Id)
            source_descriptor: Source object descriptor
            dest_descriptor: Destination object descriptor

        Returns:
            Destination record, or None when the record must be dropped
        """
        object_type = dest_descriptor.name
        source_id = record.get(ID_FIELD)
        if not source_id:
            raise ValueError(f"{object_type} record without {ID_FIELD}: {record}")

        values = {k: v for k, v in record.items() if not is_blank(v)}
        dest_record: Record = {self.external_id_field: source_id}

        with self.in_flight.hold(source_id):
            for f in dest_descriptor.fields:
                if not f.createable or f.name in (ID_FIELD, self.external_id_field):
                    continue
                if f.name not in values or not source_descriptor.has_field(f.name):
                    continue

                policy = self.policy.policy_for(object_type, f)
                if policy == FieldPolicy.SKIP:
                    continue
                if policy == FieldPolicy.COPY:
                    dest_record[f.name] = values[f.name]
                    continue

                resolved = await self._resolve_reference(object_type, source_id, f, values[f.name])
                if resolved:
                    dest_record[f.name] = resolved

        missing = [name for name in self.policy.required_for(object_type) if name not in dest_record]
        if missing:
            logger.debug(f"[{source_id}] dropping {object_type}, unresolved {missing}")
            return None

        return dest_record

    async def _resolve_reference(
        self, object_type: str, source_id: str, field: FieldDescriptor, value: str
    ) -> Optional[str]:
        mapped = self.mapper.get(value)
        if mapped:
            logger.debug(f"  using existing id {value} => {mapped}")
            return mapped

        if value in self.in_flight:
            logger.debug(f"[{source_id}] {field.name} -> {value} is in flight, omitting")
            return None

        targets = field.reference_to
        if len(targets) > self.max_reference_targets:
            logger.warning(
                f"[{object_type}.{field.name}] too many reference targets ({len(targets)}), omitting"
            )
            return None

        candidates = await self._lookup_candidates(targets)
        if not candidates:
            logger.debug(f"  no target objects for field: {field.name}")
            return None

        # Loading the candidates' mappings may have mapped the value
        mapped = self.mapper.get(value)
        if mapped:
            return mapped

        for target in candidates:
            query = Query(
                object_type=target,
                fields=(ID_FIELD,),
                where=(
                    Condition(self.external_id_field, "=", value),
                    Condition("IsDeleted", "=", False),
                ),
            )
            try:
                rows = (await self.destination.query(query)).get("records", [])
            except Exception as e:
                logger.warning(f"[{source_id}] error looking up {target} {value}: {e}")
                continue
            if len(rows) == 1:
                dest_id = rows[0][ID_FIELD]
                logger.debug(f"[{source_id}] value found: {dest_id}")
                self.mapper.record(target, value, dest_id)
                return dest_id
            if len(rows) > 1:
                logger.warning(f"[{source_id}] {len(rows)} {target} records claim {value}, omitting")

        if self.resolve_missing is not None:
            for target in candidates:
                try:
                    dest_id = await self.resolve_missing(target, value)
                except Exception as e:
                    logger.warning(f"[{source_id}] error copying {target} {value}: {e}")
                    continue
                if dest_id:
                    return dest_id

        logger.debug(f"[{source_id}] deferred {field.name} = {value}")
        return None

    async def _lookup_candidates(self, targets: tuple) -> List[str]:
        """Referenced types whose destination exposes the external-id field."""
        candidates = []
        for target in targets:
            if not self.mapper.is_mappable(target):
                continue
            if not await self.schema_cache.has_field(
                self.destination, target, self.external_id_field
            ):
                continue
            await self.mapper.load_mapping(target)
            candidates.append(target)
        return candidates
