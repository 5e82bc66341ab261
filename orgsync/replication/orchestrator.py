"""Replication orchestrator: drives the per object type pipeline."""

from datetime import datetime
from typing import List, Optional, Set, Tuple

from orgsync.cache.base import DurableCache
from orgsync.common.config import ReplicationConfig
from orgsync.observability.logging_config import get_logger
from orgsync.observability.metrics import MetricsExporter
from orgsync.replication import (
    ID_FIELD,
    ObjectDescriptor,
    ObjectReport,
    ObjectState,
    Record,
    ReplicationReport,
)
from orgsync.replication.client import StoreClient
from orgsync.replication.errors import ConfigurationError, DataError
from orgsync.replication.field_policy import FieldPolicyTable
from orgsync.replication.id_mapper import ExternalIdMapper
from orgsync.replication.pagination import query_all
from orgsync.replication.scheduler import DependencyScheduler
from orgsync.replication.schema_cache import SchemaCache
from orgsync.replication.transformer import InFlightSet, RecordTransformer
from orgsync.replication.upsert import UpsertBatcher
from orgsync.stores.base import Condition, Query

logger = get_logger(__name__)


class ReplicationOrchestrator:
    """
    Replicates every eligible object type from a source org to a destination org.

    Each object type moves through schema loading, mapping loading,
    streaming and flushing. A failure moves only that type to the error
    state; the run continues with the next type. The mapper, schema cache
    and in-flight set live as long as the orchestrator, so one instance
    corresponds to one run.
    """

    def __init__(
        self,
        source: StoreClient,
        destination: StoreClient,
        cache: Optional[DurableCache] = None,
        config: Optional[ReplicationConfig] = None,
        policy: Optional[FieldPolicyTable] = None,
        metrics: Optional[MetricsExporter] = None,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            source: Source store client
            destination: Destination store client
            cache: Durable cache for upsert results
            config: Replication settings
            policy: Field policy table (built-in defaults if omitted)
            metrics: Optional metrics exporter
        """
        self.source = source
        self.destination = destination
        self.cache = cache
        self.config = config or ReplicationConfig()
        self.policy = policy or FieldPolicyTable.default()
        self.metrics = metrics

        self.schema_cache = SchemaCache()
        self.scheduler = DependencyScheduler(self.schema_cache)
        self.mapper = ExternalIdMapper(
            destination,
            self.schema_cache,
            self.config.external_id_field,
            page_size=self.config.page_size,
        )
        self.in_flight = InFlightSet()
        self._eligible: Optional[List[str]] = None
        self.transformer = RecordTransformer(
            destination,
            self.schema_cache,
            self.mapper,
            self.policy,
            self.config.external_id_field,
            in_flight=self.in_flight,
            max_reference_targets=self.config.max_reference_targets,
            resolve_missing=self.copy_record if self.config.follow_references else None,
        )

    async def initialize(self) -> Tuple[Optional[str], Optional[str]]:
        """
        Fetch both identities.

        Returns:
            (source username, destination username)
        """
        await self.source.connect()
        await self.destination.connect()
        source_id = await self.source.identity()
        dest_id = await self.destination.identity()
        usernames = (source_id.get("username"), dest_id.get("username"))
        logger.info(f"Replicating from {usernames[0]} to {usernames[1]}")
        return usernames

    async def eligible_objects(self, type_filter: Optional[str] = None) -> List[str]:
        """
        Object types to replicate, in source global describe order.

        Args:
            type_filter: Keep only names starting with this (case-insensitive)

        Returns:
            Object type names
        """
        prefix = type_filter.strip().lower() if type_filter else ""
        names = [name for name in await self._all_eligible() if name.lower().startswith(prefix)]
        logger.info(f"{len(names)} object types eligible for replication")
        return names

    async def _all_eligible(self) -> List[str]:
        """Every replicable type, unfiltered; computed once per orchestrator."""
        if self._eligible is None:
            source_objects = await self.schema_cache.describe_global(self.source)
            dest_names = {o.name for o in await self.schema_cache.describe_global(self.destination)}
            excluded: Set[str] = set(self.config.excluded_objects)
            self._eligible = [
                o.name
                for o in source_objects
                if o.queryable
                and o.createable
                and o.updateable
                and o.layoutable
                and not o.deprecated_and_hidden
                and o.name in dest_names
                and o.name not in excluded
            ]
        return self._eligible

    async def run(self, type_filter: Optional[str] = None) -> ReplicationReport:
        """
        Replicate all eligible object types.

        Args:
            type_filter: Optional case-insensitive name prefix

        Returns:
            Report with one entry per processed type
        """
        report = ReplicationReport(started_at=datetime.now())
        report.source_username, report.destination_username = await self.initialize()

        names = await self.eligible_objects(type_filter)
        ordered, counts = await self.scheduler.build_order(self.source, names)
        top = [(name, counts.get(name, 0)) for name in ordered[:10]]
        logger.info(f"Most referenced object types: {top}")
        if self.config.enforce_dependency_order:
            names = ordered

        for name in names:
            report.objects.append(await self.replicate_object(name))

        report.completed_at = datetime.now()
        logger.info(
            f"Replication complete: {len(report.succeeded)} done, {len(report.failed)} failed "
            f"({(report.completed_at - report.started_at).total_seconds():.2f}s)"
        )
        return report

    def _new_batcher(self, object_type: str, batch_size: Optional[int] = None) -> UpsertBatcher:
        return UpsertBatcher(
            self.destination,
            object_type,
            self.config.external_id_field,
            cache=self.cache,
            mapper=self.mapper,
            batch_size=batch_size or self.config.batch_size,
            bulk_chunk_size=self.config.bulk_chunk_size,
            existing_check_chunk_size=self.config.existing_check_chunk_size,
            diff_exclude_fields=self.config.diff_exclude_fields,
        )

    async def _load_schemas(self, object_type: str) -> Tuple[ObjectDescriptor, ObjectDescriptor]:
        source_desc = await self.schema_cache.describe(self.source, object_type)
        dest_desc = await self.schema_cache.describe(self.destination, object_type)
        if not dest_desc.has_field(self.config.external_id_field):
            raise ConfigurationError(
                f"{object_type} has no {self.config.external_id_field} field in the destination",
                details={"object_type": object_type},
            )
        return source_desc, dest_desc

    async def replicate_object(self, object_type: str) -> ObjectReport:
        """
        Run the pipeline for one object type.

        Never raises: failures end the type in the error state.

        Args:
            object_type: Object type name

        Returns:
            Object report
        """
        report = ObjectReport(name=object_type, started_at=datetime.now())
        batcher = self._new_batcher(object_type)

        try:
            report.state = ObjectState.SCHEMA_LOADING
            source_desc, dest_desc = await self._load_schemas(object_type)

            report.state = ObjectState.MAPPING_LOADING
            await self.mapper.load_mapping(object_type)

            report.state = ObjectState.STREAMING
            await self._log_total(object_type)
            query = Query(object_type=object_type, fields=tuple(source_desc.field_names))
            async for record in query_all(self.source, query, page_size=self.config.page_size):
                report.read += 1
                dest_record = await self.transformer.transform(record, source_desc, dest_desc)
                if dest_record is None:
                    report.skipped += 1
                    continue
                await self._write(batcher, dest_record)

            report.state = ObjectState.FLUSHING
            await self._flush(batcher)

            report.state = ObjectState.DONE

        except Exception as e:
            logger.error(
                f"[{object_type}] failed while {report.state.value}: {e}", exc_info=True
            )
            report.error = f"{type(e).__name__}: {e}"
            report.state = ObjectState.ERROR

        finally:
            report.upserted = batcher.upserted
            report.unchanged = batcher.unchanged
            report.cached = batcher.cached
            report.failed = batcher.failed
            report.completed_at = datetime.now()
            if self.metrics:
                self.metrics.record_read(object_type, report.read)
                self.metrics.record_batch(
                    object_type, batcher.upserted, batcher.unchanged, batcher.cached, batcher.failed
                )
                self.metrics.record_object(report.state.value)

        logger.info(
            f"[{object_type}] {report.state.value}: read={report.read} upserted={report.upserted} "
            f"unchanged={report.unchanged} cached={report.cached} skipped={report.skipped} "
            f"failed={report.failed}"
        )
        return report

    async def _log_total(self, object_type: str) -> None:
        try:
            total = await self.source.count(object_type)
        except Exception as e:
            logger.warning(f"[{object_type}] could not count source records: {e}")
            return
        logger.info(f"[{object_type}] {total} source records")

    async def _write(self, batcher: UpsertBatcher, record: Record) -> None:
        try:
            await batcher.add_record(record)
        except DataError as e:
            if not self.config.continue_on_batch_error:
                raise
            logger.warning(f"[{batcher.object_type}] batch failed, continuing: {e}")

    async def _flush(self, batcher: UpsertBatcher) -> None:
        try:
            await batcher.process()
        except DataError as e:
            if not self.config.continue_on_batch_error:
                raise
            logger.warning(f"[{batcher.object_type}] final batch failed: {e}")

    async def copy_record(self, object_type: str, source_id: str) -> Optional[str]:
        """
        Copy a single source record by id, ahead of its type's own pass.

        Used to resolve references to records not yet replicated. Only
        types that a run would replicate are copied. Guarded by the
        in-flight set, so reference cycles end with the reference omitted
        instead of recursing. Failures are logged and leave the reference
        unresolved.

        Args:
            object_type: Object type of the record
            source_id: Source record identity

        Returns:
            Destination id, or None if the record could not be copied
        """
        if source_id in self.in_flight:
            logger.debug(f"RECURSIVE: {source_id}")
            return None

        logger.debug(f"Copying referenced {object_type} {source_id}")
        try:
            if object_type not in await self._all_eligible():
                logger.debug(f"{object_type} is not replicated, not copying {source_id}")
                return None

            source_desc, dest_desc = await self._load_schemas(object_type)
            await self.mapper.load_mapping(object_type)
            mapped = self.mapper.get(source_id, object_type)
            if mapped:
                return mapped

            query = Query(
                object_type=object_type,
                fields=tuple(source_desc.field_names),
                where=(Condition(ID_FIELD, "=", source_id),),
            )
            rows = (await self.source.query(query, use_cache=False)).get("records", [])
            if len(rows) != 1:
                logger.debug(f"{object_type} {source_id} not found in source")
                return None

            dest_record = await self.transformer.transform(rows[0], source_desc, dest_desc)
            if dest_record is None:
                return None

            batcher = self._new_batcher(object_type, batch_size=1)
            await batcher.add_record(dest_record)
            await batcher.process()
        except (ConfigurationError, DataError) as e:
            logger.warning(f"Could not copy referenced {object_type} {source_id}: {e}")
            return None
        except Exception as e:
            logger.warning(
                f"Error copying referenced {object_type} {source_id}: {type(e).__name__}: {e}"
            )
            return None

        return self.mapper.get(source_id, object_type)
