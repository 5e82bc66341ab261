"""Idempotent, batched upsert of destination records."""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from orgsync.cache.base import DurableCache
from orgsync.common.utils import chunk, content_hash, flatten_dict
from orgsync.observability.logging_config import get_logger
from orgsync.replication import ID_FIELD, Record, UpsertResult
from orgsync.replication.client import StoreClient
from orgsync.replication.errors import DataError
from orgsync.replication.id_mapper import ExternalIdMapper
from orgsync.replication.pagination import query_all
from orgsync.stores.base import Condition, Query

logger = get_logger(__name__)

CACHED = "cached"
UNCHANGED = "unchanged"
UPSERTED = "upserted"


class UpsertBatcher:
    """
    Accumulates destination records of one object type and writes them.

    Every successful write is cached under the content hash of the record,
    so adding an identical record again (in this run or a later one) is
    answered from the cache without a remote call. Multi-record batches
    first compare against existing destination rows and skip records
    without differences.
    """

    def __init__(
        self,
        client: StoreClient,
        object_type: str,
        external_id_field: str,
        cache: Optional[DurableCache] = None,
        mapper: Optional[ExternalIdMapper] = None,
        batch_size: int = 1,
        bulk_chunk_size: int = 10_000,
        existing_check_chunk_size: int = 100,
        diff_exclude_fields: Iterable[str] = (),
    ) -> None:
        """
        Initialize batcher.

        Args:
            client: Destination store client
            object_type: Object type being written
            external_id_field: Upsert key field
            cache: Durable cache for upsert results
            mapper: Mapper updated with every successful write
            batch_size: Records accumulated before a flush (1 writes one by one)
            bulk_chunk_size: Records per bulk upsert call
            existing_check_chunk_size: External ids per existing-row query
            diff_exclude_fields: Fields ignored when comparing with existing rows
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.client = client
        self.object_type = object_type
        self.external_id_field = external_id_field
        self.cache = cache
        self.mapper = mapper
        self.batch_size = batch_size
        self.bulk_chunk_size = bulk_chunk_size
        self.existing_check_chunk_size = existing_check_chunk_size
        self.diff_exclude_fields = set(diff_exclude_fields)

        self.pending: List[Record] = []
        self.results: List[UpsertResult] = []
        self.upserted = 0
        self.unchanged = 0
        self.cached = 0
        self.failed = 0

    def __repr__(self) -> str:
        return (
            f"UpsertBatcher(object_type={self.object_type!r}, batch_size={self.batch_size}, "
            f"pending={len(self.pending)})"
        )

    def cache_key(self, record: Record) -> str:
        return self.client.key("upsert", content_hash(record))

    def _cached_result(self, record: Record) -> Optional[UpsertResult]:
        if self.cache is None:
            return None
        value = self.cache.get(self.cache_key(record))
        if not value:
            return None
        result = UpsertResult.from_dict(value)
        return result if result.ok else None

    async def add_record(self, record: Record) -> None:
        """
        Queue a record, flushing when the batch is full.

        Raises:
            DataError: If the flush it triggered had failing records
        """
        if not record.get(self.external_id_field):
            raise ValueError(f"missing external id: {record}")

        prior = self._cached_result(record)
        if prior is not None:
            self._handle_results([(record, prior, CACHED)])
            return

        self.pending.append(record)
        if len(self.pending) >= self.batch_size:
            await self.process()

    async def process(self) -> List[UpsertResult]:
        """
        Write all pending records.

        Returns:
            Results of the flushed records, in order

        Raises:
            DataError: If any record was rejected; successful records of the
                batch are still cached and mapped
        """
        if not self.pending:
            return []

        batch, self.pending = self.pending, []
        if len(batch) == 1:
            outcomes = [await self._upsert_single(batch[0])]
        else:
            outcomes = await self._upsert_many(batch)

        self._handle_results(outcomes)
        return [result for _, result, _ in outcomes]

    async def _upsert_single(self, record: Record) -> Tuple[Record, UpsertResult, str]:
        prior = self._cached_result(record)
        if prior is not None:
            return record, prior, CACHED

        res = await self.client.upsert_one(self.object_type, record, self.external_id_field)
        logger.debug(f"[{self.object_type}] upsert result: {res}")
        return record, UpsertResult.from_dict(res), UPSERTED

    async def _upsert_many(self, batch: List[Record]) -> List[Tuple[Record, UpsertResult, str]]:
        flat_batch = [flatten_dict(r) for r in batch]
        existing = await self._existing_rows(flat_batch)

        outcomes: List[Optional[Tuple[Record, UpsertResult, str]]] = []
        to_send: List[int] = []
        for i, (record, flat) in enumerate(zip(batch, flat_batch)):
            match = existing.get(flat[self.external_id_field])
            if match is not None:
                diffs = self._differences(flat, match)
                if not diffs:
                    outcomes.append((record, UpsertResult(True, match[ID_FIELD]), UNCHANGED))
                    continue
                logger.debug(
                    f"[{self.object_type}] {flat[self.external_id_field]} -> {match[ID_FIELD]} "
                    f"differs on {diffs}"
                )
            outcomes.append(None)
            to_send.append(i)

        for indexes in chunk(to_send, self.bulk_chunk_size):
            records_chunk = [flat_batch[i] for i in indexes]
            logger.debug(f"[{self.object_type}] executing bulk upsert of {len(records_chunk)} records")
            try:
                chunk_res = await self.client.upsert_bulk(
                    self.object_type, records_chunk, self.external_id_field
                )
                if len(chunk_res) != len(records_chunk):
                    raise DataError(
                        f"bulk upsert returned {len(chunk_res)} results for {len(records_chunk)} records"
                    )
            except Exception as e:
                chunk_res = [{"success": False, "id": None, "errors": [str(e)]} for _ in records_chunk]

            for i, res in zip(indexes, chunk_res):
                outcomes[i] = (batch[i], UpsertResult.from_dict(res), UPSERTED)

        return [o for o in outcomes if o is not None]

    async def _existing_rows(self, flat_batch: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        """Destination rows carrying the batch's external ids, keyed by external id."""
        field_names = sorted({k for r in flat_batch for k in r} - {ID_FIELD, self.external_id_field})
        ids = sorted({r[self.external_id_field] for r in flat_batch})

        existing: Dict[str, Dict[str, Any]] = {}
        for ids_chunk in chunk(ids, self.existing_check_chunk_size):
            query = Query(
                object_type=self.object_type,
                fields=(ID_FIELD, self.external_id_field, *field_names),
                where=(Condition(self.external_id_field, "in", tuple(ids_chunk)),),
            )
            async for row in query_all(self.client, query):
                existing[row[self.external_id_field]] = flatten_dict(row)
        return existing

    def _differences(self, record: Dict[str, Any], existing: Dict[str, Any]) -> List[str]:
        """Fields present on both sides whose values differ."""
        diffs = []
        for name, value in record.items():
            if name in self.diff_exclude_fields or name not in existing:
                continue
            other = existing[name]
            if value != other and str(value) != str(other):
                diffs.append(name)
        return diffs

    def _handle_results(self, outcomes: List[Tuple[Record, UpsertResult, str]]) -> None:
        failures = []
        for record, result, outcome in outcomes:
            key = self.cache_key(record)
            if not result.ok:
                logger.error(
                    f"[{self.object_type}] error saving record "
                    f"{record.get(self.external_id_field)}: {result.errors}"
                )
                if self.cache is not None:
                    self.cache.delete(key)
                failures.append({"record": record, "errors": result.errors})
                continue

            if outcome == CACHED:
                self.cached += 1
            elif outcome == UNCHANGED:
                self.unchanged += 1
            else:
                self.upserted += 1

            if self.cache is not None and outcome != CACHED:
                self.cache.put(key, result.to_dict())
            if self.mapper is not None:
                self.mapper.record(self.object_type, record[self.external_id_field], result.id)
            self.results.append(result)

        if failures:
            self.failed += len(failures)
            raise DataError(
                f"{len(failures)} {self.object_type} record(s) failed to save",
                failures=failures,
            )
