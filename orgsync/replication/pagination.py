"""Keyset pagination over query results."""

from typing import AsyncIterator, Optional

from orgsync.observability.logging_config import get_logger
from orgsync.replication import ID_FIELD, Record
from orgsync.replication.client import StoreClient
from orgsync.stores.base import Condition, Query

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 5000


async def query_all(
    client: StoreClient,
    query: Query,
    last_seen_id: Optional[str] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    id_field: str = ID_FIELD,
) -> AsyncIterator[Record]:
    """
    Lazily yield every record matching query in ascending identity order.

    Each page asks for identities greater than the last one seen, so
    records inserted while scanning do not shift page boundaries. Pass
    last_seen_id to resume an interrupted scan after that identity.

    Args:
        client: Store client to query through
        query: Base query (its own ordering and limit are replaced)
        last_seen_id: Resume cursor; None starts from the beginning
        page_size: Records requested per page
        id_field: Identity field used as the cursor

    Yields:
        Records in strictly increasing identity order
    """
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")

    fields = query.fields if id_field in query.fields else (id_field,) + tuple(query.fields)
    base = Query(object_type=query.object_type, fields=fields, where=query.where)
    cursor = last_seen_id

    while True:
        page_query = base.paged(order_by=id_field, limit=page_size)
        if cursor:
            logger.debug(f"[{query.object_type}] downloading page after {cursor}")
            page_query = page_query.filter(Condition(id_field, ">", cursor))

        res = await client.query(page_query, use_cache=False)
        records = res.get("records", [])
        if not records:
            logger.debug(f"[{query.object_type}] done downloading")
            return

        for record in records:
            cursor = record[id_field]
            yield record
