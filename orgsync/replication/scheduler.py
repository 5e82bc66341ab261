"""Reference-count based processing order of object types."""

import asyncio
from collections import Counter
from typing import Dict, Iterable, List, Sequence, Tuple

from orgsync.observability.logging_config import get_logger
from orgsync.replication import ObjectDescriptor
from orgsync.replication.client import StoreClient
from orgsync.replication.schema_cache import SchemaCache

logger = get_logger(__name__)


class DependencyScheduler:
    """
    Orders object types so the most referenced ones come first.

    Loading heavily referenced types early lets more forward references
    resolve in a single pass. The order is advisory; the orchestrator
    applies it only when enforcement is configured.
    """

    def __init__(self, schema_cache: SchemaCache) -> None:
        self.schema_cache = schema_cache

    @staticmethod
    def reference_counts(descriptors: Iterable[ObjectDescriptor]) -> Dict[str, int]:
        """
        Count references to each object type.

        Args:
            descriptors: Described object types

        Returns:
            Referenced type name -> number of fields pointing at it
        """
        counts: Counter = Counter()
        for descriptor in descriptors:
            for f in descriptor.fields:
                for target in f.reference_to:
                    counts[target] += 1
        return dict(counts)

    @staticmethod
    def order(names: Sequence[str], counts: Dict[str, int]) -> List[str]:
        """Sort names most referenced first; ties keep their incoming order."""
        return sorted(names, key=lambda name: -counts.get(name, 0))

    async def build_order(
        self, client: StoreClient, names: Sequence[str]
    ) -> Tuple[List[str], Dict[str, int]]:
        """
        Describe every type concurrently and compute the processing order.

        Types that fail to describe contribute no references.

        Args:
            client: Store client of the source org
            names: Object type names to order

        Returns:
            (ordered names, reference counts)
        """
        logger.info(f"Building reference map over {len(names)} object types")
        results = await asyncio.gather(
            *(self.schema_cache.describe(client, name) for name in names),
            return_exceptions=True,
        )

        descriptors: List[ObjectDescriptor] = []
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.warning(f"Skipping references of {name}: {result}")
                continue
            descriptors.append(result)

        counts = self.reference_counts(descriptors)
        ordered = self.order(names, counts)
        logger.debug(f"Object order: {ordered}")
        return ordered, counts
