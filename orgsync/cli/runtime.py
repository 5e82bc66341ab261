"""Builds engine components from settings for CLI commands."""

from typing import Optional, Tuple

from orgsync.cache import DurableCache, FileCache
from orgsync.common.config import Settings
from orgsync.observability.metrics import MetricsExporter
from orgsync.replication.client import StoreClient
from orgsync.replication.governor import build_governors
from orgsync.stores.salesforce import SalesforceStore


def build_cache(settings: Settings) -> Optional[DurableCache]:
    """File cache at the configured directory, or None when caching is disabled."""
    if not settings.cache.enabled:
        return None
    return FileCache(settings.cache.directory)


def build_clients(
    settings: Settings,
    cache: Optional[DurableCache],
    metrics: Optional[MetricsExporter] = None,
) -> Tuple[StoreClient, StoreClient]:
    """
    Source and destination store clients sharing one set of governors.

    Args:
        settings: Application settings
        cache: Durable cache for memoization
        metrics: Optional metrics exporter

    Returns:
        (source client, destination client)
    """
    governors = build_governors(settings.replication)
    source = StoreClient(
        SalesforceStore(settings.source, label="source"),
        cache=cache,
        governors=governors,
        metrics=metrics,
        memoize_queries=settings.cache.memoize_queries,
        label="source",
    )
    destination = StoreClient(
        SalesforceStore(settings.destination, label="destination"),
        cache=cache,
        governors=governors,
        metrics=metrics,
        memoize_queries=settings.cache.memoize_queries,
        label="destination",
    )
    return source, destination
