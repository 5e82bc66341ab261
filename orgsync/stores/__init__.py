"""Remote record store adapters."""

from orgsync.stores.base import Condition, Query, RemoteStore

__all__ = ["Condition", "Query", "RemoteStore"]
