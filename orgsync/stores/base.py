"""Remote record store contract and query expressions."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

_OPERATORS = ("=", "!=", ">", "<", "in")


@dataclass(frozen=True)
class Condition:
    """A single `field op value` filter."""

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op}")

    def to_soql(self) -> str:
        if self.op == "in":
            values = ",".join(_soql_literal(v) for v in self.value)
            return f"{self.field} IN ({values})"
        return f"{self.field} {self.op} {_soql_literal(self.value)}"


@dataclass(frozen=True)
class Query:
    """Structured query against one object type."""

    object_type: str
    fields: Tuple[str, ...]
    where: Tuple[Condition, ...] = ()
    order_by: Optional[str] = None
    limit: Optional[int] = None

    def filter(self, *conditions: Condition) -> "Query":
        """Return a copy with extra AND-ed conditions."""
        return replace(self, where=self.where + tuple(conditions))

    def paged(self, order_by: str, limit: int) -> "Query":
        """Return a copy ordered ascending on order_by and limited."""
        return replace(self, order_by=order_by, limit=limit)

    def to_soql(self) -> str:
        """Render as SOQL."""
        soql = f"SELECT {', '.join(self.fields)} FROM {self.object_type}"
        if self.where:
            soql += " WHERE " + " AND ".join(c.to_soql() for c in self.where)
        if self.order_by:
            soql += f" ORDER BY {self.order_by} ASC"
        if self.limit:
            soql += f" LIMIT {self.limit}"
        return soql


def _soql_literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class RemoteStore(ABC):
    """Describe / query / upsert access to one record store."""

    async def connect(self) -> None:
        """Establish the connection ahead of the first call; stores without a login do nothing."""

    @property
    @abstractmethod
    def connection_key(self) -> str:
        """Stable identity of the connected org, used to namespace cache keys."""

    @abstractmethod
    async def identity(self) -> Dict[str, Any]:
        """Return the connected user, at least {"username": ...}."""

    @abstractmethod
    async def describe_global(self) -> Dict[str, Any]:
        """Return {"sobjects": [object summary, ...]}."""

    @abstractmethod
    async def describe(self, object_type: str) -> Dict[str, Any]:
        """Return the describe payload of one object type, including "fields"."""

    @abstractmethod
    async def query(self, query: Query) -> Dict[str, Any]:
        """Run a query and return {"records": [...]}."""

    @abstractmethod
    async def count(self, object_type: str) -> int:
        """Return the number of records of an object type."""

    @abstractmethod
    async def upsert_one(
        self, object_type: str, record: Dict[str, Any], external_id_field: str
    ) -> Dict[str, Any]:
        """Upsert one record keyed by external id; return {success, id, errors}."""

    @abstractmethod
    async def upsert_bulk(
        self, object_type: str, records: Sequence[Dict[str, Any]], external_id_field: str
    ) -> List[Dict[str, Any]]:
        """Upsert many records keyed by external id; one result per record, in order."""
