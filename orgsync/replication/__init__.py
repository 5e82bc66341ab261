"""Record replication engine between two orgs."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

Scalar = Union[str, int, float, bool, None]
RecordValue = Union[Scalar, Dict[str, Any], List[Any]]
Record = Dict[str, RecordValue]

ID_FIELD = "Id"


@dataclass(frozen=True)
class FieldDescriptor:
    """Describe metadata for a single field."""

    name: str
    type: str
    createable: bool = False
    updateable: bool = False
    reference_to: tuple = ()

    @property
    def is_reference(self) -> bool:
        """Whether the field points at records of other types."""
        return self.type == "reference" or bool(self.reference_to)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldDescriptor":
        """Build from a describe payload field entry."""
        return cls(
            name=data["name"],
            type=data.get("type", "string"),
            createable=bool(data.get("createable", False)),
            updateable=bool(data.get("updateable", False)),
            reference_to=tuple(data.get("referenceTo") or ()),
        )


@dataclass(frozen=True)
class ObjectDescriptor:
    """Describe metadata for an object type."""

    name: str
    fields: tuple = ()
    queryable: bool = True
    createable: bool = True
    updateable: bool = True
    layoutable: bool = True
    deprecated_and_hidden: bool = False

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Optional[FieldDescriptor]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def has_field(self, name: str) -> bool:
        return self.get_field(name) is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObjectDescriptor":
        """Build from a describe (or global describe entry) payload."""
        return cls(
            name=data["name"],
            fields=tuple(FieldDescriptor.from_dict(f) for f in data.get("fields") or ()),
            queryable=bool(data.get("queryable", True)),
            createable=bool(data.get("createable", True)),
            updateable=bool(data.get("updateable", True)),
            layoutable=bool(data.get("layoutable", True)),
            deprecated_and_hidden=bool(data.get("deprecatedAndHidden", False)),
        )


@dataclass
class UpsertResult:
    """Outcome of writing one record to the destination."""

    success: bool
    id: Optional[str] = None
    errors: List[Any] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.success and self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "id": self.id, "errors": [str(e) for e in self.errors]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UpsertResult":
        return cls(
            success=bool(data.get("success")),
            id=data.get("id"),
            errors=list(data.get("errors") or []),
        )


class ObjectState(str, Enum):
    """Per object type pipeline state."""

    NOT_STARTED = "not_started"
    SCHEMA_LOADING = "schema_loading"
    MAPPING_LOADING = "mapping_loading"
    STREAMING = "streaming"
    FLUSHING = "flushing"
    DONE = "done"
    ERROR = "error"


@dataclass
class ObjectReport:
    """Outcome of replicating one object type."""

    name: str
    state: ObjectState = ObjectState.NOT_STARTED
    read: int = 0
    upserted: int = 0
    unchanged: int = 0
    cached: int = 0
    skipped: int = 0
    failed: int = 0
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.state == ObjectState.DONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "read": self.read,
            "upserted": self.upserted,
            "unchanged": self.unchanged,
            "cached": self.cached,
            "skipped": self.skipped,
            "failed": self.failed,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class ReplicationReport:
    """Outcome of a replication run."""

    source_username: Optional[str] = None
    destination_username: Optional[str] = None
    objects: List[ObjectReport] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def succeeded(self) -> List[ObjectReport]:
        """Object types that reached the done state."""
        return [o for o in self.objects if o.state == ObjectState.DONE]

    @property
    def failed(self) -> List[ObjectReport]:
        """Object types that ended in the error state."""
        return [o for o in self.objects if o.state == ObjectState.ERROR]

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary."""
        return {
            "source": self.source_username,
            "destination": self.destination_username,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "summary": {
                "total": len(self.objects),
                "done": len(self.succeeded),
                "error": len(self.failed),
            },
            "objects": [o.to_dict() for o in self.objects],
        }


__all__ = [
    "ID_FIELD",
    "Record",
    "RecordValue",
    "FieldDescriptor",
    "ObjectDescriptor",
    "UpsertResult",
    "ObjectState",
    "ObjectReport",
    "ReplicationReport",
]
