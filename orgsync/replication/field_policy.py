"""Declarative per-field copy policies."""

import json
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from orgsync.replication import FieldDescriptor

ANY_OBJECT = "*"


class FieldPolicy(str, Enum):
    """How the transformer treats a destination field."""

    COPY = "copy"
    SKIP = "skip"
    DEFERRED_LOOKUP = "deferred-lookup"


class PolicyRule(BaseModel):
    """One (object, field) -> policy entry."""

    object: str = ANY_OBJECT
    field: str
    policy: FieldPolicy


class FieldPolicyFile(BaseModel):
    """On-disk format of a policy table."""

    rules: List[PolicyRule] = Field(default_factory=list)
    required_references: Dict[str, List[str]] = Field(default_factory=dict)


DEFAULT_RULES = [
    # Record types are org specific
    PolicyRule(field="RecordTypeId", policy=FieldPolicy.SKIP),
    PolicyRule(object="Opportunity", field="ContactId", policy=FieldPolicy.SKIP),
]

DEFAULT_REQUIRED_REFERENCES = {
    "OpportunityContactRole": ["ContactId", "OpportunityId"],
}


class FieldPolicyTable:
    """
    Lookup of field policies.

    A rule for the exact (object, field) wins over a rule for (*, field).
    Fields without a rule are copied, or resolved by lookup when they are
    references.
    """

    def __init__(
        self,
        rules: Optional[List[PolicyRule]] = None,
        required_references: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        self._rules: Dict[Tuple[str, str], FieldPolicy] = {}
        for rule in rules or []:
            self._rules[(rule.object, rule.field)] = rule.policy
        self.required_references: Dict[str, Tuple[str, ...]] = {
            obj: tuple(fields) for obj, fields in (required_references or {}).items()
        }

    @classmethod
    def default(cls) -> "FieldPolicyTable":
        return cls(DEFAULT_RULES, DEFAULT_REQUIRED_REFERENCES)

    @classmethod
    def from_file(cls, path: str, include_defaults: bool = True) -> "FieldPolicyTable":
        """
        Load a policy table from JSON.

        Args:
            path: JSON file with "rules" and "required_references"
            include_defaults: Start from the built-in rules; file entries override them

        Returns:
            Policy table
        """
        data = FieldPolicyFile.model_validate(json.loads(Path(path).read_text(encoding="utf-8")))
        rules = (DEFAULT_RULES if include_defaults else []) + data.rules
        required = dict(DEFAULT_REQUIRED_REFERENCES) if include_defaults else {}
        required.update(data.required_references)
        return cls(rules, required)

    def policy_for(self, object_type: str, field: FieldDescriptor) -> FieldPolicy:
        """Resolve the policy of a destination field."""
        policy = self._rules.get((object_type, field.name))
        if policy is None:
            policy = self._rules.get((ANY_OBJECT, field.name))
        if policy is None:
            policy = FieldPolicy.DEFERRED_LOOKUP if field.is_reference else FieldPolicy.COPY
        return policy

    def required_for(self, object_type: str) -> Tuple[str, ...]:
        """Reference fields that must all resolve for a record of this type to be kept."""
        return self.required_references.get(object_type, ())
