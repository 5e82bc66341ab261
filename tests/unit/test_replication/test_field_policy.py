"""Unit tests for field policies."""

import json

import pytest
from pydantic import ValidationError

from orgsync.replication import FieldDescriptor
from orgsync.replication.field_policy import FieldPolicy, FieldPolicyTable, PolicyRule


def _field(name, *targets):
    return FieldDescriptor(
        name=name,
        type="reference" if targets else "string",
        createable=True,
        updateable=True,
        reference_to=tuple(targets),
    )


@pytest.mark.unit
class TestFieldPolicyTable:
    """Test policy resolution."""

    def test_defaults(self):
        table = FieldPolicyTable.default()

        assert table.policy_for("Account", _field("Name")) == FieldPolicy.COPY
        assert table.policy_for("Account", _field("ParentId", "Account")) == FieldPolicy.DEFERRED_LOOKUP
        assert table.policy_for("Account", _field("RecordTypeId", "RecordType")) == FieldPolicy.SKIP
        assert table.policy_for("Opportunity", _field("ContactId", "Contact")) == FieldPolicy.SKIP
        assert table.required_for("OpportunityContactRole") == ("ContactId", "OpportunityId")
        assert table.required_for("Account") == ()

    def test_exact_rule_beats_wildcard(self):
        table = FieldPolicyTable(
            [
                PolicyRule(field="OwnerId", policy=FieldPolicy.SKIP),
                PolicyRule(object="Case", field="OwnerId", policy=FieldPolicy.DEFERRED_LOOKUP),
            ]
        )

        assert table.policy_for("Account", _field("OwnerId", "User")) == FieldPolicy.SKIP
        assert table.policy_for("Case", _field("OwnerId", "User")) == FieldPolicy.DEFERRED_LOOKUP

    def test_copy_rule_on_reference(self):
        table = FieldPolicyTable([PolicyRule(object="Lead", field="OwnerId", policy=FieldPolicy.COPY)])

        assert table.policy_for("Lead", _field("OwnerId", "User")) == FieldPolicy.COPY

    def test_from_file(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(
            json.dumps(
                {
                    "rules": [
                        {"field": "RecordTypeId", "policy": "copy"},
                        {"object": "Case", "field": "OwnerId", "policy": "skip"},
                    ],
                    "required_references": {"CampaignMember": ["CampaignId"]},
                }
            )
        )

        table = FieldPolicyTable.from_file(str(path))

        assert table.policy_for("Account", _field("RecordTypeId", "RecordType")) == FieldPolicy.COPY
        assert table.policy_for("Case", _field("OwnerId", "User")) == FieldPolicy.SKIP
        assert table.required_for("CampaignMember") == ("CampaignId",)
        assert table.required_for("OpportunityContactRole") == ("ContactId", "OpportunityId")

    def test_from_file_without_defaults(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({"rules": []}))

        table = FieldPolicyTable.from_file(str(path), include_defaults=False)

        assert table.policy_for("Account", _field("RecordTypeId", "RecordType")) == FieldPolicy.DEFERRED_LOOKUP
        assert table.required_for("OpportunityContactRole") == ()

    def test_from_file_rejects_unknown_policy(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({"rules": [{"field": "Name", "policy": "encrypt"}]}))

        with pytest.raises(ValidationError):
            FieldPolicyTable.from_file(str(path))
