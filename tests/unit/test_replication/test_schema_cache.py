"""Unit tests for the schema cache."""

import asyncio

import pytest

from orgsync.replication.schema_cache import SchemaCache
from tests.fixtures.clients import make_client
from tests.fixtures.fake_store import FakeStore, account_objects, describe_payload, field


@pytest.fixture
def store():
    return FakeStore("00Ddest", account_objects("Ext__c"))


@pytest.mark.unit
class TestSchemaCache:
    """Test describe sharing and memoization."""

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_fetch(self, store):
        cache = SchemaCache()
        client = make_client(store)

        results = await asyncio.gather(*(cache.describe(client, "Account") for _ in range(5)))

        assert store.calls["describe"] == 1
        assert all(r is results[0] for r in results)
        assert results[0].name == "Account"

    @pytest.mark.asyncio
    async def test_entries_keyed_by_connection(self, store):
        other = FakeStore("00Dother", account_objects())
        cache = SchemaCache()

        dest = await cache.describe(make_client(store), "Account")
        source = await cache.describe(make_client(other), "Account")

        assert dest.has_field("Ext__c")
        assert not source.has_field("Ext__c")
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_memoized(self, store):
        cache = SchemaCache()
        client = make_client(store)

        with pytest.raises(LookupError):
            await cache.describe(client, "Lead")

        store.objects["Lead"] = describe_payload("Lead", [field("Company")])
        lead = await cache.describe(client, "Lead")

        assert lead.has_field("Company")
        assert store.calls["describe"] == 2

    @pytest.mark.asyncio
    async def test_has_field(self, store):
        cache = SchemaCache()
        client = make_client(store)

        assert await cache.has_field(client, "Contact", "Ext__c")
        assert not await cache.has_field(client, "Contact", "Email")
        assert not await cache.has_field(client, "Lead", "Ext__c")

    @pytest.mark.asyncio
    async def test_describe_global(self, store):
        cache = SchemaCache()
        client = make_client(store)

        summaries = await cache.describe_global(client)
        await cache.describe_global(client)

        assert [s.name for s in summaries] == ["Account", "Contact"]
        assert summaries[0].queryable
        assert store.calls["describe_global"] == 1
