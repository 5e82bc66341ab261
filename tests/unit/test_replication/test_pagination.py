"""Unit tests for keyset pagination."""

import pytest

from orgsync.replication.pagination import query_all
from orgsync.stores.base import Condition, Query
from tests.fixtures.clients import make_client
from tests.fixtures.fake_store import FakeStore, account_objects


@pytest.fixture
def store():
    rows = [{"Id": f"A{i}", "Name": f"Account {i}"} for i in (5, 3, 1, 4, 2)]
    return FakeStore("00Dsource", account_objects(), {"Account": rows})


async def _collect(iterator):
    return [record async for record in iterator]


@pytest.mark.unit
class TestQueryAll:
    """Test paging over query results."""

    @pytest.mark.asyncio
    async def test_yields_all_records_in_id_order(self, store):
        client = make_client(store)
        query = Query(object_type="Account", fields=("Name",))

        records = await _collect(query_all(client, query, page_size=2))

        assert [r["Id"] for r in records] == ["A1", "A2", "A3", "A4", "A5"]
        # three full or partial pages plus the empty one
        assert store.calls["query"] == 4

    @pytest.mark.asyncio
    async def test_pages_use_id_cursor(self, store):
        client = make_client(store)

        await _collect(query_all(client, Query(object_type="Account", fields=("Id",)), page_size=2))

        soql = [q.to_soql() for q in store.queries]
        assert soql[0] == "SELECT Id FROM Account ORDER BY Id ASC LIMIT 2"
        assert soql[1] == "SELECT Id FROM Account WHERE Id > 'A2' ORDER BY Id ASC LIMIT 2"

    @pytest.mark.asyncio
    async def test_resume_after_last_seen(self, store):
        client = make_client(store)
        query = Query(object_type="Account", fields=("Id",))

        records = await _collect(query_all(client, query, last_seen_id="A3", page_size=2))

        assert [r["Id"] for r in records] == ["A4", "A5"]

    @pytest.mark.asyncio
    async def test_filters_are_kept(self, store):
        client = make_client(store)
        query = Query(object_type="Account", fields=("Id",), where=(Condition("Name", "!=", "Account 2"),))

        records = await _collect(query_all(client, query, page_size=10))

        assert [r["Id"] for r in records] == ["A1", "A3", "A4", "A5"]

    @pytest.mark.asyncio
    async def test_concurrent_inserts_do_not_duplicate(self, store):
        client = make_client(store)
        query = Query(object_type="Account", fields=("Id",))
        seen = []

        async for record in query_all(client, query, page_size=2):
            seen.append(record["Id"])
            if record["Id"] == "A2":
                store.rows("Account").extend([{"Id": "A0"}, {"Id": "A6"}])

        assert seen == ["A1", "A2", "A3", "A4", "A5", "A6"]
        assert len(seen) == len(set(seen))

    @pytest.mark.asyncio
    async def test_empty_result(self):
        client = make_client(FakeStore("00Dsource", account_objects()))

        records = await _collect(query_all(client, Query(object_type="Account", fields=("Id",))))

        assert records == []

    @pytest.mark.asyncio
    async def test_invalid_page_size(self, store):
        with pytest.raises(ValueError):
            await _collect(
                query_all(make_client(store), Query(object_type="Account", fields=("Id",)), page_size=0)
            )
