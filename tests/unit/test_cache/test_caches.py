"""Unit tests for durable cache backends and memoization."""

import pytest

from orgsync.cache import FileCache, MemoryCache, cache_key, memoize


@pytest.fixture(params=["memory", "file"])
def cache(request, tmp_path):
    if request.param == "memory":
        return MemoryCache()
    return FileCache(str(tmp_path / "cache"))


@pytest.mark.unit
class TestDurableCache:
    """Behaviour shared by all cache backends."""

    def test_get_missing_returns_none(self, cache):
        assert cache.get("00D/none") is None

    def test_put_overwrites(self, cache):
        cache.put("00D/describe/Account", {"name": "Account"})
        cache.put("00D/describe/Account", {"name": "Account", "fields": []})

        assert cache.get("00D/describe/Account") == {"name": "Account", "fields": []}

    def test_list_filters_by_prefix(self, cache):
        cache.put("00Da/upsert/1", {"success": True})
        cache.put("00Da/upsert/2", {"success": True})
        cache.put("00Db/upsert/1", {"success": True})

        assert sorted(cache.list("00Da/")) == ["00Da/upsert/1", "00Da/upsert/2"]
        assert len(list(cache.list())) == 3

    def test_delete_and_clear(self, cache):
        cache.put("00Da/x", 1)
        cache.put("00Da/y", 2)
        cache.put("00Db/z", 3)

        cache.delete("00Da/x")
        cache.delete("00Da/missing")
        assert cache.get("00Da/x") is None

        assert cache.clear("00Da/") == 1
        assert list(cache.list()) == ["00Db/z"]


@pytest.mark.unit
class TestFileCache:
    """File backend specifics."""

    def test_entries_survive_new_instance(self, tmp_path):
        directory = str(tmp_path / "cache")
        FileCache(directory).put("00D/identity", {"username": "a@b.c"})

        assert FileCache(directory).get("00D/identity") == {"username": "a@b.c"}

    def test_unreadable_entry_is_ignored(self, tmp_path):
        cache = FileCache(str(tmp_path))
        (tmp_path / "garbage.json").write_text("{not json", encoding="utf-8")
        cache.put("00D/k", "v")

        assert list(cache.list()) == ["00D/k"]


@pytest.mark.unit
class TestMemoize:
    """Test memoization helper."""

    def test_cache_key_namespaces_by_connection(self):
        assert cache_key("00Dabc", "describe", "Account") == "00Dabc/describe/Account"
        with pytest.raises(ValueError):
            cache_key("", "describe")

    @pytest.mark.asyncio
    async def test_fetches_once(self):
        cache = MemoryCache()
        calls = []

        async def fetch():
            calls.append(1)
            return {"records": [1]}

        first = await memoize(cache, "k", fetch)
        second = await memoize(cache, "k", fetch)

        assert first == second == {"records": [1]}
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_should_cache_false_is_not_stored(self):
        cache = MemoryCache()

        async def fetch():
            return {"records": []}

        await memoize(cache, "k", fetch, should_cache=lambda v: bool(v["records"]))

        assert cache.get("k") is None

    @pytest.mark.asyncio
    async def test_disabled_always_fetches(self):
        cache = MemoryCache()
        calls = []

        async def fetch():
            calls.append(1)
            return "v"

        await memoize(cache, "k", fetch, enabled=False)
        await memoize(None, "k", fetch)

        assert len(calls) == 2
        assert cache.get("k") is None
