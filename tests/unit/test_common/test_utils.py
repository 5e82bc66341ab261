"""Unit tests for common utilities."""

import pytest

from orgsync.common.utils import chunk, content_hash, flatten_dict, is_blank, retry_with_backoff
from orgsync.replication.errors import TransientRemoteError


@pytest.mark.unit
class TestUtils:
    """Test hashing, chunking and flattening helpers."""

    def test_content_hash_ignores_key_order(self):
        """Test records with the same content hash identically."""
        a = {"Name": "Acme", "Industry": "Energy", "Ext__c": "A1"}
        b = {"Ext__c": "A1", "Industry": "Energy", "Name": "Acme"}

        assert content_hash(a) == content_hash(b)
        assert content_hash(a) != content_hash({**a, "Name": "Other"})

    def test_chunk_splits_evenly(self):
        """Test chunking keeps order and bounds chunk size."""
        assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert chunk([], 3) == []

    def test_chunk_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            chunk([1], 0)

    def test_flatten_dict_uses_dotted_keys(self):
        """Test nested relationship records become dotted keys."""
        flat = flatten_dict({"Name": "x", "Owner": {"Email": "a@b.c", "Manager": {"Id": "1"}}})

        assert flat == {"Name": "x", "Owner.Email": "a@b.c", "Owner.Manager.Id": "1"}

    def test_is_blank(self):
        assert is_blank(None)
        assert is_blank("")
        assert is_blank("   ")
        assert is_blank(0)
        assert is_blank(False)
        assert not is_blank("x")
        assert not is_blank(12)


@pytest.mark.unit
class TestRetryWithBackoff:
    """Test async retry helper."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise TransientRemoteError("busy")
            return "ok"

        result = await retry_with_backoff(
            flaky, retry_on=(TransientRemoteError,), max_retries=3, initial_delay=0
        )

        assert result == "ok"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_raises_after_max_retries(self):
        attempts = []

        async def always_fails():
            attempts.append(1)
            raise TransientRemoteError("down")

        with pytest.raises(TransientRemoteError):
            await retry_with_backoff(
                always_fails, retry_on=(TransientRemoteError,), max_retries=2, initial_delay=0
            )

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_does_not_retry_other_errors(self):
        attempts = []

        async def broken():
            attempts.append(1)
            raise KeyError("nope")

        with pytest.raises(KeyError):
            await retry_with_backoff(
                broken, retry_on=(TransientRemoteError,), max_retries=5, initial_delay=0
            )

        assert len(attempts) == 1
