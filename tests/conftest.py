"""
Pytest configuration and shared fixtures for orgsync tests.
"""

import pytest

from orgsync.cache import MemoryCache
from orgsync.common.config import ReplicationConfig
from tests.fixtures.clients import EXTERNAL_ID_FIELD
from tests.fixtures.fake_store import source_and_dest


@pytest.fixture
def external_id_field():
    return EXTERNAL_ID_FIELD


@pytest.fixture
def memory_cache():
    return MemoryCache()


@pytest.fixture
def replication_config():
    """Replication settings isolated from the environment."""
    return ReplicationConfig(
        external_id_field=EXTERNAL_ID_FIELD,
        batch_size=1,
        page_size=2,
        max_retries=0,
        retry_initial_delay=0,
        enforce_dependency_order=False,
        follow_references=False,
        continue_on_batch_error=True,
    )


@pytest.fixture
def account_chain():
    """A1 <- A2 <- A3 parent chain."""
    return {
        "Account": [
            {"Id": "A1", "Name": "Root"},
            {"Id": "A2", "Name": "Child", "ParentId": "A1"},
            {"Id": "A3", "Name": "Grandchild", "ParentId": "A2"},
        ]
    }


@pytest.fixture
def stores(account_chain):
    """(source, destination) fake stores seeded with the account chain."""
    return source_and_dest(account_chain, EXTERNAL_ID_FIELD)
