# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import itertools
import logging
import sqlite3

import pytest
from unittest.mock import MagicMock

from lore_core.offline.local_store import LocalStore, MemoryStore


# =============================================================================
# STORE FIXTURES
# =============================================================================

@pytest.fixture
def db_path(tmp_path):
    """Path for a throwaway SQLite database"""
    return tmp_path / "local_data" / "localelore.db"


@pytest.fixture
def sqlite_store(db_path):
    """Opened SQLite-backed store, closed after the test"""
    store = LocalStore(db_path).open()
    yield store
    store.close()


@pytest.fixture
def memory_store():
    """Opened in-memory store"""
    return MemoryStore().open()


@pytest.fixture(params=["sqlite", "memory"])
def any_store(request, db_path):
    """Run a test against both store implementations"""
    if request.param == "sqlite":
        store = LocalStore(db_path).open()
    else:
        store = MemoryStore().open()
    yield store
    store.close()


@pytest.fixture
def clock():
    """Deterministic millisecond clock: 1000, 2000, 3000, ..."""
    counter = itertools.count(1)
    return lambda: next(counter) * 1000


# =============================================================================
# REMOTE SERVICE FIXTURES
# =============================================================================

class FakeRemote:
    """
    RemoteService double that records every call in order.

    `fail_when(method, data)` decides which calls raise.
    """

    def __init__(self, fail_when=None):
        self.calls = []
        self.fail_when = fail_when or (lambda method, data: False)

    def _call(self, method, data, idempotency_key):
        self.calls.append((method, data, idempotency_key))
        if self.fail_when(method, data):
            raise ConnectionError(f"{method} unavailable")
        return {"ok": True}

    def create_fact(self, data, idempotency_key):
        return self._call("create_fact", data, idempotency_key)

    def upsert_vote(self, data, idempotency_key):
        return self._call("upsert_vote", data, idempotency_key)

    def create_comment(self, data, idempotency_key):
        return self._call("create_comment", data, idempotency_key)

    def create_saved_fact(self, data, idempotency_key):
        return self._call("create_saved_fact", data, idempotency_key)


@pytest.fixture
def fake_remote():
    """Remote service where every call succeeds"""
    return FakeRemote()


@pytest.fixture
def remote_cls():
    """FakeRemote class, for tests that configure failures or subclass it"""
    return FakeRemote


@pytest.fixture
def mock_supabase():
    """Mock Supabase client"""
    mock_client = MagicMock()
    mock_client.table.return_value.insert.return_value.execute.return_value = MagicMock()
    mock_client.table.return_value.upsert.return_value.execute.return_value = MagicMock()
    return mock_client


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def beach_facts():
    """Facts used by the ranking scenario"""
    return [
        {"id": "a", "title": "Beach Sunset", "vote_count_up": 5},
        {"id": "b", "title": "Malibu Beach", "vote_count_up": 20},
        {"id": "c", "title": "Pier", "description": "near the beach", "vote_count_up": 0},
    ]


@pytest.fixture
def london_facts():
    """Facts around London, plus one without coordinates"""
    return [
        {
            "id": "tower",
            "title": "Tower Ravens",
            "description": "Six ravens must stay at the Tower",
            "location_name": "Tower of London",
            "category_id": "history",
            "latitude": 51.5081,
            "longitude": -0.0759,
            "vote_count_up": 42,
            "created_at": "2024-03-01T10:00:00Z",
        },
        {
            "id": "eye",
            "title": "London Eye Capsules",
            "description": "There is no capsule number 13",
            "location_name": "South Bank",
            "category_id": "trivia",
            "latitude": 51.5033,
            "longitude": -0.1196,
            "vote_count_up": 7,
            "created_at": "2024-05-20T08:30:00Z",
        },
        {
            "id": "stonehenge",
            "title": "Stonehenge Alignment",
            "description": "Aligned with the solstice sunrise",
            "location_name": "Wiltshire",
            "category_id": "history",
            "latitude": 51.1789,
            "longitude": -1.8262,
            "vote_count_up": 15,
            "created_at": "2023-12-21T06:00:00Z",
        },
        {
            "id": "rumour",
            "title": "London Fog Legend",
            "description": "A story with no fixed location",
            "category_id": "folklore",
            "vote_count_up": 3,
        },
    ]


@pytest.fixture
def damage_row(db_path):
    """Overwrite one stored payload behind the store's back"""
    def damage(collection, record_id, payload="{not json"):
        conn = sqlite3.connect(str(db_path))
        conn.execute(f"UPDATE {collection} SET payload = ? WHERE id = ?", (payload, record_id))
        conn.commit()
        conn.close()
    return damage


# =============================================================================
# LOGGING FIXTURES
# =============================================================================

@pytest.fixture
def restore_logging():
    """Undo setup_logging() changes to the root logger after the test"""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
