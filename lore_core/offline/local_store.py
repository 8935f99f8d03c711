# =============================================================================
# lore_core/offline/local_store.py
# Local SQLite Store for Offline Operations
# =============================================================================
"""
LocalStore - durable, transactional key-value store with two collections.

Collections:
- pending_actions: autoincrement integer ids, returned in write order
- cached_facts:    keyed by the remote fact id, upserts overwrite in place

Features:
- Versioned schema (PRAGMA user_version) with run-once migrations
- Atomic single-collection put / get_all / delete
- Thread-safe operations over one shared connection
- MemoryStore fallback when the database cannot be opened
"""

from __future__ import annotations
import copy
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
import logging

import numpy as np

from lore_core.config.settings import DEFAULT_DB_PATH
from lore_core.errors import StoreUnavailableError, StoreWriteError
from lore_core.offline.models import PENDING_ACTIONS, CACHED_FACTS

logger = logging.getLogger(__name__)


# Per-collection layout: key type, whether ids are store-assigned, and the
# record fields mirrored into real columns so they can be indexed.
COLLECTIONS = {
    PENDING_ACTIONS: {
        "autoincrement": True,
        "columns": ("timestamp",),
    },
    CACHED_FACTS: {
        "autoincrement": False,
        "columns": ("latitude", "longitude", "cached_at"),
    },
}


# Schema migrations, applied in order exactly once per database file.
MIGRATIONS: Dict[int, List[str]] = {
    1: [
        """
        CREATE TABLE IF NOT EXISTS pending_actions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp INTEGER NOT NULL DEFAULT 0,
            payload TEXT NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS cached_facts (
            id TEXT PRIMARY KEY,
            latitude REAL,
            longitude REAL,
            cached_at INTEGER,
            payload TEXT NOT NULL
        )
        """,
    ],
    2: [
        "CREATE INDEX IF NOT EXISTS idx_pending_actions_timestamp ON pending_actions (timestamp)",
        "CREATE INDEX IF NOT EXISTS idx_cached_facts_location ON cached_facts (latitude, longitude)",
        "CREATE INDEX IF NOT EXISTS idx_cached_facts_cached_at ON cached_facts (cached_at)",
    ],
}

SCHEMA_VERSION = max(MIGRATIONS)


def _json_default(value: Any) -> Any:
    """Make numpy scalars and datetimes JSON-serialisable."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _collection_spec(collection: str) -> Dict[str, Any]:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection!r}") from None


def _normalise_key(collection: str, key: Any) -> Any:
    """Integer keys for autoincrement collections, text keys otherwise."""
    if _collection_spec(collection)["autoincrement"]:
        return int(key)
    return str(key)


def _column_value(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (int, float, str)) or value is None:
        return value
    return None


class LocalStore:
    """
    SQLite-backed durable store.

    Usage:
        store = LocalStore(path).open()
        action_id = store.put("pending_actions", {"type": "vote", ...})
        records = store.get_all("pending_actions")
        store.delete("pending_actions", action_id)
    """

    durable = True

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        migrations: Optional[Dict[int, List[str]]] = None,
    ):
        """
        Initialize the store (call open() before use).

        Args:
            db_path: Path to SQLite database file
            migrations: Schema migrations keyed by version (defaults to MIGRATIONS)
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self._migrations = migrations or MIGRATIONS
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def schema_version(self) -> int:
        """Schema version recorded in the database file."""
        with self._lock:
            return self._connection().execute("PRAGMA user_version").fetchone()[0]

    def open(self) -> LocalStore:
        """
        Open the database and run pending migrations. Safe to call repeatedly.

        Raises:
            StoreUnavailableError: if the file cannot be created, opened or
                migrated (unwritable location, corrupted file, ...)
        """
        with self._lock:
            if self._conn is not None:
                return self

            conn = None
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                # Autocommit mode; transactions are explicit (see transaction())
                conn = sqlite3.connect(
                    str(self.db_path),
                    check_same_thread=False,
                    isolation_level=None,
                )
                conn.row_factory = sqlite3.Row
                self._migrate(conn)
            except (sqlite3.Error, OSError) as e:
                if conn is not None:
                    conn.close()
                raise StoreUnavailableError(
                    "Local store could not be opened",
                    db_path=str(self.db_path),
                    reason=str(e),
                ) from e

            self._conn = conn
            logger.info(f"Local store opened at: {self.db_path}")
            return self

    def _migrate(self, conn: sqlite3.Connection) -> None:
        """Apply every migration newer than the file's user_version."""
        current = conn.execute("PRAGMA user_version").fetchone()[0]
        latest = max(self._migrations)

        if current > latest:
            logger.warning(
                f"Local store schema v{current} is newer than supported v{latest}"
            )
            return

        for version in sorted(v for v in self._migrations if v > current):
            conn.execute("BEGIN IMMEDIATE")
            try:
                for statement in self._migrations[version]:
                    conn.execute(statement)
                conn.execute(f"PRAGMA user_version = {int(version)}")
                conn.execute("COMMIT")
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise
            logger.debug(f"Applied local store migration v{version}")

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreUnavailableError("Local store is not open", db_path=str(self.db_path))
        return self._conn

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        with self._lock:
            conn = self._connection()
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    # =========================================================================
    # COLLECTION OPERATIONS
    # =========================================================================

    def put(self, collection: str, record: Dict[str, Any]) -> Any:
        """
        Write a record into a collection.

        For pending_actions the store assigns the id; for cached_facts the
        record's own "id" is the key and an existing record is overwritten.

        Returns:
            The record id
        """
        spec = _collection_spec(collection)
        payload = dict(record)
        key = payload.get("id")

        if spec["autoincrement"] and key is None:
            payload.pop("id", None)
        elif key is None:
            raise StoreWriteError(f"Record for {collection} has no 'id'", collection=collection)

        columns = list(spec["columns"])
        values = [_column_value(payload.get(col)) for col in columns]
        try:
            payload_json = json.dumps(payload, default=_json_default)
        except (TypeError, ValueError) as e:
            raise StoreWriteError(
                f"Record for {collection} is not serialisable: {e}",
                collection=collection,
            ) from e

        try:
            with self.transaction() as conn:
                if key is None:
                    cursor = conn.execute(
                        f"INSERT INTO {collection} ({', '.join(columns)}, payload) "
                        f"VALUES ({', '.join('?' for _ in columns)}, ?)",
                        values + [payload_json],
                    )
                    return cursor.lastrowid

                # Upsert keeps the row (and its write position) on conflict
                updates = ", ".join(f"{col} = excluded.{col}" for col in columns + ["payload"])
                conn.execute(
                    f"INSERT INTO {collection} (id, {', '.join(columns)}, payload) "
                    f"VALUES (?, {', '.join('?' for _ in columns)}, ?) "
                    f"ON CONFLICT(id) DO UPDATE SET {updates}",
                    [_normalise_key(collection, key)] + values + [payload_json],
                )
                return key
        except sqlite3.Error as e:
            raise StoreWriteError(
                f"Write to {collection} failed: {e}",
                collection=collection,
            ) from e

    def get_all(self, collection: str) -> List[Dict[str, Any]]:
        """Return every record in a collection, in write order."""
        spec = _collection_spec(collection)
        with self._lock:
            try:
                rows = self._connection().execute(
                    f"SELECT id, payload FROM {collection} ORDER BY rowid"
                ).fetchall()
            except sqlite3.Error as e:
                raise StoreUnavailableError(
                    f"Read from {collection} failed",
                    db_path=str(self.db_path),
                    reason=str(e),
                ) from e

        records = []
        for row in rows:
            try:
                record = json.loads(row["payload"])
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable {collection} row {row['id']}: {e}")
                continue
            if not isinstance(record, dict):
                logger.warning(f"Skipping {collection} row {row['id']}: payload is not an object")
                continue
            if spec["autoincrement"]:
                record["id"] = row["id"]
            records.append(record)
        return records

    def delete(self, collection: str, record_id: Any) -> None:
        """Delete a record by id. Deleting a missing id is a no-op."""
        try:
            with self.transaction() as conn:
                conn.execute(
                    f"DELETE FROM {collection} WHERE id = ?",
                    [_normalise_key(collection, record_id)],
                )
        except sqlite3.Error as e:
            raise StoreWriteError(
                f"Delete from {collection} failed: {e}",
                collection=collection,
            ) from e

    def count(self, collection: str) -> int:
        """Number of records in a collection."""
        _collection_spec(collection)
        with self._lock:
            row = self._connection().execute(f"SELECT COUNT(*) AS n FROM {collection}").fetchone()
        return row["n"]

    def clear(self, collection: str) -> None:
        """Remove every record in a collection."""
        _collection_spec(collection)
        try:
            with self.transaction() as conn:
                conn.execute(f"DELETE FROM {collection}")
        except sqlite3.Error as e:
            raise StoreWriteError(f"Clear of {collection} failed: {e}", collection=collection) from e

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


class MemoryStore:
    """
    Process-local store with the LocalStore contract and no durability.

    Used when the database cannot be opened, and as a test double.
    """

    durable = False

    def __init__(self):
        self._collections: Dict[str, Dict[Any, Dict[str, Any]]] = {
            name: {} for name in COLLECTIONS
        }
        self._next_id: Dict[str, int] = {name: 1 for name in COLLECTIONS}
        self._lock = threading.RLock()
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> MemoryStore:
        self._open = True
        return self

    def put(self, collection: str, record: Dict[str, Any]) -> Any:
        spec = _collection_spec(collection)
        payload = copy.deepcopy(dict(record))
        key = payload.get("id")

        with self._lock:
            if spec["autoincrement"] and key is None:
                key = self._next_id[collection]
                payload["id"] = key
            elif key is None:
                raise StoreWriteError(f"Record for {collection} has no 'id'", collection=collection)
            elif spec["autoincrement"]:
                key = int(key)

            if spec["autoincrement"]:
                self._next_id[collection] = max(self._next_id[collection], key + 1)

            # Dict assignment keeps the original position for existing keys
            self._collections[collection][_normalise_key(collection, key)] = payload
            return key

    def get_all(self, collection: str) -> List[Dict[str, Any]]:
        _collection_spec(collection)
        with self._lock:
            return [copy.deepcopy(r) for r in self._collections[collection].values()]

    def delete(self, collection: str, record_id: Any) -> None:
        _collection_spec(collection)
        with self._lock:
            self._collections[collection].pop(_normalise_key(collection, record_id), None)

    def count(self, collection: str) -> int:
        _collection_spec(collection)
        with self._lock:
            return len(self._collections[collection])

    def clear(self, collection: str) -> None:
        _collection_spec(collection)
        with self._lock:
            self._collections[collection].clear()

    def close(self) -> None:
        self._open = False


Store = Union[LocalStore, MemoryStore]


def open_store(
    db_path: Optional[Union[str, Path]] = None,
    store_factory: Callable[..., LocalStore] = LocalStore,
) -> Store:
    """
    Open the durable store, degrading to memory-only mode on failure.

    Never raises: a store that cannot be opened is logged once and replaced
    by a MemoryStore, so queued actions and cached facts keep working for
    the current process but do not survive a restart.
    """
    try:
        return store_factory(db_path).open()
    except StoreUnavailableError as e:
        logger.warning(f"{e} - continuing in memory-only mode")
        return MemoryStore().open()
