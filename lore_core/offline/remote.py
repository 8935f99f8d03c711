# =============================================================================
# lore_core/offline/remote.py
# Remote Service Adapter (Supabase)
# =============================================================================
"""
RemoteService - the calls the SyncEngine makes for each pending action type.

Any object providing these four methods can be plugged into the engine; a
call that raises or returns False counts as a failed delivery.

SupabaseRemoteService maps them onto the app's Supabase tables.
"""

from __future__ import annotations
from typing import Any, Dict, Optional, Protocol
import logging

logger = logging.getLogger(__name__)


class RemoteService(Protocol):
    """One call per PendingAction type."""

    def create_fact(self, data: Any, idempotency_key: str) -> Any:
        ...

    def upsert_vote(self, data: Any, idempotency_key: str) -> Any:
        ...

    def create_comment(self, data: Any, idempotency_key: str) -> Any:
        ...

    def create_saved_fact(self, data: Any, idempotency_key: str) -> Any:
        ...


class SupabaseRemoteService:
    """
    Delivers pending actions to Supabase.

    When `idempotency_column` is set, the action's idempotency key is written
    into that (unique) column and inserts become upserts that ignore
    duplicates, so a redelivered action is harmless.
    """

    # Local action -> remote table
    TABLES = {
        "facts": "facts",
        "votes": "votes",
        "comments": "comments",
        "saved_facts": "saved_facts",
    }

    def __init__(
        self,
        client,
        idempotency_column: Optional[str] = None,
        tables: Optional[Dict[str, str]] = None,
    ):
        self._client = client
        self.idempotency_column = idempotency_column
        self.tables = {**self.TABLES, **(tables or {})}

    def _row(self, data: Any, idempotency_key: str) -> Any:
        if self.idempotency_column and isinstance(data, dict):
            return {**data, self.idempotency_column: idempotency_key}
        return data

    def _insert(self, table: str, data: Any, idempotency_key: str) -> Any:
        query = self._client.table(self.tables[table])
        row = self._row(data, idempotency_key)
        if self.idempotency_column and isinstance(data, dict):
            return query.upsert(
                row,
                on_conflict=self.idempotency_column,
                ignore_duplicates=True,
            ).execute()
        return query.insert(row).execute()

    def create_fact(self, data: Any, idempotency_key: str) -> Any:
        return self._insert("facts", data, idempotency_key)

    def upsert_vote(self, data: Any, idempotency_key: str) -> Any:
        # Votes are naturally idempotent per (user, fact)
        return self._client.table(self.tables["votes"]).upsert(data).execute()

    def create_comment(self, data: Any, idempotency_key: str) -> Any:
        return self._insert("comments", data, idempotency_key)

    def create_saved_fact(self, data: Any, idempotency_key: str) -> Any:
        return self._insert("saved_facts", data, idempotency_key)


def create_supabase_remote(
    url: Optional[str],
    key: Optional[str],
    idempotency_column: Optional[str] = None,
) -> Optional[SupabaseRemoteService]:
    """
    Build a Supabase-backed remote service.

    Returns:
        SupabaseRemoteService, or None when credentials are missing or the
        client cannot be created (sync then stays paused, nothing is lost)
    """
    if not url or not key:
        logger.debug("Supabase credentials not configured, remote sync disabled")
        return None

    try:
        from supabase import create_client
        client = create_client(url, key)
    except Exception as e:
        logger.warning(f"Supabase client not available: {e}")
        return None

    return SupabaseRemoteService(client, idempotency_column=idempotency_column)
