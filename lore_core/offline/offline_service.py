# =============================================================================
# lore_core/offline/offline_service.py
# Offline Service - Single API for Queueing, Syncing and Offline Search
# =============================================================================
"""
OfflineService - the API the rest of the app uses.

Every method resolves to a defined outcome and never raises:
- writes (enqueue, cache_fact, cache_facts) return a ServiceResult
- sync_now returns a SyncReport
- reads (search_offline, get_featured, get_recent) return lists, empty on failure

Usage:
------
from lore_core.offline import create_offline_service

service = create_offline_service()
service.enqueue("vote", {"fact_id": "f1", "user_id": user_id, "is_upvote": True})
service.cache_fact(fact_payload)
service.search_offline("lighthouse", {"radius_km": 10, "center": (51.5, -0.1)})
"""

from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional

from lore_core.config import OfflineSettings, load_settings
from lore_core.errors import error_boundary
from lore_core.logging import setup_logging
from lore_core.offline.action_queue import ActionQueue
from lore_core.offline.geo_cache import GeoCache
from lore_core.offline.local_store import open_store
from lore_core.offline.models import CachedFact, PendingAction
from lore_core.offline.network_monitor import NetworkMonitor, SocketProbe
from lore_core.offline.remote import create_supabase_remote
from lore_core.offline.search import OfflineSearchRanker
from lore_core.offline.sync_engine import SyncEngine, SyncReport
from lore_core.services import BaseService, ServiceResult


class OfflineService(BaseService):
    """
    Wires the store, queue, sync engine, cache and ranker together.

    Collaborators are passed in explicitly; monitor and remote are optional.
    """

    def __init__(
        self,
        store,
        monitor: Optional[NetworkMonitor] = None,
        remote=None,
        settings: Optional[OfflineSettings] = None,
    ):
        super().__init__()
        self.settings = settings or OfflineSettings()
        self.store = store
        self.monitor = monitor

        self.queue = ActionQueue(store)
        self.engine = SyncEngine(store, queue=self.queue, remote=remote, monitor=monitor)
        self.queue.attach_scheduler(self.engine)

        self.cache = GeoCache(
            store,
            max_entries=self.settings.cache_max_entries,
            max_age_days=self.settings.cache_max_age_days,
        )
        self.ranker = OfflineSearchRanker(self.cache)

        if not getattr(store, "durable", False):
            self.logger.warning("Offline data will not survive a restart (memory-only store)")

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_online(self) -> bool:
        """Optimistically online when no monitor is attached."""
        return True if self.monitor is None else self.monitor.is_online

    @property
    def is_durable(self) -> bool:
        return bool(getattr(self.store, "durable", False))

    @property
    def pending_actions(self) -> List[PendingAction]:
        return self.queue.pending

    @property
    def pending_sync_count(self) -> int:
        return len(self.queue)

    # =========================================================================
    # ACTION QUEUE / SYNC
    # =========================================================================

    def enqueue(self, action_type: Any, data: Any) -> ServiceResult:
        """Queue a user intent; data is the PendingAction on success."""
        return self.safe_execute(
            f"Queueing {action_type} action",
            self.queue.enqueue,
            action_type,
            data,
        )

    def sync_now(self) -> SyncReport:
        """Manual "retry now"."""
        try:
            return self.engine.sync_now()
        except Exception as e:
            self.logger.error(f"Sync failed: {e}", exc_info=True)
            return SyncReport(skipped="error")

    # =========================================================================
    # FACT CACHE / SEARCH
    # =========================================================================

    def cache_fact(self, fact: Any) -> ServiceResult:
        """Store a snapshot of a remote fact; data is the CachedFact."""
        return self.safe_execute("Caching fact", self.cache.put, fact)

    def cache_facts(self, facts: Iterable[Any]) -> ServiceResult:
        """Store several snapshots; data is the list of CachedFacts."""
        return self.safe_execute("Caching facts", self.cache.put_many, list(facts))

    @error_boundary(default_return=[], error_message="Offline search failed")
    def search_offline(self, query: Optional[str], filters: Any = None) -> List[CachedFact]:
        return self.ranker.search(query, filters)

    @error_boundary(default_return=[], error_message="Loading featured facts failed")
    def get_featured(self, limit: Optional[int] = None) -> List[CachedFact]:
        return self.ranker.featured(self.settings.featured_limit if limit is None else limit)

    @error_boundary(default_return=[], error_message="Loading recent facts failed")
    def get_recent(self, limit: Optional[int] = None) -> List[CachedFact]:
        return self.ranker.recent(self.settings.recent_limit if limit is None else limit)

    def cleanup_cache(self) -> ServiceResult:
        """Drop snapshots older than the configured age; data is the count."""
        return self.safe_execute("Cleaning fact cache", self.cache.cleanup_expired)

    # =========================================================================
    # LIFECYCLE / STATUS
    # =========================================================================

    def start(self) -> None:
        """Start background connectivity monitoring and the sync worker."""
        if self.monitor is not None:
            self.monitor.start_monitoring()
        self.engine.start()

    def close(self) -> None:
        """Stop background threads and close the store."""
        self.engine.stop()
        if self.monitor is not None:
            self.monitor.stop_monitoring()
        self.store.close()

    def get_status_display(self) -> Dict[str, Any]:
        """Get combined status for UI display."""
        connection = (
            self.monitor.get_status_display()
            if self.monitor is not None
            else {"status": "online", "is_online": True, "reliable": False}
        )
        return {
            "connection": connection,
            "sync": self.engine.get_status_display(),
            "durable": self.is_durable,
            "pending_actions": self.pending_sync_count,
        }


def create_offline_service(
    settings: Optional[OfflineSettings] = None,
    start: bool = False,
    configure_logging: bool = False,
) -> OfflineService:
    """
    Build an OfflineService from settings.

    Opens the SQLite store (memory-only fallback), attaches a socket-probing
    NetworkMonitor when monitoring is enabled, and a Supabase remote when
    credentials are configured.

    Args:
        settings: Settings to use (default: load_settings())
        start: Start the monitor and sync worker threads
        configure_logging: Apply the settings' log level / log file

    Raises:
        ConfigurationError: only while loading default settings
    """
    settings = settings or load_settings()
    if configure_logging:
        setup_logging(settings.log_level, log_to_file=settings.log_to_file)

    store = open_store(settings.db_path)

    monitor = None
    if settings.monitor_connectivity:
        monitor = NetworkMonitor(
            probe=SocketProbe(settings.probe_addresses, timeout=settings.probe_timeout),
            check_interval_online=settings.check_interval_online,
            check_interval_offline=settings.check_interval_offline,
        )

    remote = create_supabase_remote(
        settings.supabase_url,
        settings.supabase_key,
        idempotency_column=settings.idempotency_column,
    )

    service = OfflineService(store, monitor=monitor, remote=remote, settings=settings)
    if start:
        service.start()
    return service
