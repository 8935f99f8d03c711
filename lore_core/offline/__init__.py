# =============================================================================
# lore_core/offline/__init__.py
# Offline-First Architecture for LocaleLore
# =============================================================================
"""
Offline-First Architecture Module

Lets users keep submitting facts, voting, commenting and saving while the
network is gone, and search facts they have already seen without a server
round-trip.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                          OfflineService                          │
│      enqueue / sync_now / cache_fact / search_offline ...        │
└─────────────────────────────────────────────────────────────────┘
          │                    │                      │
          ▼                    ▼                      ▼
   ┌─────────────┐     ┌──────────────┐      ┌────────────────┐
   │ ActionQueue │────►│  SyncEngine  │◄─────│ NetworkMonitor │
   └─────────────┘     └──────────────┘      └────────────────┘
          │                    │  │
          │                    │  └──────────► RemoteService (Supabase)
          ▼                    ▼
   ┌──────────────────────────────────┐     ┌─────────────────────┐
   │            LocalStore            │◄────│      GeoCache       │
   │ pending_actions | cached_facts   │     │ OfflineSearchRanker │
   └──────────────────────────────────┘     └─────────────────────┘

Usage:
------
from lore_core.offline import create_offline_service

service = create_offline_service()
service.enqueue("comment", {"fact_id": "f1", "content": "Great spot"})
print(service.pending_sync_count)
"""

from lore_core.offline.models import (
    ActionType,
    PendingAction,
    CachedFact,
    GeoFilter,
    SearchFilters,
)

from lore_core.offline.local_store import (
    LocalStore,
    MemoryStore,
    open_store,
)

from lore_core.offline.network_monitor import (
    NetworkMonitor,
    ConnectionStatus,
    SocketProbe,
)

from lore_core.offline.action_queue import ActionQueue

from lore_core.offline.sync_engine import (
    SyncEngine,
    SyncReport,
    SyncState,
)

from lore_core.offline.remote import (
    RemoteService,
    SupabaseRemoteService,
    create_supabase_remote,
)

from lore_core.offline.geo_cache import (
    GeoCache,
    haversine_km,
)

from lore_core.offline.search import (
    OfflineSearchRanker,
    SearchHit,
)

from lore_core.offline.offline_service import (
    OfflineService,
    create_offline_service,
)

__all__ = [
    # Data model
    "ActionType",
    "PendingAction",
    "CachedFact",
    "GeoFilter",
    "SearchFilters",
    # Durable store
    "LocalStore",
    "MemoryStore",
    "open_store",
    # Connectivity
    "NetworkMonitor",
    "ConnectionStatus",
    "SocketProbe",
    # Queue / sync
    "ActionQueue",
    "SyncEngine",
    "SyncReport",
    "SyncState",
    "RemoteService",
    "SupabaseRemoteService",
    "create_supabase_remote",
    # Cache / search
    "GeoCache",
    "haversine_km",
    "OfflineSearchRanker",
    "SearchHit",
    # Main API
    "OfflineService",
    "create_offline_service",
]
