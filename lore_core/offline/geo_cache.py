# =============================================================================
# lore_core/offline/geo_cache.py
# Local Snapshot Cache of Facts with Radius Queries
# =============================================================================
"""
GeoCache - keeps point-in-time snapshots of facts fetched from the remote
service so they can be browsed and searched offline.

Features:
- Idempotent upserts keyed by fact id (last write wins)
- Great-circle (haversine) radius filtering
- Size cap evicting the oldest snapshots by cached_at
- Age-based cleanup
"""

from __future__ import annotations
import dataclasses
import math
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import logging

from lore_core.offline.models import CACHED_FACTS, CachedFact, GeoFilter, now_ms

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(
    origin: Tuple[float, float],
    destination: Tuple[float, float],
) -> float:
    """
    Great-circle distance in kilometres between two (lat, lon) points.

    a = sin²(Δlat/2) + cos(lat1)·cos(lat2)·sin²(Δlon/2)
    d = 2·R·atan2(√a, √(1−a))
    """
    lat1, lon1 = origin
    lat2, lon2 = destination
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def within_radius(fact: CachedFact, geo_filter: GeoFilter) -> bool:
    """True when the fact has coordinates within the filter radius (inclusive)."""
    if not fact.has_coordinates:
        return False
    return haversine_km(geo_filter.center, fact.coordinates) <= geo_filter.radius_km


class GeoCache:
    """
    Snapshot cache over the store's cached_facts collection.

    Usage:
        cache = GeoCache(store)
        cache.put({"id": "f1", "title": "Old Lighthouse", "latitude": 51.5, ...})
        nearby = cache.get_all(GeoFilter(center=(51.5, -0.1), radius_km=5))
    """

    DEFAULT_MAX_ENTRIES = 500
    DEFAULT_MAX_AGE_DAYS = 30

    def __init__(
        self,
        store,
        max_entries: Optional[int] = DEFAULT_MAX_ENTRIES,
        max_age_days: Optional[int] = DEFAULT_MAX_AGE_DAYS,
        clock=now_ms,
    ):
        """
        Args:
            store: LocalStore or MemoryStore (already opened)
            max_entries: Size cap; None or 0 means unbounded
            max_age_days: Age used by cleanup_expired(); None disables it
            clock: Millisecond clock used for cached_at
        """
        self._store = store
        self.max_entries = max_entries or None
        self.max_age_days = max_age_days
        self._clock = clock

    def put(self, fact: Union[CachedFact, Dict[str, Any]]) -> CachedFact:
        """
        Upsert a snapshot, stamping cached_at.

        Raises:
            InvalidRecordError: the fact has no id
            StoreWriteError: the store rejected the write
        """
        if not isinstance(fact, CachedFact):
            fact = CachedFact.from_dict(fact)
        fact = dataclasses.replace(fact, cached_at=self._clock())

        self._store.put(CACHED_FACTS, fact.to_record())
        self._enforce_size_cap(keep=fact.id)
        return fact

    def put_many(self, facts: Iterable[Union[CachedFact, Dict[str, Any]]]) -> List[CachedFact]:
        """Upsert several snapshots."""
        return [self.put(fact) for fact in facts]

    def get_all(self, geo_filter: Optional[GeoFilter] = None) -> List[CachedFact]:
        """
        All cached facts in store order, optionally restricted to a radius.

        With a geofilter, facts lacking coordinates are excluded.
        """
        facts = []
        for record in self._store.get_all(CACHED_FACTS):
            try:
                facts.append(CachedFact.from_dict(record))
            except Exception as e:
                logger.warning(f"Skipping unreadable cached fact: {e}")

        if geo_filter is None:
            return facts
        return [fact for fact in facts if within_radius(fact, geo_filter)]

    def count(self) -> int:
        return self._store.count(CACHED_FACTS)

    def delete(self, fact_id: Any) -> None:
        self._store.delete(CACHED_FACTS, fact_id)

    # =========================================================================
    # CACHE MANAGEMENT
    # =========================================================================

    def _enforce_size_cap(self, keep: Any = None) -> int:
        if not self.max_entries:
            return 0
        excess = self.count() - self.max_entries
        if excess <= 0:
            return 0

        # Stable sort: equal cached_at keeps store order; the fact just
        # written is never its own eviction victim
        candidates = [f for f in self.get_all() if keep is None or str(f.id) != str(keep)]
        evicted = sorted(candidates, key=lambda f: f.cached_at or 0)[:excess]
        for fact in evicted:
            self.delete(fact.id)
        logger.debug(f"Evicted {len(evicted)} cached facts over the {self.max_entries} cap")
        return len(evicted)

    def cleanup_expired(self, max_age_days: Optional[int] = None) -> int:
        """
        Remove snapshots older than max_age_days.

        Returns:
            Number of facts removed
        """
        max_age_days = self.max_age_days if max_age_days is None else max_age_days
        if max_age_days is None:
            return 0

        cutoff = self._clock() - int(timedelta(days=max_age_days).total_seconds() * 1000)
        removed = 0
        for fact in self.get_all():
            if (fact.cached_at or 0) < cutoff:
                self.delete(fact.id)
                removed += 1

        if removed:
            logger.info(f"Removed {removed} expired cached facts")
        return removed

    def clear(self) -> None:
        """Clear entire cache."""
        self._store.clear(CACHED_FACTS)
        logger.info("Fact cache cleared")

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        facts = self.get_all()
        stamps = [f.cached_at for f in facts if f.cached_at is not None]
        return {
            "total_facts": len(facts),
            "with_coordinates": sum(1 for f in facts if f.has_coordinates),
            "oldest_cached_at": min(stamps) if stamps else None,
            "newest_cached_at": max(stamps) if stamps else None,
            "max_entries": self.max_entries,
        }
