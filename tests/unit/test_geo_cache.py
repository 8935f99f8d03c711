# =============================================================================
# tests/unit/test_geo_cache.py
# Unit Tests for the Local Fact Cache
# =============================================================================

import math

import pytest

from lore_core.errors import InvalidRecordError
from lore_core.offline.geo_cache import GeoCache, haversine_km, within_radius
from lore_core.offline.models import CachedFact, GeoFilter

DAY_MS = 24 * 60 * 60 * 1000


class ManualClock:
    """Clock the test moves explicitly"""

    def __init__(self, start=0):
        self.now = start

    def __call__(self):
        return self.now


class TestHaversine:
    """Great-circle distance"""

    def test_same_point_is_zero(self):
        assert haversine_km((51.5, -0.12), (51.5, -0.12)) == 0.0

    def test_one_degree_of_longitude_on_equator(self):
        expected = 2 * math.pi * 6371.0 / 360
        assert haversine_km((0.0, 0.0), (0.0, 1.0)) == pytest.approx(expected, rel=1e-9)

    def test_london_to_paris(self):
        distance = haversine_km((51.5074, -0.1278), (48.8566, 2.3522))
        assert distance == pytest.approx(343.5, abs=1.0)

    def test_symmetric(self):
        a, b = (40.7128, -74.0060), (34.0522, -118.2437)
        assert haversine_km(a, b) == pytest.approx(haversine_km(b, a))


class TestRadiusFilter:
    """Inclusive radius with coordinate-less facts excluded"""

    def test_boundary_is_inclusive(self, any_store):
        cache = GeoCache(any_store)
        cache.put({"id": "edge", "latitude": 0.0, "longitude": 1.0})
        distance = haversine_km((0.0, 0.0), (0.0, 1.0))

        inside = cache.get_all(GeoFilter(center=(0.0, 0.0), radius_km=distance))
        outside = cache.get_all(GeoFilter(center=(0.0, 0.0), radius_km=distance - 1e-6))

        assert [f.id for f in inside] == ["edge"]
        assert outside == []

    def test_nearby_only(self, memory_store, london_facts):
        cache = GeoCache(memory_store)
        cache.put_many(london_facts)

        nearby = cache.get_all(GeoFilter(center=(51.5074, -0.1278), radius_km=10))

        assert [f.id for f in nearby] == ["tower", "eye"]

    def test_facts_without_coordinates(self, memory_store, london_facts):
        cache = GeoCache(memory_store)
        cache.put_many(london_facts)

        assert "rumour" in [f.id for f in cache.get_all()]
        assert "rumour" not in [f.id for f in cache.get_all(GeoFilter((51.5, -0.1), 20000))]

    def test_invalid_coordinates_treated_as_missing(self):
        fact = CachedFact.from_dict({"id": "x", "latitude": "n/a", "longitude": float("nan")})
        assert not fact.has_coordinates
        assert within_radius(fact, GeoFilter((0.0, 0.0), 1e9)) is False


class TestUpsert:
    """Snapshots keyed by fact id"""

    def test_latest_write_wins(self, any_store):
        cache = GeoCache(any_store)
        cache.put({"id": "f1", "title": "Mill", "vote_count_up": 1})
        cache.put({"id": "f1", "title": "Mill", "vote_count_up": 12})

        facts = cache.get_all()

        assert len(facts) == 1
        assert facts[0].vote_count_up == 12

    def test_put_stamps_cached_at(self, memory_store):
        cache = GeoCache(memory_store, clock=ManualClock(4242))
        original = CachedFact(id="f1", title="Mill")

        stored = cache.put(original)

        assert stored.cached_at == 4242
        assert original.cached_at is None

    def test_missing_id_rejected(self, memory_store):
        cache = GeoCache(memory_store)
        with pytest.raises(InvalidRecordError):
            cache.put({"title": "Nameless"})
        assert cache.count() == 0

    def test_unknown_fields_round_trip(self, sqlite_store):
        cache = GeoCache(sqlite_store)
        cache.put({"id": "f1", "title": "Mill", "image_url": "https://example.org/mill.jpg"})

        fact = cache.get_all()[0]

        assert fact.extra == {"image_url": "https://example.org/mill.jpg"}


class TestSizeCap:
    """Oldest snapshots evicted over max_entries"""

    def test_oldest_evicted(self, any_store, clock):
        cache = GeoCache(any_store, max_entries=2, clock=clock)
        cache.put({"id": "a"})
        cache.put({"id": "b"})
        cache.put({"id": "c"})

        assert sorted(f.id for f in cache.get_all()) == ["b", "c"]

    def test_refreshed_fact_survives(self, memory_store, clock):
        cache = GeoCache(memory_store, max_entries=2, clock=clock)
        cache.put({"id": "a"})
        cache.put({"id": "b"})
        cache.put({"id": "a", "title": "refreshed"})
        cache.put({"id": "c"})

        assert sorted(f.id for f in cache.get_all()) == ["a", "c"]

    def test_same_timestamp_keeps_new_fact(self, memory_store):
        cache = GeoCache(memory_store, max_entries=1, clock=ManualClock(1))
        cache.put({"id": "a"})
        cache.put({"id": "b"})

        assert [f.id for f in cache.get_all()] == ["b"]

    def test_zero_means_unbounded(self, memory_store):
        cache = GeoCache(memory_store, max_entries=0)
        cache.put_many({"id": str(i)} for i in range(20))
        assert cache.count() == 20


class TestCleanup:
    """Age-based expiry and housekeeping"""

    def test_cleanup_expired(self, memory_store):
        clock = ManualClock(0)
        cache = GeoCache(memory_store, clock=clock)
        cache.put({"id": "old"})
        clock.now = 2 * DAY_MS
        cache.put({"id": "fresh"})
        clock.now = 2 * DAY_MS + 1

        removed = cache.cleanup_expired(max_age_days=1)

        assert removed == 1
        assert [f.id for f in cache.get_all()] == ["fresh"]

    def test_cleanup_uses_default_age(self, memory_store):
        clock = ManualClock(0)
        cache = GeoCache(memory_store, max_age_days=30, clock=clock)
        cache.put({"id": "f1"})
        clock.now = 29 * DAY_MS

        assert cache.cleanup_expired() == 0

    def test_stats(self, memory_store, london_facts, clock):
        cache = GeoCache(memory_store, max_entries=50, clock=clock)
        cache.put_many(london_facts)

        stats = cache.stats()

        assert stats["total_facts"] == 4
        assert stats["with_coordinates"] == 3
        assert stats["oldest_cached_at"] == 1000
        assert stats["newest_cached_at"] == 4000
        assert stats["max_entries"] == 50

    def test_clear(self, any_store, london_facts):
        cache = GeoCache(any_store)
        cache.put_many(london_facts)
        cache.clear()
        assert cache.count() == 0
