# =============================================================================
# lore_core/offline/search.py
# Offline Search and Ranking over Cached Facts
# =============================================================================
"""
OfflineSearchRanker - text search, filtering and ranking over the local fact
cache, with no network access.

Scoring (only for facts that pass every filter):
    title contains query          +10
    title starts with query       +5 (on top of the above)
    location_name contains query  +8
    description contains query    +3
    popularity                    +0.1 x min(vote_count_up, 10)

Results are sorted by score, descending, with a stable sort so ties keep
the cache's iteration order.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Optional
import logging

import numpy as np
import pandas as pd

from lore_core.offline.geo_cache import GeoCache
from lore_core.offline.models import CachedFact, SearchFilters

logger = logging.getLogger(__name__)


SCORE_TITLE = 10.0
SCORE_TITLE_PREFIX = 5.0
SCORE_LOCATION = 8.0
SCORE_DESCRIPTION = 3.0
POPULARITY_WEIGHT = 0.1
POPULARITY_CAP = 10


@dataclass(frozen=True)
class SearchHit:
    """A fact that matched a query, with its relevance score."""
    fact: CachedFact
    score: float


def _snapshot_frame(facts: List[CachedFact]) -> pd.DataFrame:
    """One row per fact; the index is the fact's position in `facts`."""
    return pd.DataFrame({
        "title": [str(f.title) for f in facts],
        "description": [str(f.description) for f in facts],
        "location_name": [str(f.location_name) for f in facts],
        "category_id": [f.category_id for f in facts],
        "vote_count_up": np.array([f.vote_count_up for f in facts], dtype=float),
        "created_at": [None if f.created_at is None else str(f.created_at) for f in facts],
    })


class OfflineSearchRanker:
    """
    Ranks cached facts for a text query.

    Usage:
        ranker = OfflineSearchRanker(cache)
        ranker.search("beach", {"categories": {"nature"}})
        ranker.featured(limit=5)
    """

    def __init__(self, cache: GeoCache):
        self._cache = cache

    def score(self, query: Optional[str], filters: Any = None) -> List[SearchHit]:
        """
        Filter and score cached facts.

        A blank query means "no search" and yields no hits. Otherwise the
        query is matched as given (case-insensitive, surrounding spaces kept).
        """
        if not (query or "").strip():
            return []
        needle = query.lower()

        filters = SearchFilters.coerce(filters)
        facts = self._cache.get_all(filters.geo_filter)
        if not facts:
            return []

        frame = _snapshot_frame(facts)
        title = frame["title"].str.lower()
        in_title = title.str.contains(needle, regex=False).to_numpy(dtype=bool)
        title_prefix = title.str.startswith(needle).to_numpy(dtype=bool)
        in_location = frame["location_name"].str.lower().str.contains(needle, regex=False).to_numpy(dtype=bool)
        in_description = frame["description"].str.lower().str.contains(needle, regex=False).to_numpy(dtype=bool)

        mask = in_title | in_location | in_description
        if filters.categories:
            mask &= frame["category_id"].isin(list(filters.categories)).to_numpy(dtype=bool)

        frame["score"] = (
            np.where(in_title, SCORE_TITLE, 0.0)
            + np.where(title_prefix, SCORE_TITLE_PREFIX, 0.0)
            + np.where(in_location, SCORE_LOCATION, 0.0)
            + np.where(in_description, SCORE_DESCRIPTION, 0.0)
            + POPULARITY_WEIGHT * np.minimum(frame["vote_count_up"].to_numpy(), POPULARITY_CAP)
        )

        ranked = frame[mask].sort_values("score", ascending=False, kind="mergesort")
        logger.debug(f"Offline search {needle!r}: {len(ranked)} of {len(facts)} facts matched")
        return [
            SearchHit(fact=facts[position], score=float(score))
            for position, score in zip(ranked.index, ranked["score"])
        ]

    def search(self, query: Optional[str], filters: Any = None) -> List[CachedFact]:
        """Matching facts, best first."""
        return [hit.fact for hit in self.score(query, filters)]

    def featured(self, limit: Optional[int] = 5) -> List[CachedFact]:
        """Most up-voted cached facts."""
        facts = self._cache.get_all()
        if not facts:
            return []
        frame = _snapshot_frame(facts)
        ranked = frame.sort_values("vote_count_up", ascending=False, kind="mergesort")
        return self._take(facts, ranked.index, limit)

    def recent(self, limit: Optional[int] = 5) -> List[CachedFact]:
        """Most recently created cached facts; undated facts come last."""
        facts = self._cache.get_all()
        if not facts:
            return []
        frame = _snapshot_frame(facts)
        frame["created"] = pd.to_datetime(
            frame["created_at"], errors="coerce", utc=True, format="ISO8601"
        )
        ranked = frame.sort_values(
            "created", ascending=False, kind="mergesort", na_position="last"
        )
        return self._take(facts, ranked.index, limit)

    @staticmethod
    def _take(facts: List[CachedFact], positions, limit: Optional[int]) -> List[CachedFact]:
        ordered = [facts[position] for position in positions]
        return ordered if limit is None else ordered[:limit]
