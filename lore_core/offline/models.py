# =============================================================================
# lore_core/offline/models.py
# Records Shared by the Action Queue, Sync Engine and Local Cache
# =============================================================================
"""
Data model for the offline core.

PendingAction - a durably queued user intent awaiting delivery.
CachedFact    - a point-in-time snapshot of a remote fact.
GeoFilter     - center point + radius restricting results to an area.
SearchFilters - optional category / geofence filters for offline search.
"""

from __future__ import annotations
import time
import uuid
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from lore_core.errors import InvalidActionTypeError, InvalidRecordError


PENDING_ACTIONS = "pending_actions"
CACHED_FACTS = "cached_facts"


def now_ms() -> int:
    """Milliseconds since epoch."""
    return int(time.time() * 1000)


class ActionType(str, Enum):
    """User intents that can be queued while offline."""
    SUBMIT_FACT = "submit_fact"
    VOTE = "vote"
    COMMENT = "comment"
    SAVE_FACT = "save_fact"

    @classmethod
    def parse(cls, value: Any) -> ActionType:
        """Coerce a string or ActionType, raising InvalidActionTypeError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidActionTypeError(
                f"Unsupported action type: {value!r}",
                action_type=str(value),
            ) from None


@dataclass(frozen=True)
class PendingAction:
    """A queued user intent. Immutable once persisted."""
    type: ActionType
    data: Any
    timestamp: int
    idempotency_key: str = field(default_factory=lambda: uuid.uuid4().hex)
    id: Optional[int] = None

    def to_record(self) -> Dict[str, Any]:
        record = {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp,
            "idempotency_key": self.idempotency_key,
        }
        if self.id is not None:
            record["id"] = self.id
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> PendingAction:
        return cls(
            id=record.get("id"),
            type=ActionType.parse(record.get("type")),
            data=record.get("data"),
            timestamp=int(record.get("timestamp") or 0),
            # Records written before keys existed get a stable stand-in
            idempotency_key=record.get("idempotency_key") or f"legacy-{record.get('id')}",
        )


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # NaN never compares inside a radius
    if number != number:
        return None
    return number


def _vote_count(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass
class CachedFact:
    """Denormalised snapshot of a remote fact, keyed by the remote id."""
    id: Any
    title: str = ""
    description: str = ""
    location_name: str = ""
    category_id: Optional[Any] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    vote_count_up: int = 0
    created_at: Optional[str] = None
    cached_at: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    SNAPSHOT_FIELDS = (
        "id", "title", "description", "location_name", "category_id",
        "latitude", "longitude", "vote_count_up", "created_at", "cached_at",
    )

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        if not self.has_coordinates:
            return None
        return self.latitude, self.longitude

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CachedFact:
        """
        Build a snapshot from a remote payload or a stored record.

        Unknown keys are preserved in `extra` so the snapshot round-trips.
        """
        if data.get("id") is None:
            raise InvalidRecordError("Cached fact requires an 'id'", field="id")

        extra = {k: v for k, v in data.items() if k not in cls.SNAPSHOT_FIELDS and k != "extra"}
        extra.update(data.get("extra") or {})

        return cls(
            id=data["id"],
            title=data.get("title") or "",
            description=data.get("description") or "",
            location_name=data.get("location_name") or "",
            category_id=data.get("category_id"),
            latitude=_optional_float(data.get("latitude")),
            longitude=_optional_float(data.get("longitude")),
            vote_count_up=_vote_count(data.get("vote_count_up")),
            created_at=data.get("created_at"),
            cached_at=data.get("cached_at"),
            extra=extra,
        )

    def to_record(self) -> Dict[str, Any]:
        record = asdict(self)
        extra = record.pop("extra")
        return {**extra, **record}


@dataclass(frozen=True)
class GeoFilter:
    """Center (latitude, longitude) plus radius in kilometres."""
    center: Tuple[float, float]
    radius_km: float


@dataclass(frozen=True)
class SearchFilters:
    """Optional filters for offline search; all supplied filters must pass."""
    categories: FrozenSet[Any] = frozenset()
    center: Optional[Tuple[float, float]] = None
    radius_km: Optional[float] = None

    @property
    def geo_filter(self) -> Optional[GeoFilter]:
        if self.center is None or self.radius_km is None:
            return None
        return GeoFilter(center=tuple(self.center), radius_km=float(self.radius_km))

    @classmethod
    def coerce(cls, filters: Any) -> SearchFilters:
        """Accept None, a SearchFilters, or a plain dict of filter values."""
        if filters is None:
            return cls()
        if isinstance(filters, cls):
            return filters
        categories: Iterable[Any] = filters.get("categories") or ()
        if isinstance(categories, str):
            categories = (categories,)
        return cls(
            categories=frozenset(categories),
            center=filters.get("center"),
            radius_km=filters.get("radius_km"),
        )
