"""Entities owned by the storage and resilience contexts.

Bounded Context: Cache Management / API Resilience
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from ltrfantasy.domain.exceptions import ErrorKind
from ltrfantasy.domain.models.common import CacheKey, Partition, Url

CACHE_PARTITION = Partition("cache")
PLAYERS_PARTITION = Partition("players")
TEAMS_PARTITION = Partition("teams")
LINEUPS_PARTITION = Partition("lineups")
STATS_PARTITION = Partition("stats")

ALL_PARTITIONS = (
    PLAYERS_PARTITION,
    TEAMS_PARTITION,
    LINEUPS_PARTITION,
    STATS_PARTITION,
    CACHE_PARTITION,
)


@dataclass
class CacheEntry:
    """A stored value plus its write and expiry timestamps (epoch seconds)."""
    key: CacheKey
    value: Any
    stored_at: float
    expires_at: float

    def __post_init__(self) -> None:
        if self.expires_at <= self.stored_at:
            raise ValueError(
                f"Cache entry '{self.key}' must expire after it is stored "
                f"(stored_at={self.stored_at}, expires_at={self.expires_at})"
            )

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            key=CacheKey(data["key"]),
            value=data.get("value"),
            stored_at=float(data["stored_at"]),
            expires_at=float(data["expires_at"]),
        )


@dataclass
class RateLimiterState:
    """Mutable fixed-window counters of the throttler."""
    max_requests: int
    window_seconds: float
    backoff_factor: float
    request_count: int = 0
    window_start: float = 0.0
    throttled_events: int = 0  # Consecutive throttling events in this window


@dataclass
class CacheOperation:
    """One write for a batched cache operation."""
    key: CacheKey
    data: Any
    ttl_seconds: int
    partition: Partition = CACHE_PARTITION


@dataclass
class FetchResult:
    """Per-item outcome of a batch fetch. Never raised, always returned."""
    url: Url
    success: bool
    data: Any = None
    error: Optional[BaseException] = None

    @property
    def error_kind(self) -> Optional[str]:
        """ErrorKind value for failed items, None for successes."""
        if self.error is None:
            return None
        kind = getattr(self.error, "kind", None)
        return (kind or ErrorKind.UNKNOWN).value
