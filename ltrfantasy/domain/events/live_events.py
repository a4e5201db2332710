"""Domain Events published on the notification hub.

Each ``EventType`` has exactly one payload dataclass; ``EVENT_PAYLOADS``
records the pairing so publishers can be checked in tests.
"""

from dataclasses import dataclass, field
from enum import Enum
import time
from typing import Any, Dict, Optional, Type, Union


class EventType(str, Enum):
    """Names of the events fanned out by the hub."""
    GAME_UPDATE = "gameUpdate"
    SCOREBOARD_UPDATE = "scoreboardUpdate"
    DATA_FETCHED = "dataFetched"
    FETCH_FAILED = "fetchFailed"
    TRACKING_ERROR = "trackingError"


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class GameUpdate(DomainEvent):
    """Fresh data for a tracked live game."""
    game_id: str
    data: Any
    timestamp: float = field(default_factory=time.time)


@dataclass
class ScoreboardUpdate(DomainEvent):
    """The week's scoreboard was refreshed."""
    events: list
    timestamp: float = field(default_factory=time.time)


@dataclass
class DataFetched(DomainEvent):
    """A URL was fetched from the network and written back to the store."""
    url: str
    ttl_seconds: int
    attempts: int
    cached: bool = True
    timestamp: float = field(default_factory=time.time)


@dataclass
class FetchFailed(DomainEvent):
    """A URL could not be fetched after all retries."""
    url: str
    attempts: int
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class TrackingError(DomainEvent):
    """One refresh tick of a live tracker failed."""
    game_id: str
    error_message: str
    timestamp: float = field(default_factory=time.time)


EventPayload = Union[GameUpdate, ScoreboardUpdate, DataFetched, FetchFailed, TrackingError]

EVENT_PAYLOADS: Dict[EventType, Type[DomainEvent]] = {
    EventType.GAME_UPDATE: GameUpdate,
    EventType.SCOREBOARD_UPDATE: ScoreboardUpdate,
    EventType.DATA_FETCHED: DataFetched,
    EventType.FETCH_FAILED: FetchFailed,
    EventType.TRACKING_ERROR: TrackingError,
}


def payload_type_for(event_type: Union[EventType, str]) -> Optional[Type[DomainEvent]]:
    """Returns the payload class registered for an event type, if any."""
    try:
        return EVENT_PAYLOADS[EventType(event_type)]
    except ValueError:
        return None
