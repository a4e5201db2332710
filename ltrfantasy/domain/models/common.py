"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like URLs, cache keys and entity ids,
ensuring consistency across the storage, fetch and service layers.
"""

from enum import Enum
from typing import Any, Dict, List, NewType, TypedDict, Union

# === Core Value Objects ===

Url = NewType("Url", str)                      # Absolute request URL
CacheKey = NewType("CacheKey", str)            # URL or synthetic key (e.g. 'roster_12')
Partition = NewType("Partition", str)          # Logical store partition name
TeamId = NewType("TeamId", str)
PlayerId = NewType("PlayerId", str)
GameId = NewType("GameId", str)

# Anything json.dumps accepts
JsonValue = Union[Dict[str, Any], List[Any], str, int, float, bool, None]


class EntityType(str, Enum):
    """Logical entity kinds with a fixed minimal field list for validation."""
    PLAYER = "PLAYER"
    TEAM = "TEAM"
    GAME = "GAME"
    ODDS = "ODDS"


class StatValue(TypedDict):
    """A single statistic pulled out of a season statistics payload."""
    value: Any
    displayValue: str
    rank: Any


class ActivePlayer(TypedDict):
    """Normalized roster entry for an active player."""
    id: str
    fullName: str
    position: Any
    team: str
    jersey: Any
    experience: Any
    college: Any
