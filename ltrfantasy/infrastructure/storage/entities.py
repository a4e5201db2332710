"""Bulk entity storage on top of the persistent store.

Players, teams and lineups live in their own partitions, separate from the
generic URL cache, so a cache sweep or TTL policy change never touches a
saved lineup.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from ltrfantasy.domain.interfaces.store import KeyValueStore
from ltrfantasy.domain.models.cache import LINEUPS_PARTITION, PLAYERS_PARTITION, TEAMS_PARTITION
from ltrfantasy.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

PLAYER_CHUNK_SIZE = 50
PLAYER_CHUNK_COUNT_KEY = CacheKey("player_chunk_count")
PLAYERS_KEY = CacheKey("players")
TEAMS_KEY = CacheKey("teams")
CURRENT_LINEUP_KEY = CacheKey("current_lineup")
SAVED_LINEUPS_KEY = CacheKey("saved_lineups")


def player_chunk_key(index: int) -> CacheKey:
    return CacheKey(f"players_chunk_{index}")


class EntityRepository:
    """Stores players, teams and lineups in their dedicated partitions."""

    def __init__(self, store: KeyValueStore, players_ttl: int = 3600, teams_ttl: int = 86400, lineup_ttl: int = 30 * 86400):
        self.store = store
        self.players_ttl = players_ttl
        self.teams_ttl = teams_ttl
        self.lineup_ttl = lineup_ttl

    # --- Players ---

    async def set_players(self, players: List[Dict[str, Any]], chunked: bool = False) -> bool:
        """Stores a player list, optionally split into chunks of 50."""
        if not chunked:
            return await self.store.set(PLAYERS_KEY, players, self.players_ttl, partition=PLAYERS_PARTITION)

        ok = True
        chunk_count = 0
        for start in range(0, len(players), PLAYER_CHUNK_SIZE):
            chunk = players[start:start + PLAYER_CHUNK_SIZE]
            stored = await self.store.set(player_chunk_key(chunk_count), chunk, self.players_ttl, partition=PLAYERS_PARTITION)
            if not stored:
                logger.error(f"Error storing player chunk {chunk_count}")
                ok = False
            chunk_count += 1
        await self.store.set(PLAYER_CHUNK_COUNT_KEY, chunk_count, self.players_ttl, partition=PLAYERS_PARTITION)
        await self.store.delete(PLAYERS_KEY, partition=PLAYERS_PARTITION)
        return ok

    async def append_players(self, players: List[Dict[str, Any]]) -> bool:
        """Adds players to the chunked list without rewriting earlier chunks."""
        count = await self.store.get(PLAYER_CHUNK_COUNT_KEY, partition=PLAYERS_PARTITION) or 0
        ok = True
        for start in range(0, len(players), PLAYER_CHUNK_SIZE):
            chunk = players[start:start + PLAYER_CHUNK_SIZE]
            ok = await self.store.set(player_chunk_key(count), chunk, self.players_ttl, partition=PLAYERS_PARTITION) and ok
            count += 1
        await self.store.set(PLAYER_CHUNK_COUNT_KEY, count, self.players_ttl, partition=PLAYERS_PARTITION)
        return ok

    async def get_players(self, page: Optional[int] = None, page_size: int = PLAYER_CHUNK_SIZE) -> List[Dict[str, Any]]:
        """Returns stored players, or one page of them when ``page`` is given."""
        players = await self.store.get(PLAYERS_KEY, partition=PLAYERS_PARTITION)
        if players is None:
            players = []
            chunk_count = await self.store.get(PLAYER_CHUNK_COUNT_KEY, partition=PLAYERS_PARTITION) or 0
            for index in range(chunk_count):
                chunk = await self.store.get(player_chunk_key(index), partition=PLAYERS_PARTITION)
                if chunk:
                    players.extend(chunk)

        if page is None:
            return players
        start = page * page_size
        return players[start:start + page_size]

    async def clear_players(self) -> None:
        chunk_count = await self.store.get(PLAYER_CHUNK_COUNT_KEY, partition=PLAYERS_PARTITION) or 0
        for index in range(chunk_count):
            await self.store.delete(player_chunk_key(index), partition=PLAYERS_PARTITION)
        await self.store.delete(PLAYER_CHUNK_COUNT_KEY, partition=PLAYERS_PARTITION)
        await self.store.delete(PLAYERS_KEY, partition=PLAYERS_PARTITION)

    # --- Teams ---

    async def set_teams(self, teams: List[Dict[str, Any]]) -> bool:
        return await self.store.set(TEAMS_KEY, teams, self.teams_ttl, partition=TEAMS_PARTITION)

    async def get_teams(self) -> List[Dict[str, Any]]:
        return await self.store.get(TEAMS_KEY, partition=TEAMS_PARTITION) or []

    # --- Lineups ---

    async def save_lineup(self, lineup: Any) -> bool:
        """Saves the working lineup and appends it to the saved lineup history."""
        saved = await self.store.set(CURRENT_LINEUP_KEY, lineup, self.lineup_ttl, partition=LINEUPS_PARTITION)
        history = await self.get_lineups()
        history.append(lineup)
        await self.store.set(SAVED_LINEUPS_KEY, history, self.lineup_ttl, partition=LINEUPS_PARTITION)
        return saved

    async def get_lineup(self) -> Any:
        lineup = await self.store.get(CURRENT_LINEUP_KEY, partition=LINEUPS_PARTITION)
        return lineup if lineup is not None else []

    async def get_lineups(self) -> List[Any]:
        return await self.store.get(SAVED_LINEUPS_KEY, partition=LINEUPS_PARTITION) or []

    # --- Export / Import ---

    async def export_data(self) -> Dict[str, Any]:
        return {
            "lineups": await self.get_lineups(),
            "current_lineup": await self.get_lineup(),
            "timestamp": int(time.time() * 1000),
        }

    async def import_data(self, data: Any) -> bool:
        """Replaces saved lineups with the ones in an exported payload."""
        if not isinstance(data, dict) or not isinstance(data.get("lineups"), list):
            logger.error("Error importing data: payload has no 'lineups' list")
            return False

        await self.store.delete(SAVED_LINEUPS_KEY, partition=LINEUPS_PARTITION)
        ok = await self.store.set(SAVED_LINEUPS_KEY, data["lineups"], self.lineup_ttl, partition=LINEUPS_PARTITION)
        current = data.get("current_lineup")
        if current:
            ok = await self.store.set(CURRENT_LINEUP_KEY, current, self.lineup_ttl, partition=LINEUPS_PARTITION) and ok
        logger.info(f"Imported {len(data['lineups'])} lineups.")
        return ok
