"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the work
to the NFL data service, the live tracker, the store and the entity
repository. Every handler reports problems through the UserInterface and
returns False so the entry point can set the exit code.
"""

import asyncio
import logging
from typing import Optional

from ltrfantasy.core.services.live_tracker import LiveGameTracker
from ltrfantasy.core.services.nfl_data_service import NFLDataService, process_roster
from ltrfantasy.domain.events.live_events import EventType, GameUpdate, TrackingError
from ltrfantasy.domain.exceptions import LtrFantasyError
from ltrfantasy.domain.interfaces.store import KeyValueStore
from ltrfantasy.domain.interfaces.user_interface import UserInterface
from ltrfantasy.domain.models.common import GameId, TeamId
from ltrfantasy.infrastructure.filesystem.snapshot_io import read_json, write_json
from ltrfantasy.infrastructure.messaging.hub import NotificationHub
from ltrfantasy.infrastructure.storage.entities import EntityRepository

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        data_service: NFLDataService,
        tracker: LiveGameTracker,
        hub: NotificationHub,
        store: KeyValueStore,
        entities: EntityRepository,
        ui: UserInterface,
    ):
        """Initializes the CommandHandler with required services."""
        self.data_service = data_service
        self.tracker = tracker
        self.hub = hub
        self.store = store
        self.entities = entities
        self.ui = ui

    async def handle_teams(self, refresh: bool = False) -> bool:
        logger.info(f"Handling 'teams' command (refresh={refresh})")
        try:
            teams = await self.data_service.get_all_teams(force_refresh=refresh)
        except LtrFantasyError as e:
            logger.error(f"Teams command failed: {e}")
            self.ui.display_error(f"Failed to load teams: {e}")
            return False
        self.ui.display_teams(teams)
        return True

    async def handle_roster(self, team_id: str) -> bool:
        logger.info(f"Handling 'roster' command for team: {team_id}")
        roster = await self.data_service.get_team_roster(TeamId(team_id))
        if not isinstance(roster, dict):
            self.ui.display_error(f"No roster available for team {team_id}.")
            return False

        team = roster.get("team") or {}
        team_name = team.get("displayName") or team.get("name") or team_id
        players = process_roster(roster, team_name)
        if not players:
            self.ui.display_warning(f"No active players found for {team_name}.")
            return True
        self.ui.display_players(players, title=f"{team_name} Active Roster")
        return True

    async def handle_players(self, limit: Optional[int] = None) -> bool:
        logger.info(f"Handling 'players' command (limit={limit})")
        players = await self.entities.get_players()
        if not players:
            self.ui.display_info("Loading active players for every team. This can take a while...")

            def report(percent: int, count: int) -> None:
                logger.info(f"Loaded {percent}% of teams ({count} players)")

            players = await self.data_service.get_all_active_players(progress_callback=report)
        if not players:
            self.ui.display_error("No player data available.")
            return False

        shown = players[:limit] if limit else players
        self.ui.display_players(shown, title=f"Active Players ({len(shown)} of {len(players)})")
        return True

    async def handle_games(self) -> bool:
        logger.info("Handling 'games' command")
        games = await self.data_service.get_upcoming_games()
        self.ui.display_games(games)
        return True

    async def handle_game(self, game_id: str) -> bool:
        logger.info(f"Handling 'game' command for game: {game_id}")
        try:
            details = await self.data_service.get_game_details(GameId(game_id))
        except (LtrFantasyError, ValueError) as e:
            logger.error(f"Game command failed: {e}")
            self.ui.display_error(f"Failed to load game {game_id}: {e}")
            return False
        self.ui.display_details(f"Game {game_id}", details)
        return True

    async def handle_odds(self, game_id: str) -> bool:
        logger.info(f"Handling 'odds' command for game: {game_id}")
        try:
            betting = await self.data_service.get_betting_data(GameId(game_id))
        except ValueError as e:
            self.ui.display_error(str(e))
            return False
        if betting.get("spread") is None and betting.get("moneyline") is None:
            self.ui.display_warning(f"No betting data available for game {game_id}.")
        self.ui.display_details(f"Odds for game {game_id}", betting)
        return True

    async def handle_track(self, game_id: str, interval: Optional[float] = None, updates: Optional[int] = None) -> bool:
        """Streams live updates of a game until ``updates`` have been shown."""
        logger.info(f"Handling 'track' command for game: {game_id}")
        if interval is not None:
            if interval <= 0:
                self.ui.display_error("Interval must be positive.")
                return False
            self.tracker.update_interval = interval

        done = asyncio.Event()
        received = 0

        def on_update(event: GameUpdate) -> None:
            nonlocal received
            if event.game_id != game_id:
                return
            received += 1
            self.ui.display_details(f"Game {game_id} update #{received}", event.data)
            if updates is not None and received >= updates:
                done.set()

        def on_error(event: TrackingError) -> None:
            if event.game_id == game_id:
                self.ui.display_warning(f"Update failed: {event.error_message}")

        unsubscribe_update = self.hub.subscribe(EventType.GAME_UPDATE, on_update)
        unsubscribe_error = self.hub.subscribe(EventType.TRACKING_ERROR, on_error)
        try:
            self.tracker.start(GameId(game_id))
            await done.wait()
        finally:
            await self.tracker.stop(GameId(game_id))
            unsubscribe_update()
            unsubscribe_error()
        return True

    async def handle_clear_cache(self, expired_only: bool = False) -> bool:
        """Handles the 'clear-cache' command."""
        logger.info(f"Handling 'clear-cache' command (expired_only={expired_only})")
        if expired_only:
            removed = await self.store.clear_expired()
            self.ui.display_info(f"Removed {removed} expired entries.")
            return True
        if await self.store.clear_all():
            self.ui.display_info("All cached and stored data cleared successfully.")
            return True
        self.ui.display_error("Failed to clear some stored data. See the log for details.")
        return False

    async def handle_export(self, path: str) -> bool:
        logger.info(f"Handling 'export' command to: {path}")
        data = await self.entities.export_data()
        try:
            written = await write_json(path, data)
        except LtrFantasyError as e:
            self.ui.display_error(f"Export failed: {e}")
            return False
        self.ui.display_info(f"Exported {len(data['lineups'])} lineups to {written}")
        return True

    async def handle_import(self, path: str) -> bool:
        logger.info(f"Handling 'import' command from: {path}")
        try:
            data = await read_json(path)
        except LtrFantasyError as e:
            self.ui.display_error(f"Import failed: {e}")
            return False
        if not await self.entities.import_data(data):
            self.ui.display_error(f"Import failed: {path} is not a valid export.")
            return False
        self.ui.display_info(f"Imported {len(data['lineups'])} lineups from {path}")
        return True
