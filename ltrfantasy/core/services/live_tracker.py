"""Periodic refresh of live games.

Each tracked game gets its own asyncio task that refreshes the game and
publishes a ``GameUpdate`` on the notification hub. Stopping a game cancels
its task.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ltrfantasy.core.services.nfl_data_service import NFLDataService
from ltrfantasy.domain.events.live_events import EventType, GameUpdate, TrackingError
from ltrfantasy.domain.models.common import GameId
from ltrfantasy.infrastructure.messaging.hub import NotificationHub

logger = logging.getLogger(__name__)


class LiveGameTracker:
    """Runs one refresh loop per tracked game."""

    def __init__(
        self,
        data_service: NFLDataService,
        hub: NotificationHub,
        update_interval: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if update_interval <= 0:
            raise ValueError(f"update_interval must be positive, got {update_interval}")
        self.data_service = data_service
        self.hub = hub
        self.update_interval = update_interval
        self._sleep = sleep
        self._tasks: Dict[str, asyncio.Task] = {}
        self.latest: Dict[str, Any] = {}

    def is_tracking(self, game_id: GameId) -> bool:
        task = self._tasks.get(game_id)
        return task is not None and not task.done()

    def start(self, game_id: GameId) -> bool:
        """Starts tracking a game. Returns False if it is already tracked."""
        if self.is_tracking(game_id):
            logger.debug(f"Game {game_id} is already being tracked")
            return False
        self._tasks[game_id] = asyncio.ensure_future(self._run(game_id))
        logger.info(f"Started live tracking for game {game_id} every {self.update_interval}s")
        return True

    async def stop(self, game_id: GameId) -> bool:
        """Cancels the refresh loop of a game. Returns False if it was not tracked."""
        task = self._tasks.pop(game_id, None)
        if task is None:
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.latest.pop(game_id, None)
        logger.info(f"Stopped live tracking for game {game_id}")
        return True

    async def stop_all(self) -> None:
        for game_id in list(self._tasks):
            await self.stop(GameId(game_id))

    async def _run(self, game_id: GameId) -> None:
        while True:
            await self._tick(game_id)
            await self._sleep(self.update_interval)

    async def _tick(self, game_id: GameId) -> Optional[Any]:
        try:
            data = await self.data_service.get_game_details(game_id)
        except Exception as e:
            logger.error(f"Error tracking game {game_id}: {e}")
            self.hub.notify(EventType.TRACKING_ERROR, TrackingError(game_id=game_id, error_message=str(e)))
            return None

        self.latest[game_id] = data
        self.hub.notify(EventType.GAME_UPDATE, GameUpdate(game_id=game_id, data=data))
        return data
