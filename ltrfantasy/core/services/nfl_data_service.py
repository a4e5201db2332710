"""Application service exposing NFL data to the command layer.

Wraps the cached fetch client with endpoint knowledge: URL building,
synthetic cache keys, payload normalization and per-method error policy.
Apart from ``get_all_teams`` and ``get_game_details`` every method degrades
to ``None`` or an empty default instead of raising.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ltrfantasy.domain.exceptions import DataUnavailableError, LtrFantasyError
from ltrfantasy.domain.interfaces.store import KeyValueStore
from ltrfantasy.domain.models.common import (
    ActivePlayer,
    CacheKey,
    EntityType,
    GameId,
    PlayerId,
    StatValue,
    TeamId,
    Url,
)
from ltrfantasy.infrastructure.config.settings import ApiSettings, BatchSettings, CacheSettings
from ltrfantasy.infrastructure.http.batch import BatchCoordinator
from ltrfantasy.infrastructure.http.fetch_client import CachedFetchClient
from ltrfantasy.infrastructure.http.validation import validate_api_response
from ltrfantasy.infrastructure.storage.entities import EntityRepository

logger = logging.getLogger(__name__)

POSITION_GROUPS = ("offense", "defense", "specialTeam")

ProgressCallback = Callable[[int, int], Any]


def empty_betting_data() -> Dict[str, Any]:
    return {"spread": None, "moneyline": None, "overUnder": None, "movements": []}


def extract_stat(stats: Any, category: str, stat_name: str, per_game: bool = False) -> Optional[StatValue]:
    """Pulls one statistic out of a season statistics payload.

    Args:
        stats: Statistics payload with ``splits.categories``.
        category: Category name, e.g. 'passing'.
        stat_name: Stat name inside the category, e.g. 'passingYards'.
        per_game: Divide the value by ``gamesPlayed``.

    Returns:
        ``{value, displayValue, rank}``; an N/A placeholder when the payload
        has no categories; None when the category or stat is missing.
    """
    splits = stats.get("splits") if isinstance(stats, dict) else None
    categories = splits.get("categories") if isinstance(splits, dict) else None
    if not categories:
        return StatValue(value=None, displayValue="N/A", rank=None)

    category_stats = next((c for c in categories if c.get("name") == category), None)
    if not category_stats or not category_stats.get("stats"):
        return None

    stat = next((s for s in category_stats["stats"] if s.get("name") == stat_name), None)
    if stat is None:
        return None

    value = stat.get("value")
    if per_game and value is not None:
        games_played = stats.get("gamesPlayed")
        try:
            value = value / games_played
        except (TypeError, ZeroDivisionError):
            logger.warning(f"Cannot compute per-game {category}.{stat_name} (gamesPlayed={games_played!r})")
            value = None

    display_value = stat.get("displayValue") or str(stat.get("value"))
    return StatValue(value=value, displayValue=display_value, rank=stat.get("rank") or None)


def normalize_player(player: Dict[str, Any], team_name: str) -> ActivePlayer:
    return ActivePlayer(
        id=player.get("id"),
        fullName=player.get("fullName"),
        position=(player.get("position") or {}).get("abbreviation"),
        team=team_name,
        jersey=player.get("jersey"),
        experience=player.get("experience"),
        college=(player.get("college") or {}).get("name"),
    )


def process_roster(roster: Dict[str, Any], team_name: str) -> List[ActivePlayer]:
    """Active players of a roster payload, grouped offense, defense, special teams."""
    players: List[ActivePlayer] = []
    groups = roster.get("athletes") or []
    for group_name in POSITION_GROUPS:
        group = next((g for g in groups if isinstance(g, dict) and g.get("position") == group_name), None)
        if not group:
            continue
        for player in group.get("items") or []:
            if (player.get("status") or {}).get("type") == "active":
                players.append(normalize_player(player, team_name))
    return players


def _competitor(event: Dict[str, Any], index: int) -> Dict[str, Any]:
    competitor = event["competitions"][0]["competitors"][index]
    team = competitor.get("team") or {}
    return {
        "id": competitor.get("id"),
        "name": team.get("name"),
        "score": competitor.get("score"),
        "logo": team.get("logo"),
    }


def extract_spread(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        favorite, line = event["competitions"][0]["odds"][0]["details"].split(" ")[:2]
        return {"favorite": favorite, "line": float(line)}
    except (KeyError, IndexError, TypeError, ValueError, AttributeError):
        return None


def extract_over_under(event: Dict[str, Any]) -> Optional[float]:
    try:
        return float(event["competitions"][0]["odds"][0]["overUnder"])
    except (KeyError, IndexError, TypeError, ValueError):
        return None


def extract_team_game_stats(team: Dict[str, Any]) -> Dict[str, Any]:
    statistics = {s.get("name"): s.get("value") for s in team.get("statistics") or []}
    return {
        "totalYards": statistics.get("totalYards"),
        "passingYards": statistics.get("netPassingYards"),
        "rushingYards": statistics.get("rushingYards"),
        "turnovers": statistics.get("turnovers"),
        "timeOfPossession": statistics.get("possessionTime"),
    }


class NFLDataService:
    """Cache-backed access to teams, rosters, games, odds and statistics."""

    def __init__(
        self,
        fetch_client: CachedFetchClient,
        store: KeyValueStore,
        batch: BatchCoordinator,
        entities: EntityRepository,
        api_settings: Optional[ApiSettings] = None,
        cache_settings: Optional[CacheSettings] = None,
        batch_settings: Optional[BatchSettings] = None,
    ):
        self.fetch_client = fetch_client
        self.store = store
        self.batch = batch
        self.entities = entities
        self.api = api_settings or ApiSettings()
        self.cache = cache_settings or CacheSettings()
        self.batch_settings = batch_settings or BatchSettings()

    # --- URL helpers ---

    def site_url(self, path: str) -> Url:
        return Url(f"{self.api.site_url}/{path.lstrip('/')}")

    def core_url(self, path: str) -> Url:
        return Url(f"{self.api.core_url}/{path.lstrip('/')}")

    def roster_url(self, team_id: TeamId) -> Url:
        return self.site_url(f"teams/{team_id}/roster?enable=roster,stats")

    async def _cached(self, key: str) -> Any:
        try:
            return await self.store.get(CacheKey(key))
        except Exception as e:
            logger.warning(f"Cache read error for {key}: {e}")
            return None

    async def _remember(self, key: str, value: Any, ttl: int) -> None:
        if not await self.store.set(CacheKey(key), value, ttl):
            logger.warning(f"Could not cache {key}")

    # --- Teams and players ---

    async def get_all_teams(self, force_refresh: bool = False) -> List[Dict[str, Any]]:
        """Returns the league's teams.

        Raises:
            DataUnavailableError: The payload contains no teams.
            MaxRetryError: The teams endpoint could not be fetched.
        """
        url = self.site_url("teams")
        if force_refresh:
            await self.store.delete(CacheKey(url))
        else:
            cached = await self._cached(url)
            teams = self._teams_of(cached)
            if teams:
                logger.debug("Using cached teams data")
                return teams
            if cached is not None:
                logger.info("Cached teams was empty or invalid")
                await self.store.delete(CacheKey(url))

        data = await self.fetch_client.fetch(url, ttl=self.cache.roster_ttl)
        teams = self._teams_of(data)
        if not teams:
            raise DataUnavailableError("No teams data received")

        logger.info(f"Retrieved {len(teams)} teams")
        await self.entities.set_teams(teams)
        return teams

    @staticmethod
    def _teams_of(data: Any) -> List[Dict[str, Any]]:
        try:
            return data["sports"][0]["leagues"][0]["teams"] or []
        except (KeyError, IndexError, TypeError):
            return []

    async def get_team_roster(self, team_id: TeamId) -> Optional[Dict[str, Any]]:
        try:
            return await self.fetch_client.fetch(self.roster_url(team_id), ttl=self.cache.roster_ttl)
        except LtrFantasyError as e:
            logger.error(f"Error fetching roster for team {team_id}: {e}")
            return None

    async def get_all_active_players(self, progress_callback: Optional[ProgressCallback] = None) -> List[ActivePlayer]:
        """Collects every active player of every team, in roster batches.

        Each finished batch is appended to the players partition and reported
        through ``progress_callback(percent, players_so_far)``.
        """
        try:
            teams = await self.get_all_teams()
        except LtrFantasyError as e:
            logger.error(f"Error in get_all_active_players: {e}")
            return []

        await self.entities.clear_players()
        all_players: List[ActivePlayer] = []
        total = len(teams)

        async def load_team(team_entry: Dict[str, Any]) -> List[ActivePlayer]:
            team = team_entry.get("team") or {}
            cache_key = f"roster_{team.get('id')}"
            players = await self._cached(cache_key)
            if players is None:
                roster = await self.fetch_client.fetch(self.roster_url(TeamId(str(team.get("id")))), ttl=self.cache.roster_ttl)
                players = process_roster(roster, team.get("name")) if isinstance(roster, dict) else []
                await self._remember(cache_key, players, self.cache.statistics_ttl)
            return players

        async def on_batch_done(processed: int, outcomes: List[Any]) -> None:
            batch_players: List[ActivePlayer] = []
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    logger.warning(f"Error processing team roster: {outcome}")
                    continue
                batch_players.extend(outcome)
            all_players.extend(batch_players)
            await self.entities.append_players(batch_players)
            if progress_callback is not None:
                progress_callback(min(100, round(processed / total * 100)), len(all_players))

        await self.batch.run_in_batches(
            teams,
            load_team,
            batch_size=self.batch_settings.roster_batch_size,
            batch_delay=self.batch_settings.roster_batch_delay,
            on_batch_done=on_batch_done,
        )
        logger.info(f"Collected {len(all_players)} active players from {total} teams")
        return all_players

    # --- Games ---

    async def get_current_week_games(self) -> List[Dict[str, Any]]:
        cached = await self._cached("current_week_games")
        if cached is not None:
            return cached
        try:
            scoreboard = await self.fetch_client.fetch(self.site_url("scoreboard"), ttl=self.cache.live_ttl)
        except LtrFantasyError as e:
            logger.error(f"Error fetching current week games: {e}")
            return []
        games = (scoreboard or {}).get("events") or []
        await self._remember("current_week_games", games, self.cache.live_ttl)
        return games

    async def get_live_game_data(self) -> Optional[Dict[str, Any]]:
        try:
            scoreboard = await self.fetch_client.fetch(self.site_url("scoreboard"), ttl=self.cache.live_ttl)
        except LtrFantasyError as e:
            logger.error(f"Error fetching live game data: {e}")
            return None
        if not isinstance(scoreboard, dict) or "events" not in scoreboard:
            logger.warning("Invalid scoreboard data received")
            return None
        return scoreboard

    async def get_upcoming_games(self) -> List[Dict[str, Any]]:
        try:
            scoreboard = await self.fetch_client.fetch(self.site_url("scoreboard"), ttl=self.cache.live_ttl)
            games = []
            for event in scoreboard["events"]:
                game = {
                    "id": event["id"],
                    "homeTeam": _competitor(event, 0),
                    "awayTeam": _competitor(event, 1),
                    "startTime": event.get("date"),
                    "spread": extract_spread(event),
                    "overUnder": extract_over_under(event),
                    "status": ((event.get("status") or {}).get("type") or {}).get("detail"),
                }
                if validate_api_response(game, EntityType.GAME):
                    games.append(game)
            return games
        except (LtrFantasyError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Error fetching upcoming games: {e}")
            return []

    async def get_game_details(self, game_id: GameId) -> Dict[str, Any]:
        """Summarizes one game.

        Raises:
            ValueError: ``game_id`` is empty.
            DataUnavailableError: The summary endpoint returned nothing.
            MaxRetryError: The summary endpoint could not be fetched.
        """
        if not game_id:
            raise ValueError("Invalid game ID provided")

        cache_key = f"game_details_{game_id}"
        cached = await self._cached(cache_key)
        if cached is not None:
            return cached

        game = await self.fetch_client.fetch(self.site_url(f"summary?event={game_id}"), ttl=self.cache.live_ttl)
        if not game:
            raise DataUnavailableError(f"No game data found for {game_id}")

        header = game.get("header") or {}
        info = game.get("gameInfo") or {}
        box_teams = (game.get("boxscore") or {}).get("teams") or []
        competitors = ((header.get("competitions") or [{}])[0]).get("competitors") or []
        situation = game.get("situation")

        details = {
            "gameInfo": {
                "startTime": header.get("timeValid"),
                "venue": (info.get("venue") or {}).get("fullName"),
                "attendance": info.get("attendance") or 0,
                "weather": info.get("weather"),
            },
            "teamStats": {
                "home": extract_team_game_stats(box_teams[0]) if len(box_teams) > 0 else None,
                "away": extract_team_game_stats(box_teams[1]) if len(box_teams) > 1 else None,
            },
            "situation": {
                "possession": situation.get("possession"),
                "down": situation.get("down"),
                "distance": situation.get("distance"),
                "yardLine": situation.get("yardLine"),
                "lastPlay": (situation.get("lastPlay") or {}).get("text"),
            } if situation else None,
            "score": {
                "home": (competitors[0].get("score") if len(competitors) > 0 else None) or "0",
                "away": (competitors[1].get("score") if len(competitors) > 1 else None) or "0",
            },
        }
        await self._remember(cache_key, details, self.cache.live_ttl)
        return details

    # --- Odds and statistics ---

    async def get_betting_data(self, game_id: GameId) -> Dict[str, Any]:
        if not game_id:
            raise ValueError("Game ID is required")

        cache_key = f"betting_data_{game_id}"
        cached = await self._cached(cache_key)
        if cached is not None:
            return cached

        try:
            odds = await self.fetch_client.fetch(
                self.core_url(f"events/{game_id}/competitions/{game_id}/odds"), ttl=self.cache.live_ttl
            )
        except LtrFantasyError as e:
            logger.error(f"Error fetching betting data: {e}")
            return empty_betting_data()

        # The odds endpoint answers either a list or a paged {"items": [...]}
        items = odds.get("items") if isinstance(odds, dict) else odds
        if not items:
            return empty_betting_data()

        current = items[0]
        if not validate_api_response(current, EntityType.ODDS):
            logger.warning("Invalid odds data structure received")
            return empty_betting_data()

        spread = current.get("spread")
        favorite = spread.get("favorite") if isinstance(spread, dict) else None
        moneyline = current.get("moneyline") or {}
        betting = {
            "spread": {
                "favorite": favorite.get("abbreviation") if isinstance(favorite, dict) else favorite,
                "line": spread.get("line"),
                "odds": spread.get("odds"),
            } if isinstance(spread, dict) else None,
            "moneyline": {
                "home": moneyline.get("home") if isinstance(moneyline, dict) else None,
                "away": moneyline.get("away") if isinstance(moneyline, dict) else None,
            },
            "overUnder": {
                "total": current.get("overUnder"),
                "overOdds": current.get("overOdds"),
                "underOdds": current.get("underOdds"),
            },
            "movements": [
                {"time": m.get("timestamp"), "type": m.get("type"), "from": m.get("from"), "to": m.get("to")}
                for m in current.get("movements") or []
            ],
        }
        await self._remember(cache_key, betting, self.cache.live_ttl)
        return betting

    async def get_player_fantasy_stats(self, player_id: PlayerId) -> Optional[Dict[str, Any]]:
        cache_key = f"player_fantasy_stats_{player_id}"
        cached = await self._cached(cache_key)
        if cached is not None:
            return cached

        try:
            stats = await self.fetch_client.fetch(
                self.core_url(f"seasons/{self.api.season}/types/2/athletes/{player_id}/statistics"),
                ttl=self.cache.statistics_ttl,
            )
        except LtrFantasyError as e:
            logger.error(f"Failed to load fantasy stats for player {player_id}: {e}")
            return None

        fantasy_stats = {
            "passing": {
                "yards": extract_stat(stats, "passing", "passingYards"),
                "touchdowns": extract_stat(stats, "passing", "passingTouchdowns"),
                "interceptions": extract_stat(stats, "passing", "interceptions"),
            },
            "rushing": {
                "yards": extract_stat(stats, "rushing", "rushingYards"),
                "touchdowns": extract_stat(stats, "rushing", "rushingTouchdowns"),
            },
            "receiving": {
                "yards": extract_stat(stats, "receiving", "receivingYards"),
                "touchdowns": extract_stat(stats, "receiving", "receivingTouchdowns"),
                "receptions": extract_stat(stats, "receiving", "receptions"),
            },
        }
        await self._remember(cache_key, fantasy_stats, self.cache.statistics_ttl)
        return fantasy_stats

    async def get_team_betting_stats(self, team_id: TeamId) -> Optional[Dict[str, Any]]:
        cache_key = f"team_betting_stats_{team_id}"
        cached = await self._cached(cache_key)
        if cached is not None:
            return cached

        try:
            stats = await self.fetch_client.fetch(
                self.core_url(f"seasons/{self.api.season}/types/2/teams/{team_id}/statistics"),
                ttl=self.cache.statistics_ttl,
            )
        except LtrFantasyError as e:
            logger.error(f"Failed to load betting stats for team {team_id}: {e}")
            return None

        betting_stats = {
            "offense": {
                "pointsPerGame": extract_stat(stats, "scoring", "totalPointsPerGame"),
                "totalYards": extract_stat(stats, "general", "totalYards"),
                "passingYards": extract_stat(stats, "passing", "netPassingYards"),
                "rushingYards": extract_stat(stats, "rushing", "rushingYards"),
            },
            "defense": {
                "pointsAllowed": extract_stat(stats, "defensive", "pointsAllowed"),
                "sacks": extract_stat(stats, "defensive", "sacks"),
                "interceptions": extract_stat(stats, "defensiveInterceptions", "interceptions"),
            },
            "trends": {
                "homeRecord": extract_stat(stats, "miscellaneous", "homeRecord"),
                "awayRecord": extract_stat(stats, "miscellaneous", "awayRecord"),
                "lastFiveGames": extract_stat(stats, "miscellaneous", "lastFiveGames"),
            },
        }
        await self._remember(cache_key, betting_stats, self.cache.statistics_ttl)
        return betting_stats
