import httpx
import pytest

from ltrfantasy.core.services.nfl_data_service import (
    NFLDataService,
    empty_betting_data,
    extract_spread,
    extract_stat,
    process_roster,
)
from ltrfantasy.domain.models.cache import CACHE_PARTITION
from ltrfantasy.domain.exceptions import DataUnavailableError, MaxRetryError
from ltrfantasy.infrastructure.config.settings import ApiSettings, BatchSettings
from ltrfantasy.infrastructure.http.batch import BatchCoordinator
from ltrfantasy.infrastructure.storage.entities import EntityRepository
from tests.payloads import (
    CORE,
    SITE,
    athlete,
    roster_payload,
    scoreboard_event,
    stats_payload,
    team,
    teams_payload,
)

TEAMS_URL = f"{SITE}/teams"
SCOREBOARD_URL = f"{SITE}/scoreboard"


def roster_url(team_id):
    return f"{SITE}/teams/{team_id}/roster?enable=roster,stats"


@pytest.fixture
def make_service(make_client, make_transport, memory_store, clock):
    """Builds an NFLDataService over a RouteTransport; returns (service, transport)."""

    def factory(routes):
        transport = make_transport(routes)
        client = make_client(transport, max_retries=1)
        batch = BatchCoordinator(client, memory_store, sleep=clock.sleep)
        entities = EntityRepository(memory_store)
        service = NFLDataService(
            client,
            memory_store,
            batch,
            entities,
            api_settings=ApiSettings(season=2024),
            batch_settings=BatchSettings(roster_batch_size=2, roster_batch_delay=0.5),
        )
        return service, transport

    return factory


# --- Pure helpers ---

def test_extract_stat_finds_value():
    stats = stats_payload(passing={"passingYards": 4183})
    assert extract_stat(stats, "passing", "passingYards") == {"value": 4183, "displayValue": "4183", "rank": 3}


def test_extract_stat_per_game():
    stats = stats_payload(passing={"passingYards": 3400})
    assert extract_stat(stats, "passing", "passingYards", per_game=True)["value"] == 200


def test_extract_stat_missing_pieces():
    assert extract_stat({}, "passing", "passingYards") == {"value": None, "displayValue": "N/A", "rank": None}
    stats = stats_payload(passing={"passingYards": 1})
    assert extract_stat(stats, "rushing", "rushingYards") is None
    assert extract_stat(stats, "passing", "interceptions") is None


def test_process_roster_keeps_active_players_in_group_order():
    roster = roster_payload(
        "Bills",
        offense=[athlete("1", "Josh Allen"), athlete("2", "Hurt Guy", active=False)],
        defense=[athlete("3", "Von Miller", "LB")],
        special=[athlete("4", "Tyler Bass", "PK")],
    )

    players = process_roster(roster, "Bills")

    assert [p["fullName"] for p in players] == ["Josh Allen", "Von Miller", "Tyler Bass"]
    assert players[0] == {
        "id": "1",
        "fullName": "Josh Allen",
        "position": "QB",
        "team": "Bills",
        "jersey": "12",
        "experience": {"years": 3},
        "college": "State",
    }


def test_process_roster_without_athletes():
    assert process_roster({"team": {}}, "Bills") == []


def test_extract_spread():
    assert extract_spread(scoreboard_event("1")) == {"favorite": "KC", "line": -3.5}
    assert extract_spread({"competitions": [{"odds": [{"details": "EVEN"}]}]}) is None
    assert extract_spread({}) is None


# --- Teams ---

@pytest.mark.asyncio
async def test_get_all_teams_fetches_and_stores(make_service, memory_store):
    service, transport = make_service({TEAMS_URL: teams_payload(team("2", "Bills"), team("12", "Chiefs"))})

    teams = await service.get_all_teams()

    assert [t["team"]["name"] for t in teams] == ["Bills", "Chiefs"]
    assert await service.entities.get_teams() == teams
    await service.get_all_teams()
    assert transport.count(TEAMS_URL) == 1


@pytest.mark.asyncio
async def test_get_all_teams_force_refresh_refetches(make_service):
    service, transport = make_service({TEAMS_URL: teams_payload(team("2", "Bills"))})

    await service.get_all_teams()
    await service.get_all_teams(force_refresh=True)

    assert transport.count(TEAMS_URL) == 2


@pytest.mark.asyncio
async def test_get_all_teams_replaces_empty_cached_payload(make_service, memory_store):
    service, transport = make_service({TEAMS_URL: teams_payload(team("2", "Bills"))})
    await memory_store.set(TEAMS_URL, {"sports": []}, 60)

    teams = await service.get_all_teams()

    assert len(teams) == 1
    assert transport.count(TEAMS_URL) == 1


@pytest.mark.asyncio
async def test_get_all_teams_raises_when_payload_has_no_teams(make_service):
    service, _ = make_service({TEAMS_URL: {"sports": [{"leagues": [{"teams": []}]}]}})
    with pytest.raises(DataUnavailableError):
        await service.get_all_teams()


@pytest.mark.asyncio
async def test_get_all_teams_propagates_fetch_failure(make_service):
    service, _ = make_service({TEAMS_URL: httpx.Response(500)})
    with pytest.raises(MaxRetryError):
        await service.get_all_teams()


@pytest.mark.asyncio
async def test_get_team_roster_returns_none_on_failure(make_service):
    service, _ = make_service({})
    assert await service.get_team_roster("99") is None


# --- Players ---

@pytest.mark.asyncio
async def test_get_all_active_players_batches_and_reports_progress(make_service, memory_store, clock):
    service, transport = make_service({
        TEAMS_URL: teams_payload(team("1", "Bills"), team("2", "Jets"), team("3", "Dolphins")),
        roster_url("1"): roster_payload("Bills", offense=[athlete("10", "Josh Allen")]),
        roster_url("2"): roster_payload("Jets", offense=[athlete("20", "Aaron Rodgers"), athlete("21", "Out", active=False)]),
        roster_url("3"): roster_payload("Dolphins", defense=[athlete("30", "Jalen Ramsey", "CB")]),
    })
    progress = []

    players = await service.get_all_active_players(progress_callback=lambda pct, count: progress.append((pct, count)))

    assert [p["fullName"] for p in players] == ["Josh Allen", "Aaron Rodgers", "Jalen Ramsey"]
    assert progress == [(67, 2), (100, 3)]
    assert 0.5 in clock.sleeps
    assert await service.entities.get_players() == players
    assert await memory_store.get("roster_2") == [players[1]]


@pytest.mark.asyncio
async def test_get_all_active_players_skips_failing_teams(make_service):
    service, _ = make_service({
        TEAMS_URL: teams_payload(team("1", "Bills"), team("2", "Jets")),
        roster_url("1"): roster_payload("Bills", offense=[athlete("10", "Josh Allen")]),
        roster_url("2"): httpx.Response(503),
    })

    players = await service.get_all_active_players()

    assert [p["id"] for p in players] == ["10"]


@pytest.mark.asyncio
async def test_get_all_active_players_replaces_previous_players(make_service):
    service, _ = make_service({
        TEAMS_URL: teams_payload(team("1", "Bills")),
        roster_url("1"): roster_payload("Bills", offense=[athlete("10", "Josh Allen")]),
    })
    await service.entities.set_players([{"id": "old"}], chunked=True)

    await service.get_all_active_players()

    assert [p["id"] for p in await service.entities.get_players()] == ["10"]


@pytest.mark.asyncio
async def test_get_all_active_players_caches_roster_url_with_roster_ttl(make_service, memory_store):
    service, _ = make_service({
        TEAMS_URL: teams_payload(team("1", "Bills")),
        roster_url("1"): roster_payload("Bills", offense=[athlete("10", "Josh Allen")]),
    })

    await service.get_all_active_players()

    roster_entry = memory_store.primary.read(CACHE_PARTITION, service.roster_url("1"))
    players_entry = memory_store.primary.read(CACHE_PARTITION, "roster_1")
    assert roster_entry["expires_at"] - roster_entry["stored_at"] == service.cache.roster_ttl
    assert players_entry["expires_at"] - players_entry["stored_at"] == service.cache.statistics_ttl


@pytest.mark.asyncio
async def test_get_all_active_players_without_teams(make_service):
    service, _ = make_service({TEAMS_URL: httpx.Response(500)})
    assert await service.get_all_active_players() == []


# --- Games ---

@pytest.mark.asyncio
async def test_get_upcoming_games_normalizes_events(make_service):
    service, _ = make_service({SCOREBOARD_URL: {"events": [scoreboard_event("401", home="Chiefs", away="Ravens")]}})

    games = await service.get_upcoming_games()

    assert len(games) == 1
    game = games[0]
    assert game["id"] == "401"
    assert game["homeTeam"]["name"] == "Chiefs"
    assert game["awayTeam"]["name"] == "Ravens"
    assert game["spread"] == {"favorite": "KC", "line": -3.5}
    assert game["overUnder"] == 47.5


@pytest.mark.asyncio
async def test_get_upcoming_games_on_malformed_scoreboard(make_service):
    service, _ = make_service({SCOREBOARD_URL: {"events": [{"id": "1"}]}})
    assert await service.get_upcoming_games() == []


@pytest.mark.asyncio
async def test_get_current_week_games_uses_synthetic_key(make_service, memory_store):
    events = [scoreboard_event("401")]
    service, transport = make_service({SCOREBOARD_URL: {"events": events}})

    assert await service.get_current_week_games() == events
    assert await memory_store.get("current_week_games") == events


@pytest.mark.asyncio
async def test_get_live_game_data(make_service):
    service, _ = make_service({SCOREBOARD_URL: {"events": []}})
    assert await service.get_live_game_data() == {"events": []}


@pytest.mark.asyncio
async def test_get_live_game_data_without_events(make_service):
    service, _ = make_service({SCOREBOARD_URL: {"leagues": []}})
    assert await service.get_live_game_data() is None


@pytest.mark.asyncio
async def test_get_game_details_summarizes_and_caches(make_service, memory_store):
    summary = {
        "header": {
            "timeValid": True,
            "competitions": [{"competitors": [{"score": "21"}, {"score": "17"}]}],
        },
        "gameInfo": {"venue": {"fullName": "Arrowhead"}, "attendance": 73000},
        "boxscore": {
            "teams": [
                {"statistics": [{"name": "totalYards", "value": 400}, {"name": "turnovers", "value": 1}]},
                {"statistics": [{"name": "netPassingYards", "value": 250}]},
            ]
        },
        "situation": {"down": 2, "distance": 7, "lastPlay": {"text": "Pass complete"}},
    }
    service, transport = make_service({f"{SITE}/summary?event=401": summary})

    details = await service.get_game_details("401")

    assert details["gameInfo"]["venue"] == "Arrowhead"
    assert details["teamStats"]["home"]["totalYards"] == 400
    assert details["teamStats"]["away"]["passingYards"] == 250
    assert details["situation"]["lastPlay"] == "Pass complete"
    assert details["score"] == {"home": "21", "away": "17"}
    assert await memory_store.get("game_details_401") == details


@pytest.mark.asyncio
async def test_get_game_details_requires_id(make_service):
    service, _ = make_service({})
    with pytest.raises(ValueError):
        await service.get_game_details("")


# --- Odds and statistics ---

@pytest.mark.asyncio
async def test_get_betting_data_from_paged_odds(make_service, memory_store):
    odds_url = f"{CORE}/events/401/competitions/401/odds"
    service, _ = make_service({
        odds_url: {
            "items": [{
                "spread": {"favorite": {"abbreviation": "KC"}, "line": -3.5, "odds": -110},
                "moneyline": {"home": -180, "away": 150},
                "overUnder": 47.5,
                "movements": [{"timestamp": "t1", "type": "spread", "from": -3, "to": -3.5}],
            }]
        }
    })

    betting = await service.get_betting_data("401")

    assert betting["spread"] == {"favorite": "KC", "line": -3.5, "odds": -110}
    assert betting["moneyline"] == {"home": -180, "away": 150}
    assert betting["overUnder"]["total"] == 47.5
    assert betting["movements"] == [{"time": "t1", "type": "spread", "from": -3, "to": -3.5}]
    assert await memory_store.get("betting_data_401") == betting


@pytest.mark.asyncio
async def test_get_betting_data_degrades_to_empty_shape(make_service):
    odds_url = f"{CORE}/events/401/competitions/401/odds"
    service, _ = make_service({odds_url: {"items": [{"provider": "nobody"}]}})
    assert await service.get_betting_data("401") == empty_betting_data()

    failing, _ = make_service({})
    assert await failing.get_betting_data("402") == empty_betting_data()


@pytest.mark.asyncio
async def test_get_player_fantasy_stats(make_service):
    url = f"{CORE}/seasons/2024/types/2/athletes/3139477/statistics"
    service, _ = make_service({url: stats_payload(passing={"passingYards": 4183, "passingTouchdowns": 27})})

    stats = await service.get_player_fantasy_stats("3139477")

    assert stats["passing"]["yards"]["value"] == 4183
    assert stats["passing"]["touchdowns"]["value"] == 27
    assert stats["passing"]["interceptions"] is None
    assert stats["rushing"]["yards"] is None


@pytest.mark.asyncio
async def test_get_team_betting_stats_returns_none_on_failure(make_service):
    service, _ = make_service({})
    assert await service.get_team_betting_stats("12") is None


@pytest.mark.asyncio
async def test_get_team_betting_stats(make_service):
    url = f"{CORE}/seasons/2024/types/2/teams/12/statistics"
    service, _ = make_service({url: stats_payload(scoring={"totalPointsPerGame": 27.1}, defensive={"sacks": 40})})

    stats = await service.get_team_betting_stats("12")

    assert stats["offense"]["pointsPerGame"]["value"] == 27.1
    assert stats["defense"]["sacks"]["value"] == 40
    assert stats["trends"]["homeRecord"] is None
