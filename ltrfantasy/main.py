"""Main entry point for the ltrfantasy application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.

Every command invocation builds its own dependency graph and event loop: the
store, the throttler and the HTTP client are created once per process run and
shared by every component that needs them.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import typer
from typing_extensions import Annotated

from ltrfantasy import __version__
from ltrfantasy.core.command_handler import CommandHandler
from ltrfantasy.core.services.live_tracker import LiveGameTracker
from ltrfantasy.core.services.nfl_data_service import NFLDataService
from ltrfantasy.domain.exceptions import LtrFantasyError
from ltrfantasy.infrastructure.cli.display import ConsoleDisplay
from ltrfantasy.infrastructure.config.settings import ApiSettings, Settings, load_settings
from ltrfantasy.infrastructure.http.batch import BatchCoordinator
from ltrfantasy.infrastructure.http.fetch_client import CachedFetchClient
from ltrfantasy.infrastructure.http.ttl_policy import TtlPolicy
from ltrfantasy.infrastructure.messaging.hub import NotificationHub
from ltrfantasy.infrastructure.monitoring.logger_setup import setup_logging
from ltrfantasy.infrastructure.resilience.throttler import Throttler
from ltrfantasy.infrastructure.storage.entities import EntityRepository
from ltrfantasy.infrastructure.storage.store import PersistentStore

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def build_http_client(api: ApiSettings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=api.timeout_seconds,
        headers={"User-Agent": api.user_agent, "Accept": "application/json"},
        follow_redirects=True,
    )


def create_dependencies(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    # 1. Load Configuration First
    settings = settings or load_settings()
    setup_logging(
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        log_file=settings.logging.file,
    )
    logger.info("Initializing application dependencies...")

    # 2. Shared infrastructure (one instance each)
    dependencies: Dict[str, Any] = {"settings": settings}
    dependencies['ui'] = ConsoleDisplay()
    dependencies['hub'] = NotificationHub()
    dependencies['store'] = PersistentStore(directory=settings.cache.directory)
    dependencies['throttler'] = Throttler(settings.throttle)
    dependencies['http_client'] = build_http_client(settings.api)
    dependencies['entities'] = EntityRepository(
        dependencies['store'],
        players_ttl=settings.cache.statistics_ttl,
        teams_ttl=settings.cache.roster_ttl,
        lineup_ttl=settings.cache.lineup_ttl,
    )

    # 3. Data access
    dependencies['fetch_client'] = CachedFetchClient(
        store=dependencies['store'],
        throttler=dependencies['throttler'],
        http_client=dependencies['http_client'],
        ttl_policy=TtlPolicy(settings.cache),
        max_retries=settings.fetch.max_retries,
        retry_base_delay=settings.fetch.retry_base_delay,
        hub=dependencies['hub'],
        single_flight=settings.fetch.single_flight,
    )
    dependencies['batch'] = BatchCoordinator(
        dependencies['fetch_client'],
        dependencies['store'],
        batch_size=settings.batch.batch_size,
        batch_delay=settings.batch.batch_delay,
    )

    # 4. Core services
    dependencies['data_service'] = NFLDataService(
        fetch_client=dependencies['fetch_client'],
        store=dependencies['store'],
        batch=dependencies['batch'],
        entities=dependencies['entities'],
        api_settings=settings.api,
        cache_settings=settings.cache,
        batch_settings=settings.batch,
    )
    dependencies['tracker'] = LiveGameTracker(
        dependencies['data_service'],
        dependencies['hub'],
        update_interval=settings.live.update_interval,
    )

    # 5. Command Handler
    dependencies['command_handler'] = CommandHandler(
        data_service=dependencies['data_service'],
        tracker=dependencies['tracker'],
        hub=dependencies['hub'],
        store=dependencies['store'],
        entities=dependencies['entities'],
        ui=dependencies['ui'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


# --- Helper for Running Async Commands ---

def run_command(action: Callable[[CommandHandler], Awaitable[bool]]) -> None:
    """Runs one async handler call on a fresh event loop and sets the exit code."""
    dependencies = create_dependencies()
    handler: CommandHandler = dependencies['command_handler']
    ui: ConsoleDisplay = dependencies['ui']

    async def runner() -> bool:
        try:
            await dependencies['store'].init()
            return await action(handler)
        finally:
            await dependencies['http_client'].aclose()
            dependencies['store'].close()

    try:
        succeeded = asyncio.run(runner())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        succeeded = True
    except LtrFantasyError as e:
        logger.error(f"Command failed: {e}")
        ui.display_error(str(e))
        succeeded = False
    except Exception as e:
        logger.error(f"Error executing async command: {e}", exc_info=True)
        ui.display_error(f"Command execution failed: {e}")
        succeeded = False

    if not succeeded:
        raise typer.Exit(code=1)


# --- Typer App Definition ---
app = typer.Typer(
    name="ltrfantasy",
    help=f"ltrfantasy v{__version__}: cached, rate-limited NFL data for fantasy lineups.",
    add_completion=False,
    no_args_is_help=True,
)

GameIdArgument = Annotated[str, typer.Argument(help="ESPN event id of the game.")]


# --- CLI Commands ---

@app.command()
def teams(
    refresh: Annotated[bool, typer.Option("--refresh", "-r", help="Ignore cached teams and refetch.")] = False,
):
    """List every NFL team."""
    run_command(lambda handler: handler.handle_teams(refresh))


@app.command()
def roster(
    team_id: Annotated[str, typer.Argument(help="ESPN team id, e.g. 12.")],
):
    """Show the active roster of a team."""
    run_command(lambda handler: handler.handle_roster(team_id))


@app.command()
def players(
    limit: Annotated[Optional[int], typer.Option("--limit", "-n", min=1, help="Show at most N players.")] = None,
):
    """List active players of every team (loaded in batches and stored)."""
    run_command(lambda handler: handler.handle_players(limit))


@app.command()
def games():
    """Show this week's games with spreads and totals."""
    run_command(lambda handler: handler.handle_games())


@app.command()
def game(game_id: GameIdArgument):
    """Show details of one game."""
    run_command(lambda handler: handler.handle_game(game_id))


@app.command()
def odds(game_id: GameIdArgument):
    """Show betting lines of one game."""
    run_command(lambda handler: handler.handle_odds(game_id))


@app.command()
def track(
    game_id: GameIdArgument,
    interval: Annotated[Optional[float], typer.Option("--interval", "-i", help="Seconds between refreshes.")] = None,
    updates: Annotated[Optional[int], typer.Option("--updates", "-u", min=1, help="Stop after N updates.")] = None,
):
    """Follow a live game, printing each refresh."""
    run_command(lambda handler: handler.handle_track(game_id, interval=interval, updates=updates))


@app.command(name="clear-cache")
def clear_cache_command(
    expired_only: Annotated[bool, typer.Option("--expired-only", help="Only remove expired entries.")] = False,
):
    """Clears the cache and stored entities."""
    run_command(lambda handler: handler.handle_clear_cache(expired_only))


@app.command(name="export")
def export_command(
    path: Annotated[Path, typer.Argument(dir_okay=False, help="Destination JSON file.")],
):
    """Export saved lineups to a JSON file."""
    run_command(lambda handler: handler.handle_export(str(path)))


@app.command(name="import")
def import_command(
    path: Annotated[Path, typer.Argument(dir_okay=False, help="JSON file created by 'export'.")],
):
    """Replace saved lineups with the ones in an exported JSON file."""
    run_command(lambda handler: handler.handle_import(str(path)))


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
