import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from ltrfantasy.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)


def _format_line(spread: Any) -> str:
    if isinstance(spread, dict) and spread.get("favorite"):
        return f"{spread['favorite']} {spread.get('line', '')}".strip()
    return "-"


def _format_start(start_time: Any) -> str:
    if not start_time:
        return "-"
    try:
        return datetime.fromisoformat(str(start_time).replace("Z", "+00:00")).strftime("%a %b %d %H:%M")
    except ValueError:
        return str(start_time)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_teams(self, teams: List[Dict[str, Any]]) -> None:
        table = Table(title="NFL Teams", box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("ID", style="cyan", justify="right")
        table.add_column("Abbr", style="bold")
        table.add_column("Team", style="white")
        table.add_column("Location", style="dim")

        for entry in teams:
            # The teams endpoint wraps each team in {"team": {...}}
            team = entry.get("team", entry) if isinstance(entry, dict) else {}
            table.add_row(
                str(team.get("id", "?")),
                str(team.get("abbreviation", "")),
                str(team.get("displayName") or team.get("name", "")),
                str(team.get("location", "")),
            )
        self.console.print(table)
        logger.debug(f"Displayed {len(teams)} teams")

    def display_players(self, players: List[Dict[str, Any]], title: str = "Players") -> None:
        table = Table(title=title, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Name", style="bold")
        table.add_column("Pos")
        table.add_column("Team")
        table.add_column("Jersey", justify="right")
        table.add_column("Exp", justify="right")
        table.add_column("College", style="dim")

        for i, player in enumerate(players, 1):
            experience = player.get("experience")
            if isinstance(experience, dict):
                experience = experience.get("years")
            table.add_row(
                str(i),
                str(player.get("fullName", "")),
                str(player.get("position") or "-"),
                str(player.get("team") or "-"),
                str(player.get("jersey") or "-"),
                str(experience if experience is not None else "-"),
                str(player.get("college") or "-"),
            )
        self.console.print(table)

    def display_games(self, games: List[Dict[str, Any]]) -> None:
        if not games:
            self.display_info("No games scheduled.")
            return

        table = Table(title="Games", box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("ID", style="cyan")
        table.add_column("Away", style="bold")
        table.add_column("Home", style="bold")
        table.add_column("Score", justify="center")
        table.add_column("Start")
        table.add_column("Spread")
        table.add_column("O/U", justify="right")
        table.add_column("Status", style="dim")

        for game in games:
            home = game.get("homeTeam") or {}
            away = game.get("awayTeam") or {}
            over_under = game.get("overUnder")
            table.add_row(
                str(game.get("id", "?")),
                str(away.get("name", "")),
                str(home.get("name", "")),
                f"{away.get('score') or 0} - {home.get('score') or 0}",
                _format_start(game.get("startTime")),
                _format_line(game.get("spread")),
                str(over_under) if over_under is not None else "-",
                str(game.get("status") or ""),
            )
        self.console.print(table)

    def display_details(self, title: str, details: Any) -> None:
        """Displays a JSON-like payload inside a titled panel."""
        try:
            body = Syntax(json.dumps(details, indent=2, default=str), "json", word_wrap=True)
        except (TypeError, ValueError) as e:
            logger.error(f"Error formatting details for '{title}': {e}")
            body = Text(str(details))
        self.console.print(Panel(body, title=f"[bold cyan]{title}[/bold cyan]", border_style="cyan", box=ROUNDED))

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message.

        Args:
            info_message: The informational message to display.
        """
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)
