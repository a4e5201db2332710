"""Interface for presenting data and status to the user.

Defines the contract for displaying tables, details, errors and info
messages, allowing different UI implementations (console, tests).
"""

import abc
from typing import Any, Dict, List


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_teams(self, teams: List[Dict[str, Any]]) -> None:
        """Displays the league's teams."""
        pass

    @abc.abstractmethod
    def display_players(self, players: List[Dict[str, Any]], title: str = "Players") -> None:
        """Displays a list of normalized players."""
        pass

    @abc.abstractmethod
    def display_games(self, games: List[Dict[str, Any]]) -> None:
        """Displays upcoming or in-progress games."""
        pass

    @abc.abstractmethod
    def display_details(self, title: str, details: Any) -> None:
        """Displays a structured payload (game details, odds, live update).

        Args:
            title: Heading for the block.
            details: Any JSON-like structure.
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user.

        Args:
            info_message: The informational message string.
            **kwargs: Additional arguments for formatting.
        """
        pass
