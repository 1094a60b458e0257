import logging
from typing import Any, Optional, Sequence

from rich.box import ROUNDED
from rich.console import Console
from rich.table import Table

from jobtrail.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console (a custom one can be passed for capture)."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self.console.print(f"[bold cyan]i[/bold cyan] {info_message}", highlight=False)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        self.console.print(f"[bold yellow]![/bold yellow] [yellow]{warning_message}[/yellow]", highlight=False)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        self.console.print(f"[bold red]x[/bold red] [red]{error_message}[/red]", highlight=False)

    def display_table(self, title: str, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        table = Table(title=title, box=ROUNDED, title_style="bold white", header_style="bold cyan")
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*("-" if value is None else str(value) for value in row))
        try:
            self.console.print(table)
        except Exception as e:
            # Fallback if Rich rendering fails
            logger.error(f"Error rendering table '{title}': {e}")
            self.console.print(title, markup=False)
            for row in rows:
                self.console.print(" | ".join(str(value) for value in row), markup=False)
