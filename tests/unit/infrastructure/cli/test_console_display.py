from unittest.mock import MagicMock

import pytest
from rich.console import Console
from rich.table import Table

from jobtrail.infrastructure.cli.display import ConsoleDisplay


@pytest.fixture
def mock_console():
    """Fixture to create a mock rich Console object."""
    return MagicMock()


@pytest.fixture
def console_display(mock_console: MagicMock):
    return ConsoleDisplay(console=mock_console)


def test_display_info(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_info("Sweep removed 2 record(s).")
    mock_console.print.assert_called_once_with("[bold cyan]i[/bold cyan] Sweep removed 2 record(s).", highlight=False)


def test_display_warning(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_warning("Relay slow")
    mock_console.print.assert_called_once_with("[bold yellow]![/bold yellow] [yellow]Relay slow[/yellow]", highlight=False)


def test_display_error(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_error("Gave up")
    mock_console.print.assert_called_once_with("[bold red]x[/bold red] [red]Gave up[/red]", highlight=False)


def test_display_table_builds_rich_table(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_table("Retries", ["retry", "delay_ms"], [[1, 1000], [2, None]])

    (table,), _ = mock_console.print.call_args
    assert isinstance(table, Table)
    assert table.title == "Retries"
    assert [column.header for column in table.columns] == ["retry", "delay_ms"]
    assert table.row_count == 2


def test_display_table_renders_missing_values_as_dash():
    console = Console(record=True, width=80)
    ConsoleDisplay(console=console).display_table("Attempts", ["#", "remaining"], [[1, None]])
    output = console.export_text()
    assert "Attempts" in output
    assert "-" in output


def test_display_table_falls_back_to_plain_rows(console_display: ConsoleDisplay, mock_console: MagicMock):
    mock_console.print.side_effect = [RuntimeError("render failed"), None, None]

    console_display.display_table("Retries", ["retry"], [[1]])

    assert mock_console.print.call_count == 3
    mock_console.print.assert_called_with("1", markup=False)
