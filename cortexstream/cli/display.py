"""
CLI display components for streamed agent answers.

- VerboseDisplay: status and tool progress while streaming, then the answer
  rendered as markdown, a table and a chart summary
- JsonDisplay: the final snapshot as one JSON document
"""

from abc import ABC, abstractmethod
import json
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table as RichTable

from .._types import (
    CanonicalChart,
    ChartSpec,
    DeclarativeChart,
    StreamSnapshot,
    StreamState,
    Table,
)

_MAX_TABLE_ROWS = 50


class SnapshotDisplay(ABC):
    """Base class for snapshot renderers."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    @abstractmethod
    def on_update(self, snapshot: StreamSnapshot) -> None:
        """Handle a newly published snapshot."""
        pass

    @abstractmethod
    def finish(self, snapshot: StreamSnapshot) -> None:
        """Render the final snapshot."""
        pass


class VerboseDisplay(SnapshotDisplay):
    """Rich terminal output: progress lines while streaming, full answer at the end."""

    def __init__(self, console: Console | None = None) -> None:
        super().__init__(console=console)
        self._last_status: Any = None
        self._tool_states: dict[str, str | None] = {}

    def on_update(self, snapshot: StreamSnapshot) -> None:
        if snapshot.stream_state != StreamState.STREAMING:
            return

        status = snapshot.agent_status
        if status and status != self._last_status:
            self._last_status = status
            message = status.get("message") if isinstance(status, dict) else status
            self.console.print(f"[dim cyan]… {message}[/dim cyan]")

        for entry in snapshot.tool_timeline:
            key = str(entry.id)
            if key not in self._tool_states:
                self._tool_states[key] = entry.status
                name = entry.name or "Unknown tool"
                self.console.print(
                    f"[bold cyan]⚡ Calling tool:[/bold cyan] [yellow]{name}[/yellow]"
                )
            elif entry.status and entry.status != self._tool_states[key]:
                self._tool_states[key] = entry.status
                self.console.print(f"   [green]{entry.name}:[/green] {entry.status}")

    def finish(self, snapshot: StreamSnapshot) -> None:
        if snapshot.stream_state == StreamState.ERROR:
            self.console.print(
                Panel(
                    f"[red]{snapshot.error}[/red]",
                    title="[red]❌ Error[/red]",
                    border_style="red",
                )
            )
            return

        answer = snapshot.final_answer
        if answer is None:
            self.console.print("[dim]No response generated.[/dim]")
            return

        self.console.print(_build_markdown_panel(answer.text))
        if answer.table is not None:
            self.console.print(build_table(answer.table))
        if answer.chart_spec is not None:
            self.console.print(build_chart_panel(answer.chart_spec))


class JsonDisplay(SnapshotDisplay):
    """Print the final snapshot as JSON for scripting."""

    def on_update(self, snapshot: StreamSnapshot) -> None:
        pass

    def finish(self, snapshot: StreamSnapshot) -> None:
        print(json.dumps(snapshot.to_dict(), default=str, ensure_ascii=False), flush=True)


def build_table(table: Table, max_rows: int = _MAX_TABLE_ROWS) -> RichTable:
    """Convert a :class:`Table` into a Rich table, truncating long results."""
    rich_table = RichTable(title=table.title, show_lines=False, header_style="bold cyan")
    for header in table.headers:
        rich_table.add_column(str(header))

    width = len(table.headers)
    for row in table.rows[:max_rows]:
        cells = ["" if cell is None else str(cell) for cell in row][:width]
        cells += [""] * (width - len(cells))
        rich_table.add_row(*cells)

    hidden = len(table.rows) - max_rows
    if hidden > 0:
        rich_table.caption = f"{hidden} more rows not shown"
    return rich_table


def describe_chart(chart: ChartSpec) -> str:
    """One-paragraph text summary of a chart spec."""
    if isinstance(chart, DeclarativeChart):
        mark = chart.mark.get("type") if isinstance(chart.mark, dict) else chart.mark
        x_field, x_type = chart.field_binding("x")
        y_field, y_type = chart.field_binding("y")
        return (
            f"{mark} chart, {len(chart.values)} points\n"
            f"x: {x_field} ({x_type})\n"
            f"y: {y_field} ({y_type})"
        )
    if isinstance(chart, CanonicalChart):
        chart_type = chart.spec.get("type") or "chart"
        series = ", ".join(str(d.get("label", "?")) for d in chart.datasets) or "none"
        return f"{chart_type} chart, {len(chart.labels)} labels\nseries: {series}"
    return str(chart)


def build_chart_panel(chart: ChartSpec) -> Panel:
    title = chart.spec.get("title") if isinstance(chart.spec.get("title"), str) else None
    return Panel(
        describe_chart(chart),
        title=f"[magenta]📊 {title or 'Chart'}[/magenta]",
        border_style="magenta",
        expand=False,
    )


def _build_markdown_panel(text: str) -> Panel:
    if not text.strip():
        return Panel("[dim]No text in response.[/dim]", border_style="cyan", expand=True)
    return Panel(
        Markdown(text, code_theme="monokai", justify="left"),
        title="[cyan]Response[/cyan]",
        border_style="cyan",
        expand=True,
    )


def create_display(format: str = "verbose") -> SnapshotDisplay:
    """
    Factory function to create appropriate display.

    Args:
        format: Display format ("verbose" or "json")
    """
    if format == "json":
        return JsonDisplay()
    return VerboseDisplay()
