"""Dispatch tracing with Rich console output.

When enabled, every dispatch prints one summary line: criteria, number of
handlers in the chain, duration and outcome. Verbosity 2 adds a table with
the captured params and the route trace. With ``use_rich=False`` the same
data is written to the module logger at DEBUG level instead.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

logger = logging.getLogger(__name__)

# stderr keeps trace output out of stdout
_console = Console(stderr=True)

_VERBOSITY_NAMES = ("minimal", "normal", "verbose")

_STATUS_COLORS = {
    "completed": "green",
    "aborted": "yellow",
    "failed": "bold red",
}


def _truncate(value: Any, limit: int) -> str:
    text = str(value)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


class DispatchTracer:
    """Formats and emits per-dispatch trace output."""

    def __init__(
        self,
        enabled: bool = False,
        verbosity: int = 1,
        use_rich: bool = True,
        console: Console | None = None,
    ):
        self.enabled = enabled
        self.verbosity = verbosity
        self.use_rich = use_rich
        self.console = console or _console

    def configure(self, enabled: bool, verbosity: int = 1, use_rich: bool = True) -> None:
        """Enable or disable tracing and announce the change."""
        was_rich = self.use_rich
        self.enabled = enabled
        self.verbosity = verbosity
        self.use_rich = use_rich

        if enabled:
            msg = "Dispatch tracing enabled"
            if use_rich:
                self.console.print(
                    Panel(
                        f"[bold green]✓[/bold green] {msg}\n"
                        f"[dim]Verbosity: {_VERBOSITY_NAMES[verbosity]}[/dim]",
                        title="Dispatch Tracing",
                        border_style="green",
                    )
                )
            else:
                logger.info(f"{msg} (verbosity={verbosity})")
        else:
            msg = "Dispatch tracing disabled"
            if use_rich and was_rich:
                self.console.print(f"[yellow]ℹ[/yellow] {msg}")
            else:
                logger.info(msg)

    def format(
        self,
        criteria: str,
        handler_count: int,
        status: str,
        duration_ms: float | None = None,
        params: Mapping[str, Any] | None = None,
        trace: Sequence[str] | None = None,
        error: BaseException | None = None,
    ) -> tuple[Text | str, Table | None]:
        """Build the summary line and, at verbosity 2, the detail table."""
        text: Text | str
        if self.use_rich:
            text = Text()
            text.append("⚡ ", style="bold")
            text.append(criteria, style="bold blue")
            text.append(" | ")

            if handler_count > 0:
                text.append(f"handlers: {handler_count}", style="green")
            else:
                text.append("no handlers", style="dim red")

            text.append(" | ")
            text.append(status, style=_STATUS_COLORS.get(status, "white"))

            if duration_ms is not None:
                text.append(" | ")
                if duration_ms < 10:
                    dur_style = "green"
                elif duration_ms < 100:
                    dur_style = "yellow"
                else:
                    dur_style = "red"
                text.append(f"{duration_ms:.2f}ms", style=f"bold {dur_style}")

            if error:
                text.append(" | ")
                text.append(f"ERROR: {error!r}", style="bold red")
        else:
            parts = [
                f"[DISPATCH] {criteria}",
                f"handlers={handler_count}",
                f"status={status}",
            ]
            if duration_ms is not None:
                parts.append(f"duration={duration_ms:.2f}ms")
            if trace:
                parts.append(f"trace={' → '.join(trace)}")
            if params:
                parts.append(f"params={_truncate(dict(params), 200)}")
            if error:
                parts.append(f"error={error!r}")
            text = " | ".join(parts)

        table = None
        if self.verbosity >= 2 and self.use_rich:
            table = Table(show_header=True, header_style="bold cyan", box=None)
            table.add_column("Field", style="cyan", width=15)
            table.add_column("Value", overflow="fold")

            for key, value in (params or {}).items():
                table.add_row("param:" + key, _truncate(value, 100))
            if trace:
                table.add_row("trace", " → ".join(trace))
            if error:
                table.add_row("error", str(error), style="red")

        return text, table

    def emit(
        self,
        criteria: str,
        handler_count: int,
        status: str,
        duration_ms: float | None = None,
        params: Mapping[str, Any] | None = None,
        trace: Sequence[str] | None = None,
        error: BaseException | None = None,
    ) -> None:
        """Print (or log) one dispatch summary when tracing is enabled."""
        if not self.enabled:
            return

        text, table = self.format(
            criteria, handler_count, status, duration_ms, params, trace, error
        )

        if not self.use_rich:
            logger.debug(text)
            return

        if self.verbosity == 1 and params and isinstance(text, Text):
            summary = Text(" ")
            summary.append("[", style="dim")
            items = [f"{k}={_truncate(v, 20)}" for k, v in list(params.items())[:3]]
            summary.append(", ".join(items), style="dim")
            if len(params) > 3:
                summary.append(f", +{len(params) - 3} more", style="dim italic")
            summary.append("]", style="dim")
            text.append(summary)

        self.console.print(text)
        if table is not None:
            self.console.print(table)


__all__ = ["DispatchTracer"]
