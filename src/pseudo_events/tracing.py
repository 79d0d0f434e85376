"""Dispatch tracing with Rich console output.

When tracing is enabled on an event, every node visited by a dispatch that
originates there is reported: the phase that reached it, the admission status,
and (at verbosity 2) a table of the settings in effect. Output goes to a
stderr console so it never interferes with stdout, or to the module logger when
Rich formatting is turned off.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .enums import DispatchPhase, DispatchStatus

if TYPE_CHECKING:
    from .core import Event
    from .settings import EventSettings

logger = logging.getLogger(__name__)

# Create a console instance for Rich output
_console = Console(stderr=True)  # Use stderr to avoid interfering with stdout

_PHASE_COLORS = {
    None: "bold cyan",
    DispatchPhase.SELF: "cyan",
    DispatchPhase.LINKED: "magenta",
    DispatchPhase.DESCENDANT: "blue",
    DispatchPhase.ASCENDANT: "yellow",
}


@dataclass(slots=True)
class DispatchTracer:
    """Trace configuration attached to an event node."""

    enabled: bool = False
    verbosity: int = 1
    """0=minimal, 1=normal, 2=verbose."""

    use_rich: bool = True

    def announce(self, event: Event) -> None:
        msg = f"Dispatch tracing {'enabled' if self.enabled else 'disabled'} for {event.label}"
        if not self.use_rich:
            logger.info(f"{msg} (verbosity={self.verbosity})")
        elif self.enabled:
            _console.print(
                Panel(
                    f"[bold green]✓[/bold green] {msg}\n"
                    f"[dim]Verbosity: {['minimal', 'normal', 'verbose'][self.verbosity]}[/dim]",
                    title="Dispatch Tracing",
                    border_style="green",
                )
            )
        else:
            _console.print(f"[yellow]ℹ[/yellow] {msg}")

    def format_visit(
        self,
        event: Event,
        status: DispatchStatus,
        depth: int,
        via: DispatchPhase | None,
        args: tuple,
        settings: EventSettings | None = None,
    ) -> tuple[Text | str, Table | None]:
        """Format one visited node as a line and an optional settings table."""
        text: Text | str
        if self.use_rich:
            text = Text("  " * depth)
            text.append("⚡ " if via is None else "↳ ", style="bold")
            text.append(event.label, style=_PHASE_COLORS[via])
            text.append(" | ")
            text.append("fire" if via is None else via.name.lower(), style="dim")
            text.append(" | ")
            text.append(status.value, style="green" if status.admitted else "bold red")
            if self.verbosity >= 1 and args:
                summary = ", ".join(_truncate(repr(arg), 20) for arg in args[:3])
                if len(args) > 3:
                    summary += f", +{len(args) - 3} more"
                text.append(f" [{summary}]", style="dim")
        else:
            parts = [
                "[DISPATCH TRACE]",
                f"event={event.label}",
                f"via={'fire' if via is None else via.name.lower()}",
                f"status={status.value}",
                f"depth={depth}",
            ]
            if args:
                parts.append(f"args={_truncate(repr(args), 200)}")
            text = " | ".join(parts)

        table = None
        if self.verbosity >= 2 and self.use_rich and settings is not None:
            table = Table(show_header=True, header_style="bold cyan", box=None)
            table.add_column("Setting", style="cyan", width=22)
            table.add_column("Value", overflow="fold")
            for key, value in settings:
                if key == "linked_events":
                    value = [linked.label for linked in value]
                elif key == "dispatch_order":
                    value = [phase.name for phase in value]
                table.add_row(key, _truncate(str(value), 100))

        return text, table

    def log_visit(
        self,
        event: Event,
        status: DispatchStatus,
        depth: int,
        via: DispatchPhase | None,
        args: tuple,
        settings: EventSettings | None = None,
    ) -> None:
        if not self.enabled:
            return

        text, table = self.format_visit(event, status, depth, via, args, settings)
        if not self.use_rich:
            logger.info(text)
            return

        _console.print(text)
        if table is not None:
            _console.print(table)


def _truncate(value: str, limit: int) -> str:
    if len(value) > limit:
        return value[: limit - 3] + "..."
    return value
