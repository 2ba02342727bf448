"""Rich Console factory and theme for the final run outcome.

Creates Console instances that render to a StringIO buffer, preserving a
``render_outcome() -> str`` contract.  In non-TTY environments (tests,
pipes) click strips the color codes when echoing.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.text import Text
from rich.theme import Theme

from cloudsvc.domain.outcome import OutcomeKind, RunOutcome

SVC_THEME = Theme(
    {
        "svc.ok": "bold green",
        "svc.error": "bold red",
        "svc.kind": "bold cyan",
        "svc.cause": "dim",
    }
)

_MESSAGES: dict[OutcomeKind, str] = {
    OutcomeKind.CLOSED: "server closed",
    OutcomeKind.START_FAILED: "error server: failed to start",
    OutcomeKind.SHUTDOWN_FAILED: "error server: failed to shut down in time",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes (used in tests).
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=SVC_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def render_outcome(outcome: RunOutcome, *, no_color: bool = False) -> str:
    """Render a one-line summary of *outcome*."""
    console = create_console(no_color=no_color)
    line = Text()
    line.append(_MESSAGES[outcome.kind], style="svc.ok" if outcome.ok else "svc.error")
    line.append(f" [{outcome.kind}]", style="svc.kind")
    if outcome.cause is not None:
        line.append(f": {outcome.cause}", style="svc.cause")
    console.print(line, soft_wrap=True)
    return get_output(console).rstrip("\n")
