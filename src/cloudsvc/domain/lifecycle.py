"""Server lifecycle states and their one-way transitions.

idle -> starting -> serving -> shutting_down -> closed

A bind failure goes straight from starting to failed; a shutdown that does
not drain in time ends in failed. No state is ever revisited.
"""

from __future__ import annotations

from enum import StrEnum

from cloudsvc.errors import InvalidTransitionError


class ServerState(StrEnum):
    """States of a single server instance."""

    IDLE = "idle"
    STARTING = "starting"
    SERVING = "serving"
    SHUTTING_DOWN = "shutting_down"
    CLOSED = "closed"
    FAILED = "failed"


SERVER_TRANSITIONS: dict[str, list[str]] = {
    "idle": ["starting"],
    "starting": ["serving", "failed"],
    "serving": ["shutting_down", "closed", "failed"],
    "shutting_down": ["closed", "failed"],
    "closed": [],
    "failed": [],
}

TERMINAL_STATES = frozenset({ServerState.CLOSED, ServerState.FAILED})


def is_valid_transition(
    current: str,
    target: str,
    transitions: dict[str, list[str]] = SERVER_TRANSITIONS,
) -> bool:
    """Check if transitioning from *current* to *target* is allowed."""
    allowed = transitions.get(current, [])
    return target in allowed


def advance(current: ServerState, target: ServerState) -> ServerState:
    """Return *target* if the move is allowed, else raise InvalidTransitionError."""
    if not is_valid_transition(current, target):
        raise InvalidTransitionError(current, target)
    return target
