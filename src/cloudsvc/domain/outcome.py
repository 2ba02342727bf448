"""RunOutcome: the terminal result of one server run.

Produced exactly once per server lifetime and consumed by the CLI to pick
the process exit status.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class OutcomeKind(StrEnum):
    """How a server run ended."""

    CLOSED = "closed"
    START_FAILED = "start_failed"
    SHUTDOWN_FAILED = "shutdown_failed"


@dataclass(frozen=True)
class RunOutcome:
    """Terminal classification of a completed server run.

    Attributes:
        kind: Which of the three terminal results this is.
        cause: The underlying exception for the failure kinds, else None.
    """

    kind: OutcomeKind
    cause: BaseException | None = None

    def __post_init__(self) -> None:
        if self.kind is OutcomeKind.CLOSED and self.cause is not None:
            raise ValueError("a clean close carries no cause")
        if self.kind is not OutcomeKind.CLOSED and self.cause is None:
            raise ValueError(f"{self.kind} outcome requires a cause")

    @classmethod
    def closed(cls) -> RunOutcome:
        return cls(OutcomeKind.CLOSED)

    @classmethod
    def start_failed(cls, cause: BaseException) -> RunOutcome:
        return cls(OutcomeKind.START_FAILED, cause)

    @classmethod
    def shutdown_failed(cls, cause: BaseException) -> RunOutcome:
        return cls(OutcomeKind.SHUTDOWN_FAILED, cause)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.CLOSED

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1
