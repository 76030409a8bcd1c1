"""Run job bookkeeping: states, outcomes and per-file pending flags."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path

from ..core.errors import InvalidTransitionError
from ..core.metadata import AnnotatedFile

__all__ = ["RunState", "RunOutcome", "RunJob", "PendingState", "ALLOWED_TRANSITIONS"]

LOGGER = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# States
# -----------------------------------------------------------------------------


class RunState(Enum):
    """Lifecycle of a single run job."""

    STARTING = auto()
    RUNNING = auto()
    COMPLETING = auto()  # Child exited; final checkpoint pending
    CANCELLING = auto()  # Stop sentinel observed
    DONE = auto()


class RunOutcome(Enum):
    """How a run attempt ended."""

    SKIPPED = auto()  # Fingerprint matched lastRunHash
    UNREADABLE = auto()  # File vanished or could not be decoded
    COMPLETED = auto()
    CANCELLED = auto()


ALLOWED_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.STARTING: frozenset({RunState.RUNNING, RunState.DONE}),
    RunState.RUNNING: frozenset({RunState.COMPLETING, RunState.CANCELLING, RunState.DONE}),
    RunState.COMPLETING: frozenset({RunState.CANCELLING, RunState.DONE}),
    RunState.CANCELLING: frozenset({RunState.DONE}),
    RunState.DONE: frozenset(),
}


# -----------------------------------------------------------------------------
# Job
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class RunJob:
    """Ephemeral state of one execution of one file.

    Attributes:
        file_name: Name relative to the watched directory.
        path: Absolute path of the script.
        content_snapshot: File text read when the attempt started.
        fingerprint: Digest of ``content_snapshot`` without metadata.
        base: Metadata parsed from ``content_snapshot``; checkpoints
            serialize against it.
        output: Captured output, append-only.
    """

    file_name: str
    path: Path
    content_snapshot: str
    fingerprint: str
    base: AnnotatedFile
    output: str = "\n"
    state: RunState = RunState.STARTING
    exit_code: int | None = None
    cancelled: bool = False
    exited: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def done(self) -> bool:
        return self.state is RunState.DONE

    def append_output(self, text: str) -> None:
        if text:
            self.output += text

    def transition(self, target: RunState) -> None:
        """Move to ``target``; raises on anything the state table forbids."""

        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"{self.file_name}: cannot move from {self.state.name} to {target.name}"
            )
        LOGGER.debug("%s: %s -> %s", self.file_name, self.state.name, target.name)
        self.state = target
        if target is RunState.CANCELLING:
            self.cancelled = True

    def force_done(self) -> None:
        if self.state is not RunState.DONE:
            self.transition(RunState.DONE)


@dataclass(slots=True)
class PendingState:
    """Per-file debounce flags, kept for the lifetime of the process."""

    running: bool = False
    retrigger_requested: bool = False
