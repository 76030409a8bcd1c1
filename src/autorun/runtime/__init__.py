"""Run coordination and process execution."""

from .coordinator import JobRunner, RunCoordinator
from .jobs import PendingState, RunJob, RunOutcome, RunState
from .process_runner import ProcessRunner, ProcessRunnerConfig

__all__ = [
    "JobRunner",
    "PendingState",
    "ProcessRunner",
    "ProcessRunnerConfig",
    "RunCoordinator",
    "RunJob",
    "RunOutcome",
    "RunState",
]
