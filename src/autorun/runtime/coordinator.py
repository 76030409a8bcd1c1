"""Per-file run coordination: one active run per name, debounced retriggers."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from ..core import metadata
from ..core.fingerprint import fingerprint
from ..utils import file_io
from .jobs import PendingState, RunJob, RunOutcome

__all__ = ["RunCoordinator", "JobRunner"]

LOGGER = logging.getLogger(__name__)


class JobRunner(Protocol):
    """Anything able to drive a :class:`RunJob` to completion."""

    async def run(self, job: RunJob) -> RunOutcome:
        ...


class RunCoordinator:
    """Serializes run attempts per file name inside one event loop.

    No lock is involved: ``trigger`` is only ever called on the loop thread,
    so checking and setting :attr:`PendingState.running` cannot interleave.
    """

    def __init__(self, directory: Path | str, runner: JobRunner) -> None:
        self._directory = Path(directory)
        self._runner = runner
        self._pending: dict[str, PendingState] = {}
        self._tasks: set[asyncio.Task[RunOutcome | None]] = set()

    @property
    def directory(self) -> Path:
        return self._directory

    def pending(self, file_name: str) -> PendingState | None:
        return self._pending.get(file_name)

    def is_running(self, file_name: str) -> bool:
        state = self._pending.get(file_name)
        return bool(state and state.running)

    def trigger(self, file_name: str) -> asyncio.Task[RunOutcome | None] | None:
        """Request a run of ``file_name``.

        Returns the scheduled task, or ``None`` when a run is already in
        flight and the request was folded into a single follow-up run.
        """

        state = self._pending.setdefault(file_name, PendingState())
        if state.running:
            state.retrigger_requested = True
            return None

        state.running = True
        task = asyncio.get_running_loop().create_task(
            self._run_guarded(file_name, state), name=f"autorun:{file_name}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run_attempt(self, file_name: str) -> RunOutcome:
        """Read ``file_name`` and run it when its content changed since the last run."""

        path = self._directory / file_name
        try:
            content = await file_io.read_text_async(path)
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.debug("Skipping %s: %s", file_name, exc)
            return RunOutcome.UNREADABLE

        annotated = metadata.parse(content)
        digest = fingerprint(content)
        if annotated.values.get(metadata.LAST_RUN_HASH_KEY) == digest:
            return RunOutcome.SKIPPED

        LOGGER.info("Rerunning %s", file_name)
        job = RunJob(
            file_name=file_name,
            path=path,
            content_snapshot=content,
            fingerprint=digest,
            base=annotated,
        )
        return await self._runner.run(job)

    async def wait_idle(self) -> None:
        """Wait until no run (follow-ups included) is in flight."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel every in-flight run."""

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_guarded(self, file_name: str, state: PendingState) -> RunOutcome | None:
        outcome: RunOutcome | None = None
        try:
            outcome = await self.run_attempt(file_name)
        except asyncio.CancelledError:
            state.retrigger_requested = False
            raise
        except Exception:
            LOGGER.exception("Error running %s", file_name)
        finally:
            state.running = False
            if state.retrigger_requested:
                state.retrigger_requested = False
                self.trigger(file_name)
        return outcome
