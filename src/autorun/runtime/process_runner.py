"""Execute a watched script and checkpoint its output back into the file."""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

from ..core import metadata
from ..core.errors import FileAccessError, MetadataInvariantError
from ..core.fingerprint import fingerprint
from ..utils import file_io
from .jobs import RunJob, RunOutcome, RunState

__all__ = ["ProcessRunner", "ProcessRunnerConfig"]

LOGGER = logging.getLogger(__name__)
_READ_CHUNK = 4096


@dataclass(slots=True)
class ProcessRunnerConfig:
    """Tunable parameters for :class:`ProcessRunner`."""

    checkpoint_interval: float = 1.0
    interpreters: Mapping[str, Sequence[str]] = field(default_factory=dict)


class ProcessRunner:
    """Drives a :class:`RunJob` from spawn to its final checkpoint.

    Two tasks run side by side: a periodic checkpoint loop and a waiter that
    drains the child's output and reaps it. Once both are finished one more
    checkpoint flushes the final output. A ``stop`` key appearing in the file
    kills the child and throws the run's output away.
    """

    def __init__(self, config: ProcessRunnerConfig | None = None) -> None:
        self._config = config or ProcessRunnerConfig()

    @property
    def config(self) -> ProcessRunnerConfig:
        return self._config

    def build_command(self, path: Path) -> list[str]:
        """Return the argv used to execute ``path``."""

        interpreter = self._config.interpreters.get(path.suffix.lower())
        if interpreter:
            return [*interpreter, str(path)]
        return [str(path)]

    async def run(self, job: RunJob) -> RunOutcome:
        process = await self._spawn(job)
        job.transition(RunState.RUNNING)

        exit_task = asyncio.create_task(self._await_exit(job, process))
        checkpoint_task = asyncio.create_task(self._checkpoint_loop(job, process))
        try:
            await asyncio.wait({exit_task, checkpoint_task}, return_when=asyncio.FIRST_COMPLETED)
            if checkpoint_task.done():
                checkpoint_task.result()
            if not job.cancelled:
                # A killed child may leave its pipe open through grandchildren.
                await exit_task
                await checkpoint_task

            if job.state is RunState.RUNNING:
                job.transition(RunState.COMPLETING)
                LOGGER.info("Finished %s", job.file_name)
                await self._checkpoint(job, process)
                if job.state is RunState.COMPLETING:
                    job.transition(RunState.DONE)
        except FileAccessError as exc:
            LOGGER.debug("Abandoning run of %s: %s", job.file_name, exc)
            return RunOutcome.UNREADABLE
        finally:
            _kill(process)
            for task in (exit_task, checkpoint_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(exit_task, checkpoint_task, return_exceptions=True)
            await _reap(job, process)
            job.force_done()

        return RunOutcome.CANCELLED if job.cancelled else RunOutcome.COMPLETED

    async def _spawn(self, job: RunJob) -> asyncio.subprocess.Process | None:
        command = self.build_command(job.path)
        LOGGER.debug("Spawning %s", command)
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                cwd=str(job.path.parent),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            job.append_output(f"\nEnding with error {exc}\n")
            return None

    async def _await_exit(self, job: RunJob, process: asyncio.subprocess.Process | None) -> None:
        try:
            if process is None:
                return
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            stream = process.stdout
            if stream is not None:
                while True:
                    chunk = await stream.read(_READ_CHUNK)
                    if not chunk:
                        break
                    job.append_output(decoder.decode(chunk))
                job.append_output(decoder.decode(b"", final=True))
            code = await process.wait()
            job.exit_code = code
            if code != 0:
                job.append_output(f"\nExit code non-0, was {code}\n")
        finally:
            job.exited.set()

    async def _checkpoint_loop(self, job: RunJob, process: asyncio.subprocess.Process | None) -> None:
        interval = self._config.checkpoint_interval
        while job.state is RunState.RUNNING and not job.exited.is_set():
            await self._checkpoint(job, process)
            if job.state is not RunState.RUNNING:
                break
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(job.exited.wait(), timeout=interval)

    async def _checkpoint(self, job: RunJob, process: asyncio.subprocess.Process | None) -> None:
        if job.state is RunState.DONE:
            return

        try:
            current_text = await file_io.read_text_async(job.path)
        except (OSError, UnicodeDecodeError) as exc:
            raise FileAccessError(job.path, exc) from exc
        current = metadata.parse(current_text)

        if metadata.STOP_KEY in current.values:
            LOGGER.info("Trying to stop previous run of file %s", job.file_name)
            job.transition(RunState.CANCELLING)
            _kill(process)
            values = current.copy_values()
            del values[metadata.STOP_KEY]
            await file_io.write_text_async(job.path, current.serialize(values))
            job.transition(RunState.DONE)
            return

        values = job.base.copy_values()
        values[metadata.OUTPUT_KEY] = job.output
        values[metadata.LAST_RUN_HASH_KEY] = job.fingerprint
        values.pop(metadata.STOP_KEY, None)
        content = job.base.serialize(values)

        written_fingerprint = fingerprint(content)
        if written_fingerprint != job.fingerprint:
            raise MetadataInvariantError(job.file_name, job.fingerprint, written_fingerprint)

        await file_io.write_text_async(job.path, content)


def _kill(process: asyncio.subprocess.Process | None) -> None:
    if process is None or process.returncode is not None:
        return
    with contextlib.suppress(ProcessLookupError):
        process.kill()


async def _reap(job: RunJob, process: asyncio.subprocess.Process | None, timeout: float = 5.0) -> None:
    if process is None:
        return
    if process.returncode is None:
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            LOGGER.warning("Process for %s did not exit after kill", job.file_name)
            return
    if job.exit_code is None:
        job.exit_code = process.returncode
