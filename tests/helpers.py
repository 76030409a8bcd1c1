"""Shared test helpers and stub classes.

Import from here instead of duplicating these in individual test files:

    from tests.helpers import BlockingRunner, PYTHON_COMMAND, wait_until
"""

from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path
from typing import Callable

from autorun.core import metadata
from autorun.core.fingerprint import fingerprint
from autorun.runtime.jobs import RunJob, RunOutcome

# Executes a Python script with its metadata blocks removed.
_RUN_WITHOUT_METADATA = r"""
import re, sys
path = sys.argv[1]
with open(path, encoding="utf-8") as handle:
    source = handle.read()
source = re.sub(r"\n/\*\* @autorun-.*? \*/\n", "\n", source, flags=re.S)
sys.argv = sys.argv[1:]
exec(compile(source, path, "exec"), {"__name__": "__main__", "__file__": path})
"""

PYTHON_COMMAND = [sys.executable, "-u", "-c", _RUN_WITHOUT_METADATA]


async def wait_until(predicate: Callable[[], bool], *, timeout: float = 10.0, step: float = 0.01) -> None:
    """Poll ``predicate`` until it holds; fails the test after ``timeout`` seconds."""

    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError(f"condition not met within {timeout}s")
        await asyncio.sleep(step)


def make_job(path: Path) -> RunJob:
    """Build a job the same way the coordinator does."""

    content = path.read_bytes().decode("utf-8")
    return RunJob(
        file_name=path.name,
        path=path,
        content_snapshot=content,
        fingerprint=fingerprint(content),
        base=metadata.parse(content),
    )


def read_values(path: Path) -> dict[str, str]:
    return metadata.parse(path.read_bytes().decode("utf-8")).values


class BlockingRunner:
    """Runner stub that records jobs and blocks until released.

    Create it inside a running event loop.
    """

    def __init__(self, *, error: Exception | None = None) -> None:
        self.jobs: list[RunJob] = []
        self.release = asyncio.Event()
        self.error = error

    async def run(self, job: RunJob) -> RunOutcome:
        self.jobs.append(job)
        await self.release.wait()
        if self.error is not None:
            error, self.error = self.error, None
            raise error
        return RunOutcome.COMPLETED
