"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from autorun.runtime import ProcessRunner, ProcessRunnerConfig
from tests.helpers import PYTHON_COMMAND


@pytest.fixture
def python_runner() -> ProcessRunner:
    """Runner executing ``.py`` files with the current interpreter and fast checkpoints."""

    return ProcessRunner(
        ProcessRunnerConfig(
            checkpoint_interval=0.05,
            interpreters={".py": PYTHON_COMMAND},
        )
    )


@pytest.fixture
def script_dir(tmp_path: Path) -> Path:
    target = tmp_path / "scripts"
    target.mkdir()
    return target
