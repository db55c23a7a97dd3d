"""Shared test fixtures for taskloop tests."""

from __future__ import annotations

import shlex
import sys
from pathlib import Path
from typing import Callable

import pytest

from taskloop.config import LoopConfig


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create a temporary project with a .taskmaster directory."""
    root = tmp_path / "project"
    (root / ".taskmaster" / "tasks").mkdir(parents=True)
    (root / ".taskmaster" / "tasks" / "tasks.json").write_text('{"tasks": []}\n')
    return root


@pytest.fixture
def loop_config(project_root: Path) -> Callable[..., LoopConfig]:
    """Factory for loop configs that write progress into the temp project."""

    def _make(**overrides) -> LoopConfig:
        values = {
            "iterations": 1,
            "prompt": "default",
            "progress_file": project_root / ".taskmaster" / "loop-progress.txt",
            "sleep_seconds": 0,
        }
        values.update(overrides)
        return LoopConfig(**values)

    return _make


@pytest.fixture
def fake_agent(tmp_path: Path) -> Callable[[str], str]:
    """Write a Python script that stands in for the agent CLI.

    Returns a factory taking the script body and returning an agent command
    string suitable for IterationExecutor. The body sees ``sys.argv`` as
    ``[script, "-p", prompt]``.
    """
    counter = {"n": 0}

    def _make(body: str) -> str:
        counter["n"] += 1
        script = tmp_path / f"fake_agent_{counter['n']}.py"
        script.write_text("import sys\n" + body, encoding="utf-8")
        return f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"

    return _make
