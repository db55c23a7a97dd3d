"""Configuration management for taskloop."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import yaml
from dotenv import load_dotenv


TASKMASTER_DIR = ".taskmaster"
PROGRESS_FILE_NAME = "loop-progress.txt"
TASKS_FILE_REFERENCE = ".taskmaster/tasks/tasks.json"

DEFAULT_ITERATIONS = 10
DEFAULT_PROMPT = "default"
DEFAULT_SLEEP_SECONDS = 5.0
DEFAULT_STATUS = "pending"
DEFAULT_AGENT_COMMAND = "claude"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LoopConfigError(ValueError):
    """Raised when a loop configuration cannot be run."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid loop configuration: " + "; ".join(errors))


def default_progress_file(project_root: Path) -> Path:
    """Return the default progress log location for a project."""
    return Path(project_root) / TASKMASTER_DIR / PROGRESS_FILE_NAME


def resolve_progress_file(project_root: Path, progress_file: Union[str, Path]) -> Path:
    """Anchor a relative progress file path at the project root."""
    path = Path(progress_file)
    return path if path.is_absolute() else Path(project_root) / path


@dataclass(frozen=True)
class LoopConfig:
    """Configuration for a single loop run.

    Immutable for the duration of a run. ``tag`` and ``status`` are opaque
    filters passed through to the agent; ``on_complete`` is a shell command
    run once when every task is reported complete.
    """

    iterations: int = DEFAULT_ITERATIONS
    prompt: str = DEFAULT_PROMPT
    progress_file: Path = field(
        default_factory=lambda: default_progress_file(Path.cwd())
    )
    sleep_seconds: float = DEFAULT_SLEEP_SECONDS
    tag: Optional[str] = None
    status: Optional[str] = DEFAULT_STATUS
    on_complete: Optional[str] = None

    def validate(self) -> list[str]:
        """Validate the configuration.

        Returns:
            List of validation error messages. Empty if valid.
        """
        errors = []

        if isinstance(self.iterations, bool) or not isinstance(self.iterations, int):
            errors.append(f"iterations must be an integer, got {self.iterations!r}")
        elif self.iterations < 1:
            errors.append(f"iterations must be at least 1, got {self.iterations}")

        if isinstance(self.sleep_seconds, bool) or not isinstance(self.sleep_seconds, (int, float)):
            errors.append(f"sleep_seconds must be a number, got {self.sleep_seconds!r}")
        elif self.sleep_seconds < 0:
            errors.append(f"sleep_seconds must not be negative, got {self.sleep_seconds}")

        if not self.prompt:
            errors.append("prompt must name a preset or a prompt file")

        return errors

    @classmethod
    def from_dict(cls, data: dict, project_root: Optional[Path] = None) -> LoopConfig:
        """Create LoopConfig from the ``loop`` section of a YAML document."""
        root = Path(project_root) if project_root else Path.cwd()
        loop_data = data.get("loop", {}) or {}
        progress_file = loop_data.get("progress_file")
        return cls(
            iterations=loop_data.get("iterations", DEFAULT_ITERATIONS),
            prompt=loop_data.get("prompt", DEFAULT_PROMPT),
            progress_file=(
                resolve_progress_file(root, progress_file)
                if progress_file
                else default_progress_file(root)
            ),
            sleep_seconds=loop_data.get("sleep_seconds", DEFAULT_SLEEP_SECONDS),
            tag=loop_data.get("tag"),
            status=loop_data.get("status", DEFAULT_STATUS),
            on_complete=loop_data.get("on_complete"),
        )

    @classmethod
    def load_from_file(cls, config_dir: Path, project_root: Optional[Path] = None) -> LoopConfig:
        """Load loop defaults from ``loop_config.yaml`` in the config directory."""
        loop_config_path = config_dir / "loop_config.yaml"
        if loop_config_path.exists():
            with open(loop_config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            return cls.from_dict(data, project_root=project_root)
        return cls.from_dict({}, project_root=project_root)


def build_config(
    project_root: Path,
    defaults: Optional[LoopConfig] = None,
    iterations: Optional[int] = None,
    prompt: Optional[str] = None,
    progress_file: Optional[Path] = None,
    sleep_seconds: Optional[float] = None,
    tag: Optional[str] = None,
    status: Optional[str] = None,
    on_complete: Optional[str] = None,
) -> LoopConfig:
    """Merge explicit options over loop defaults.

    Any option left as None keeps the value from ``defaults`` (or the
    built-in defaults for ``project_root`` when none are given). A relative
    ``progress_file`` is taken relative to ``project_root``, where the agent
    runs.
    """
    base = defaults or LoopConfig.from_dict({}, project_root=project_root)
    return LoopConfig(
        iterations=base.iterations if iterations is None else iterations,
        prompt=base.prompt if prompt is None else prompt,
        progress_file=(
            base.progress_file
            if progress_file is None
            else resolve_progress_file(project_root, progress_file)
        ),
        sleep_seconds=base.sleep_seconds if sleep_seconds is None else sleep_seconds,
        tag=base.tag if tag is None else tag,
        status=base.status if status is None else status,
        on_complete=base.on_complete if on_complete is None else on_complete,
    )


@dataclass
class Settings:
    """Runtime settings for taskloop."""

    # Paths
    project_root: Path = field(default_factory=Path.cwd)
    config_dir: Path = field(default_factory=lambda: Path.cwd() / TASKMASTER_DIR)

    # Agent Settings
    agent_command: str = DEFAULT_AGENT_COMMAND

    # Runtime Settings
    log_level: str = "INFO"
    mock_mode: bool = False

    # Loop defaults (loaded from loop_config.yaml)
    loop: LoopConfig = field(default_factory=LoopConfig)

    @classmethod
    def from_env(cls, project_root: Optional[Path] = None) -> Settings:
        """Load settings from environment variables.

        Args:
            project_root: Optional path to the project. Defaults to CWD.

        Returns:
            Settings instance populated from environment.
        """
        load_dotenv()

        root = Path(project_root) if project_root else Path.cwd()
        config_dir = root / TASKMASTER_DIR

        loop_config = LoopConfig.load_from_file(config_dir, project_root=root)

        return cls(
            project_root=root,
            config_dir=config_dir,
            agent_command=os.getenv("TASKLOOP_AGENT_COMMAND", DEFAULT_AGENT_COMMAND),
            log_level=os.getenv("TASKLOOP_LOG_LEVEL", "INFO"),
            mock_mode=os.getenv("TASKLOOP_MOCK_MODE", "").lower() in ("true", "1", "yes"),
            loop=loop_config,
        )

    def validate(self) -> list[str]:
        """Validate settings and return list of errors.

        Returns:
            List of validation error messages. Empty if valid.
        """
        errors = []

        if not self.project_root.exists():
            errors.append(f"Project root does not exist: {self.project_root}")

        if not self.agent_command.strip():
            errors.append("Agent command must not be empty")

        if self.log_level.upper() not in LOG_LEVELS:
            errors.append(f"Unknown log level: {self.log_level}")

        return errors

    @property
    def loop_config_file(self) -> Path:
        """Path to loop_config.yaml file."""
        return self.config_dir / "loop_config.yaml"
