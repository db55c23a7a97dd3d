"""Orchestrator for the taskloop agent loop.

This module provides the loop state machine. Each iteration:

1. Resolves the prompt (preset catalog + prompt builder)
2. Runs the agent once (IterationExecutor)
3. Appends a line to the progress log
4. Stops on a complete or blocked marker, otherwise sleeps and continues

The run ends with ``all_complete``, ``blocked`` or ``max_iterations``.
A stop request lets the in-flight iteration finish and records it, then
ends the run with ``max_iterations`` bookkeeping.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Literal, Optional, Union

from .config import LoopConfig, LoopConfigError, Settings
from .executor import IterationExecutor, LoopIteration, MockIterationExecutor
from .presets import PRESET_NAMES, is_valid_preset, resolve_prompt
from .progress_log import ProgressEntry, ProgressLog
from .prompt_builder import build_prompt

logger = logging.getLogger(__name__)

FinalStatus = Literal["all_complete", "blocked", "max_iterations", "error"]

DEFAULT_PROGRESS_NOTE = "Iteration completed"
ON_COMPLETE_TIMEOUT = 300


@dataclass
class LoopResult:
    """Result from a complete loop run."""

    iterations: list[LoopIteration] = field(default_factory=list)
    total_iterations: int = 0
    tasks_completed: int = 0
    final_status: FinalStatus = "max_iterations"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "iterations": [
                {
                    "iteration": it.iteration,
                    "status": it.status,
                    "duration": it.duration_ms,
                    "message": it.message,
                    "taskId": it.task_id,
                }
                for it in self.iterations
            ],
            "totalIterations": self.total_iterations,
            "tasksCompleted": self.tasks_completed,
            "finalStatus": self.final_status,
        }


class LoopOrchestrator:
    """Runs the agent loop for one project.

    One instance handles at most one run at a time.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        executor: Optional[IterationExecutor] = None,
        progress_log: Optional[ProgressLog] = None,
        on_iteration_start: Optional[Callable[[int, int], None]] = None,
        on_iteration_end: Optional[Callable[[LoopIteration], None]] = None,
    ):
        """Initialize the orchestrator.

        Args:
            project_root: Directory the agent runs in.
            executor: Iteration executor; a real one is created if omitted.
            progress_log: Progress log writer.
            on_iteration_start: Called with (iteration, budget) before each run.
            on_iteration_end: Called with the finished LoopIteration.
        """
        self.project_root = Path(project_root)
        self.executor = executor or IterationExecutor()
        self.progress_log = progress_log or ProgressLog()
        self.on_iteration_start = on_iteration_start
        self.on_iteration_end = on_iteration_end

        self._running = False
        self._current_iteration = 0
        self._stop_event = threading.Event()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> LoopOrchestrator:
        """Create an orchestrator wired from runtime settings."""
        if settings.mock_mode:
            executor: IterationExecutor = MockIterationExecutor()
        else:
            executor = IterationExecutor(agent_command=settings.agent_command)
        return cls(settings.project_root, executor=executor, **kwargs)

    @property
    def current_iteration(self) -> int:
        """1-based index of the iteration in progress, or 0 before the first."""
        return self._current_iteration

    def is_running(self) -> bool:
        """Return True while a run is in progress."""
        return self._running

    def is_preset(self, name: str) -> bool:
        """Return True if ``name`` is a built-in preset."""
        return is_valid_preset(name)

    def get_available_presets(self) -> list[str]:
        """Return the built-in preset names in catalog order."""
        return list(PRESET_NAMES)

    def run(self, config: LoopConfig) -> LoopResult:
        """Run the loop until complete, blocked, or out of iterations.

        Args:
            config: Run configuration.

        Returns:
            LoopResult covering every attempted iteration.

        Raises:
            LoopConfigError: If the configuration is invalid.
            PresetError: If the prompt cannot be resolved.
        """
        errors = config.validate()
        if errors:
            raise LoopConfigError(errors)

        self._running = True
        self._current_iteration = 0
        self._stop_event.clear()
        self.executor.reset()

        iterations: list[LoopIteration] = []
        tasks_completed = 0
        final_status: FinalStatus = "max_iterations"

        logger.info(
            f"Starting loop: preset={config.prompt}, iterations={config.iterations}, "
            f"project={self.project_root}"
        )

        try:
            self.progress_log.initialize(
                config.progress_file,
                preset_name=config.prompt,
                iteration_budget=config.iterations,
                tag=config.tag,
            )

            for index in range(1, config.iterations + 1):
                if not self._running:
                    logger.info(f"Loop stopped before iteration {index}")
                    break

                self._current_iteration = index
                logger.info(f"=== Loop Iteration {index}/{config.iterations} ===")
                if self.on_iteration_start:
                    self.on_iteration_start(index, config.iterations)

                prompt = build_prompt(config, resolve_prompt(config.prompt), index)
                if not self._running:
                    logger.info(f"Loop stopped before the agent started iteration {index}")
                    break

                outcome = self.executor.execute_iteration(prompt, index, self.project_root)
                iteration = outcome.iteration
                iterations.append(iteration)

                self.progress_log.append(
                    config.progress_file,
                    ProgressEntry(
                        iteration=index,
                        task_id=iteration.task_id,
                        note=iteration.message or DEFAULT_PROGRESS_NOTE,
                    ),
                )

                if self.on_iteration_end:
                    self.on_iteration_end(iteration)

                check = outcome.completion_check
                if check.is_complete:
                    tasks_completed += 1
                    final_status = "all_complete"
                    logger.info(f"Agent reported completion: {iteration.message}")
                    break
                if check.is_blocked:
                    final_status = "blocked"
                    logger.warning(f"Agent reported it is blocked: {iteration.message}")
                    break
                if iteration.status == "success":
                    tasks_completed += 1

                if index < config.iterations and config.sleep_seconds > 0:
                    self._sleep(config.sleep_seconds)
        finally:
            self._running = False

        result = LoopResult(
            iterations=iterations,
            total_iterations=len(iterations),
            tasks_completed=tasks_completed,
            final_status=final_status,
        )
        logger.info(
            f"Loop finished: {result.final_status} after {result.total_iterations} "
            f"iteration(s), {result.tasks_completed} task(s) completed"
        )

        if result.final_status == "all_complete" and config.on_complete:
            self._run_on_complete(config.on_complete)

        return result

    def stop(self) -> None:
        """Ask the running loop to stop.

        Terminates the in-flight agent process, if any, and prevents further
        iterations. Safe to call repeatedly or when nothing is running.
        """
        if self._running:
            logger.info("Stop requested")
        self._running = False
        self._stop_event.set()
        self.executor.stop()

    def _sleep(self, seconds: float) -> None:
        """Wait between iterations; returns early when stop() is called."""
        logger.debug(f"Sleeping {seconds}s before next iteration")
        self._stop_event.wait(seconds)

    def _run_on_complete(self, command: str) -> None:
        """Run the on-complete hook in the project root. Failures are logged."""
        logger.info(f"Running on-complete hook: {command}")
        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=self.project_root,
                capture_output=True,
                text=True,
                timeout=ON_COMPLETE_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"On-complete hook failed: {e}")
            return

        if result.returncode != 0:
            logger.warning(
                f"On-complete hook exited with code {result.returncode}: "
                f"{result.stderr.strip()}"
            )
        else:
            logger.info("On-complete hook finished")
