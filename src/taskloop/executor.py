"""Agent CLI integration for loop iterations.

Each iteration launches the agent once in non-interactive print mode with
the composed prompt, collects everything it writes to stdout and stderr,
and classifies the result with the completion parser.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional, Union

from .completion import CompletionCheckResult, CompletionParser, IterationStatus
from .config import DEFAULT_AGENT_COMMAND

logger = logging.getLogger(__name__)

PRINT_MODE_FLAG = "-p"


@dataclass(frozen=True)
class LoopIteration:
    """Record of one executed iteration."""

    iteration: int
    status: IterationStatus
    duration_ms: Optional[int] = None
    message: Optional[str] = None
    task_id: Optional[str] = None


@dataclass
class IterationOutcome:
    """Everything the executor learned from one agent run."""

    iteration: LoopIteration
    output: str
    completion_check: CompletionCheckResult
    exit_code: int


class OutputBuffer:
    """Thread-safe accumulator for the combined stdout/stderr text."""

    def __init__(self) -> None:
        self._chunks: list[str] = []
        self._lock = threading.Lock()

    def write(self, text: str) -> None:
        with self._lock:
            self._chunks.append(text)

    def getvalue(self) -> str:
        with self._lock:
            return "".join(self._chunks)


def _read_stream(pipe: IO[str], buffer: OutputBuffer, errors: list[BaseException]) -> None:
    """Copy a pipe into the shared buffer until EOF."""
    try:
        for line in iter(pipe.readline, ""):
            buffer.write(line)
    except (OSError, ValueError) as e:
        errors.append(e)
    finally:
        pipe.close()


def _message_for(check: CompletionCheckResult) -> Optional[str]:
    if check.marker is not None:
        return check.marker.reason
    if check.status == "error":
        return f"Agent exited with code {check.exit_code}"
    return None


class IterationExecutor:
    """Runs the agent CLI for one loop iteration at a time."""

    def __init__(
        self,
        agent_command: str = DEFAULT_AGENT_COMMAND,
        parser: Optional[CompletionParser] = None,
    ):
        """Initialize the executor.

        Args:
            agent_command: Command used to launch the agent. Split with shlex,
                so extra leading arguments may be included.
            parser: Completion parser; a default one is created if omitted.
        """
        self.agent_command = agent_command
        self.parser = parser or CompletionParser()
        self._process: Optional[subprocess.Popen] = None
        self._stopped = False
        # Reentrant: stop() may run from a signal handler on the thread that
        # already holds the lock.
        self._lock = threading.RLock()

    def build_command(self, prompt: str) -> list[str]:
        """Return the argv used to launch the agent with ``prompt``."""
        return [*shlex.split(self.agent_command), PRINT_MODE_FLAG, prompt]

    def check_installed(self) -> bool:
        """Check if the agent CLI is installed and accessible.

        Returns:
            True if the agent command answers ``--version``, False otherwise.
        """
        try:
            result = subprocess.run(
                [*shlex.split(self.agent_command), "--version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
            return result.returncode == 0
        except (OSError, ValueError, subprocess.TimeoutExpired):
            return False

    def reset(self) -> None:
        """Clear a previous stop request so the executor can run again."""
        with self._lock:
            self._stopped = False

    @property
    def is_active(self) -> bool:
        """True while an agent process is in flight."""
        with self._lock:
            return self._process is not None

    def execute_iteration(
        self,
        prompt: str,
        iteration: int,
        working_directory: Union[str, Path],
    ) -> IterationOutcome:
        """Run the agent once and classify the result.

        Spawn failures and stream errors never raise; they produce an
        outcome with status ``error`` and exit code 1.

        Args:
            prompt: Fully composed prompt.
            iteration: 1-based iteration index.
            working_directory: Project root the agent runs in.

        Returns:
            IterationOutcome for this iteration.
        """
        start = time.monotonic()
        buffer = OutputBuffer()
        stream_errors: list[BaseException] = []

        logger.info(f"Invoking agent for iteration {iteration}...")
        logger.debug(f"Prompt: {prompt[:200]}...")

        with self._lock:
            if self._stopped:
                logger.info("Stop requested; not starting the agent")
                return self._error_outcome(
                    iteration, "", "Stopped before the agent was started", start
                )

        try:
            process = subprocess.Popen(
                self.build_command(prompt),
                cwd=str(working_directory),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except (OSError, ValueError) as e:
            logger.error(f"Failed to spawn agent: {e}")
            return self._error_outcome(iteration, buffer.getvalue(), str(e), start)

        with self._lock:
            stopped = self._stopped
            if not stopped:
                self._process = process
        if stopped:
            # stop() arrived while the process was being spawned
            logger.info("Stop requested during spawn; terminating agent")
            process.terminate()

        readers = [
            threading.Thread(
                target=_read_stream,
                args=(stream, buffer, stream_errors),
                daemon=True,
            )
            for stream in (process.stdout, process.stderr)
        ]
        for reader in readers:
            reader.start()

        try:
            returncode = process.wait()
        finally:
            for reader in readers:
                reader.join()
            self._clear_handle(process)

        output = buffer.getvalue()

        if stream_errors:
            logger.error(f"Agent output stream failed: {stream_errors[0]}")
            return self._error_outcome(iteration, output, str(stream_errors[0]), start)

        # A negative return code means the process was killed by a signal
        # and has no exit code of its own.
        exit_code = returncode if returncode >= 0 else None
        check = self.parser.check(output, exit_code)

        loop_iteration = LoopIteration(
            iteration=iteration,
            status=check.status or "error",
            duration_ms=self._elapsed_ms(start),
            message=_message_for(check),
        )
        logger.info(
            f"Agent finished iteration {iteration}: {loop_iteration.status} "
            f"(exit code {check.exit_code}, {loop_iteration.duration_ms} ms)"
        )

        return IterationOutcome(
            iteration=loop_iteration,
            output=output,
            completion_check=check,
            exit_code=check.exit_code if check.exit_code is not None else 1,
        )

    def stop(self) -> bool:
        """Terminate the in-flight agent process, if any.

        The handle is taken and cleared under the lock, so a process is
        signalled at most once however often this is called. The request
        also blocks later spawns until reset() is called.

        Returns:
            True if a process was signalled.
        """
        with self._lock:
            self._stopped = True
            process = self._process
            self._process = None

        if process is None:
            return False

        logger.info("Terminating agent process")
        try:
            process.terminate()
        except OSError as e:
            logger.warning(f"Failed to terminate agent process: {e}")
        return True

    def _clear_handle(self, process: subprocess.Popen) -> None:
        with self._lock:
            if self._process is process:
                self._process = None

    def _error_outcome(
        self,
        iteration: int,
        output: str,
        error: str,
        start: float,
    ) -> IterationOutcome:
        check = CompletionCheckResult(status="error", exit_code=1)
        return IterationOutcome(
            iteration=LoopIteration(
                iteration=iteration,
                status="error",
                duration_ms=self._elapsed_ms(start),
                message=error,
            ),
            output=output,
            completion_check=check,
            exit_code=1,
        )

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)


@dataclass
class ScriptedResponse:
    """Canned agent response for the mock executor."""

    output: str = ""
    exit_code: Optional[int] = 0


class MockIterationExecutor(IterationExecutor):
    """Mock executor that replays scripted responses instead of spawning."""

    def __init__(self, responses: Optional[list[ScriptedResponse]] = None, *args, **kwargs):
        """Initialize mock executor.

        Args:
            responses: Responses returned in order; the last one repeats.
                Defaults to a single successful run with no markers.
        """
        super().__init__(*args, **kwargs)
        self.responses = responses or [ScriptedResponse(output="Mock iteration completed.")]
        self.call_count = 0
        self.prompts: list[str] = []
        self.stop_calls = 0

    def check_installed(self) -> bool:
        """Always return True for mock."""
        return True

    def execute_iteration(
        self,
        prompt: str,
        iteration: int,
        working_directory: Union[str, Path],
    ) -> IterationOutcome:
        """Return the next scripted response as an outcome."""
        response = self.responses[min(self.call_count, len(self.responses) - 1)]
        self.call_count += 1
        self.prompts.append(prompt)

        check = self.parser.check(response.output, response.exit_code)
        return IterationOutcome(
            iteration=LoopIteration(
                iteration=iteration,
                status=check.status or "error",
                duration_ms=0,
                message=_message_for(check),
            ),
            output=response.output,
            completion_check=check,
            exit_code=check.exit_code if check.exit_code is not None else 1,
        )

    def stop(self) -> bool:
        self.stop_calls += 1
        return False
