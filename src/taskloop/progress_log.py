"""Progress log for loop runs.

The progress log is a plain-text audit trail: a header written when a run
starts, then one line per iteration. The engine never reads it back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

PROGRESS_TITLE = "# Task Master Loop Progress"
SEPARATOR = "---"


def now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ProgressEntry:
    """One iteration's line in the progress log."""

    iteration: int
    note: str
    task_id: Optional[str] = None
    timestamp: str = field(default_factory=now_iso)

    def format(self) -> str:
        """Render the entry as a single log line (without trailing newline)."""
        task = f" (Task {self.task_id})" if self.task_id else ""
        return f"[{self.timestamp}] Iteration {self.iteration}{task}: {self.note}"


class ProgressLog:
    """Writes the progress log file for a loop run."""

    def initialize(
        self,
        path: Union[str, Path],
        preset_name: str,
        iteration_budget: int,
        tag: Optional[str] = None,
    ) -> None:
        """Create (or replace) the progress log with a run header."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        lines = [
            PROGRESS_TITLE,
            f"Started: {now_iso()}",
            f"Preset: {preset_name}",
            f"Max Iterations: {iteration_budget}",
        ]
        if tag:
            lines.append(f"Tag: {tag}")
        lines.extend(["", SEPARATOR])

        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.info(f"Progress log initialized: {path}")

    def append(self, path: Union[str, Path], entry: ProgressEntry) -> None:
        """Append one entry line. The note is written verbatim."""
        path = Path(path)
        with open(path, "a", encoding="utf-8", newline="") as f:
            f.write(entry.format() + "\n")
        logger.debug(f"Progress entry appended for iteration {entry.iteration}")
