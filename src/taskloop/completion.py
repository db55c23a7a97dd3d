"""Detection of loop completion markers in agent output.

The agent signals the loop through two tags in its plain-text output:

    <loop-complete>REASON</loop-complete>
    <loop-blocked>REASON</loop-blocked>

Tags are matched case-insensitively and the payload may not contain ``<``.
A complete marker always takes precedence over a blocked marker,
wherever the two appear in the output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional

IterationStatus = Literal["success", "complete", "blocked", "error"]
MarkerKind = Literal["complete", "blocked"]

COMPLETE_PATTERN = re.compile(r"<loop-complete>([^<]*)</loop-complete>", re.IGNORECASE)
BLOCKED_PATTERN = re.compile(r"<loop-blocked>([^<]*)</loop-blocked>", re.IGNORECASE)


@dataclass(frozen=True)
class CompletionMarker:
    """A marker found in agent output."""

    kind: MarkerKind
    reason: str


@dataclass(frozen=True)
class CompletionCheckResult:
    """Outcome of scanning one iteration's output.

    ``status`` and ``exit_code`` are only set by :meth:`CompletionParser.check`,
    which also takes the process exit code into account.
    """

    is_complete: bool = False
    is_blocked: bool = False
    marker: Optional[CompletionMarker] = None
    raw_match: Optional[str] = None
    status: Optional[IterationStatus] = None
    exit_code: Optional[int] = None


class CompletionParser:
    """Classifies agent output using the loop markers."""

    def parse_output(self, output: Optional[str]) -> CompletionCheckResult:
        """Scan output for markers; the first match of each kind wins."""
        if not output:
            return CompletionCheckResult()

        match = COMPLETE_PATTERN.search(output)
        if match:
            return CompletionCheckResult(
                is_complete=True,
                marker=CompletionMarker(kind="complete", reason=match.group(1).strip()),
                raw_match=match.group(0),
            )

        match = BLOCKED_PATTERN.search(output)
        if match:
            return CompletionCheckResult(
                is_blocked=True,
                marker=CompletionMarker(kind="blocked", reason=match.group(1).strip()),
                raw_match=match.group(0),
            )

        return CompletionCheckResult()

    def check(self, output: Optional[str], exit_code: Optional[int]) -> CompletionCheckResult:
        """Classify an iteration from its output and exit code.

        A marker overrides the exit code. Without a marker, exit code 0 is a
        plain success and anything else is an error; a missing exit code is
        reported as 1.
        """
        parsed = self.parse_output(output)
        normalized = 1 if exit_code is None else exit_code

        if parsed.is_complete:
            status: IterationStatus = "complete"
        elif parsed.is_blocked:
            status = "blocked"
        elif normalized == 0:
            status = "success"
        else:
            status = "error"

        return CompletionCheckResult(
            is_complete=parsed.is_complete,
            is_blocked=parsed.is_blocked,
            marker=parsed.marker,
            raw_match=parsed.raw_match,
            status=status,
            exit_code=normalized,
        )

    def extract_completion_reason(self, marker: CompletionMarker) -> str:
        """Return the reason carried by a marker."""
        return marker.reason
