"""Built-in loop presets and custom prompt resolution.

A prompt selector is a built-in preset only when it matches one of
``PRESET_NAMES`` exactly (case-sensitive). Every other string is read as a
UTF-8 file path and returned verbatim.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Literal, Union

logger = logging.getLogger(__name__)


PresetName = Literal["default", "test-coverage", "linting", "duplication", "entropy"]

PRESET_NAMES: tuple[PresetName, ...] = (
    "default",
    "test-coverage",
    "linting",
    "duplication",
    "entropy",
)

PROMPT_FILE_EXTENSIONS = (".md", ".txt", ".markdown")


class PresetErrorCode(str, Enum):
    """Reasons a prompt selector could not be resolved."""

    PRESET_NOT_FOUND = "PRESET_NOT_FOUND"
    CUSTOM_PROMPT_NOT_FOUND = "CUSTOM_PROMPT_NOT_FOUND"
    EMPTY_PROMPT_CONTENT = "EMPTY_PROMPT_CONTENT"
    INVALID_PRESET = "INVALID_PRESET"


class PresetError(Exception):
    """Raised when a preset or custom prompt cannot be resolved."""

    def __init__(self, code: PresetErrorCode, message: str):
        self.code = code
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)


DEFAULT_PRESET = """# Task Master Loop - Default

You are working through the task list one task at a time. Each run of this
prompt is a single loop iteration with a fresh context.

## Files Available

- @.taskmaster/tasks/tasks.json - the task list with statuses and dependencies
- @.taskmaster/loop-progress.txt - notes left by previous iterations

## Process

1. Read the progress file to learn what earlier iterations did.
2. Pick the next task: the highest priority `pending` task whose dependencies are all `done`.
3. Mark the task `in-progress`.
4. Implement the task, following the existing conventions of the codebase.
5. Run the tests and type checks relevant to your change and fix any failures.
6. Mark the task `done` and commit your work with a message referencing the task id.
7. Append a short note to the progress file describing what you did.

## Important

- Complete ONLY ONE task per iteration, then stop.
- Do not start a second task even if time remains.
- Keep your changes focused on the selected task.

## Completion

If every task in the task list is `done` or `cancelled`, output:
<loop-complete>ALL_TASKS_DONE</loop-complete>

If you cannot make progress (missing credentials, failing environment,
unclear requirements), explain the problem and output:
<loop-blocked>REASON</loop-blocked>
"""

TEST_COVERAGE_PRESET = """# Task Master Loop - Test Coverage

Each iteration adds meaningful tests to the least covered area of the code.

## Files Available

- @.taskmaster/loop-progress.txt - coverage notes from previous iterations
- @./ - the project source tree

## Process

1. Read the progress file to see which modules were already covered.
2. Run the coverage tool for the project and find the file with the lowest coverage.
3. Write one test for the most important untested behavior in that file.
4. Run the test suite and make sure the new test passes.
5. Commit the test.
6. Append the file name and new coverage figure to the progress file.

## Important

- Write only one test per iteration.
- Test behavior, not implementation details.
- Never change production code just to make it easier to test.

## Completion

When overall coverage reaches the project's target, output:
<loop-complete>COVERAGE_TARGET</loop-complete>
"""

LINTING_PRESET = """# Task Master Loop - Linting

Each iteration removes lint and type-check errors from one place.

## Files Available

- @.taskmaster/loop-progress.txt - fixes made by previous iterations
- @./ - the project source tree

## Process

1. Read the progress file to see what was already fixed.
2. Run the project's linter and type checker.
3. Choose one error, or one group of identical errors in a single file.
4. Apply one fix that resolves it without changing behavior.
5. Re-run the linter and the tests to confirm nothing else broke.
6. Commit the fix and append a note to the progress file.

## Important

- Make only one fix per iteration.
- Do not silence errors with ignore comments unless the rule is wrong for that line.

## Completion

When the linter and type checker report zero errors, output:
<loop-complete>ZERO_ERRORS</loop-complete>
"""

DUPLICATION_PRESET = """# Task Master Loop - Duplication

Each iteration removes one instance of duplicated code.

## Files Available

- @.taskmaster/loop-progress.txt - refactors made by previous iterations
- @./ - the project source tree

## Process

1. Read the progress file to see which duplicates were already handled.
2. Run a duplicate-code detector over the source tree.
3. Pick the largest remaining clone that can be shared safely.
4. Extract it into one refactor: a shared function, class, or module.
5. Run the tests to confirm behavior is unchanged.
6. Commit the refactor and append a note to the progress file.

## Important

- Perform only one refactor per iteration.
- Leave code alone when the similarity is accidental.

## Completion

When the duplication report is below the project's threshold, output:
<loop-complete>LOW_DUPLICATION</loop-complete>
"""

ENTROPY_PRESET = """# Task Master Loop - Entropy

Each iteration reduces code entropy: dead code, stale comments, confusing
names, inconsistent patterns.

## Files Available

- @.taskmaster/loop-progress.txt - cleanups made by previous iterations
- @./ - the project source tree

## Process

1. Read the progress file to see which areas were already cleaned.
2. Scan the codebase for the most confusing or inconsistent area.
3. Make one cleanup: remove dead code, rename, or align with the prevailing pattern.
4. Run the tests to confirm nothing changed in behavior.
5. Commit the cleanup and append a note to the progress file.

## Important

- Do only one cleanup per iteration.
- Prefer deleting code to adding it.

## Completion

When you cannot find any meaningful cleanup left, output:
<loop-complete>LOW_ENTROPY</loop-complete>
"""

PRESET_TEMPLATES: dict[str, str] = {
    "default": DEFAULT_PRESET,
    "test-coverage": TEST_COVERAGE_PRESET,
    "linting": LINTING_PRESET,
    "duplication": DUPLICATION_PRESET,
    "entropy": ENTROPY_PRESET,
}

PRESET_DESCRIPTIONS: dict[str, str] = {
    "default": "Work through pending tasks one at a time until all are done.",
    "test-coverage": "Add one meaningful test per iteration until coverage reaches the target.",
    "linting": "Fix one lint or type error per iteration until none remain.",
    "duplication": "Refactor one duplicated block per iteration until duplication is low.",
    "entropy": "Clean up one confusing or dead piece of code per iteration.",
}


def is_valid_preset(name: str) -> bool:
    """Return True if ``name`` is exactly one of the built-in preset names."""
    return name in PRESET_NAMES


def get_preset_path(preset: str) -> str:
    """Return the file name a preset is exported under (``<name>.md``)."""
    return f"{preset}.md"


def get_preset_descriptions() -> list[dict[str, str]]:
    """Return name/description pairs for every built-in preset, in order."""
    return [{"name": name, "description": PRESET_DESCRIPTIONS[name]} for name in PRESET_NAMES]


_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:[\\/]")


def is_file_path(value: str) -> bool:
    """Heuristically decide whether a selector looks like a file path.

    Used for user feedback only; resolution itself treats every non-preset
    string as a path.
    """
    if not value:
        return False
    if "/" in value or "\\" in value:
        return True
    if _WINDOWS_DRIVE.match(value):
        return True
    return value.lower().endswith(PROMPT_FILE_EXTENSIONS)


def _ensure_content(content: str, source: str) -> str:
    if not content or not content.strip():
        raise PresetError(
            PresetErrorCode.EMPTY_PROMPT_CONTENT,
            f"Prompt content is empty: {source}",
        )
    return content


def load_preset(preset: str) -> str:
    """Load the template text of a built-in preset.

    Raises:
        PresetError: PRESET_NOT_FOUND for unknown names, EMPTY_PROMPT_CONTENT
            if the template is blank.
    """
    if not is_valid_preset(preset):
        raise PresetError(
            PresetErrorCode.PRESET_NOT_FOUND,
            f"Preset '{preset}' not found. Available presets: {', '.join(PRESET_NAMES)}",
        )
    return _ensure_content(PRESET_TEMPLATES[preset], f"preset '{preset}'")


def load_custom_prompt(file_path: Union[str, Path]) -> str:
    """Read a custom prompt file verbatim.

    Raises:
        PresetError: CUSTOM_PROMPT_NOT_FOUND if the file cannot be read,
            EMPTY_PROMPT_CONTENT if it is blank.
    """
    try:
        content = Path(file_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PresetError(
            PresetErrorCode.CUSTOM_PROMPT_NOT_FOUND,
            f"Custom prompt file not found or unreadable: {file_path} ({e})",
        ) from e
    return _ensure_content(content, str(file_path))


def resolve_prompt(selector: str) -> str:
    """Resolve a preset name or file path to prompt text."""
    if is_valid_preset(selector):
        logger.debug(f"Resolving built-in preset '{selector}'")
        return load_preset(selector)

    logger.debug(f"Resolving custom prompt file '{selector}'")
    return load_custom_prompt(selector)
