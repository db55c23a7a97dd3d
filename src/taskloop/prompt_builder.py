"""Compose the prompt handed to the agent on each iteration."""

from __future__ import annotations

from .config import TASKS_FILE_REFERENCE, LoopConfig


def build_context_header(config: LoopConfig, iteration: int) -> str:
    """Build the generated context block that precedes the preset body."""
    lines = [
        f"Loop Iteration {iteration} of {config.iterations}",
        "",
        "## Context",
        f"@{config.progress_file}",
        f"@{TASKS_FILE_REFERENCE}",
    ]
    if config.tag:
        lines.append(f"Tag filter: {config.tag}")
    return "\n".join(lines)


def build_prompt(config: LoopConfig, preset_text: str, iteration: int) -> str:
    """Return the full prompt: context header, blank line, preset body.

    Args:
        config: The run configuration.
        preset_text: Resolved preset or custom prompt text.
        iteration: 1-based iteration index.
    """
    return f"{build_context_header(config, iteration)}\n\n{preset_text}"
