"""taskloop - run a coding agent in a loop until the task list is done."""

from __future__ import annotations

__version__ = "0.1.0"

from .completion import CompletionCheckResult, CompletionMarker, CompletionParser
from .config import LoopConfig, LoopConfigError, Settings, build_config
from .executor import IterationExecutor, IterationOutcome, LoopIteration, MockIterationExecutor
from .orchestrator import LoopOrchestrator, LoopResult
from .presets import PRESET_NAMES, PresetError, PresetErrorCode, resolve_prompt
from .progress_log import ProgressEntry, ProgressLog

__all__ = [
    "__version__",
    "CompletionCheckResult",
    "CompletionMarker",
    "CompletionParser",
    "IterationExecutor",
    "IterationOutcome",
    "LoopConfig",
    "LoopConfigError",
    "LoopIteration",
    "LoopOrchestrator",
    "LoopResult",
    "MockIterationExecutor",
    "PRESET_NAMES",
    "PresetError",
    "PresetErrorCode",
    "ProgressEntry",
    "ProgressLog",
    "Settings",
    "build_config",
    "resolve_prompt",
]
