"""Main entry point for running taskloop as a module.

Usage:
    python -m taskloop --help
    python -m taskloop loop --prompt default -n 5
    python -m taskloop presets
"""

from __future__ import annotations

from .cli import app

if __name__ == "__main__":
    app()
