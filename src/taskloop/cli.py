"""CLI entrypoint for taskloop.

The ``loop`` command runs the agent repeatedly against a project until the
agent reports that all tasks are complete, reports that it is blocked, or
the iteration budget runs out. Progress is written to
``.taskmaster/loop-progress.txt`` in the project by default.
"""

from __future__ import annotations

import json
import logging
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import LoopConfigError, Settings, build_config
from .executor import LoopIteration
from .orchestrator import LoopOrchestrator, LoopResult
from .presets import PresetError, get_preset_descriptions, is_file_path, is_valid_preset

# Initialize Typer app
app = typer.Typer(
    name="taskloop",
    help="Run a coding agent in a loop until the task list is done.",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)

STATUS_LABELS = {
    "all_complete": "[green]All tasks complete[/green]",
    "max_iterations": "[yellow]Max iterations reached[/yellow]",
    "blocked": "[red]Blocked[/red]",
    "error": "[red]Error[/red]",
}

ITERATION_STYLES = {
    "success": "green",
    "complete": "green",
    "blocked": "red",
    "error": "red",
}


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging with Rich handler.

    Args:
        verbose: If True, set DEBUG level; otherwise INFO.
        quiet: If True, only warnings and errors are logged.
    """
    if quiet:
        level = logging.WARNING
    else:
        level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"taskloop version {__version__}")
        raise typer.Exit()


def format_status(status: str) -> str:
    """Return a colored label for a final loop status."""
    return STATUS_LABELS.get(status, status)


def display_result(result: LoopResult) -> None:
    """Print the loop summary."""
    console.print()
    console.print(Panel.fit("[bold cyan]Loop Complete[/bold cyan]"))
    console.print(f"[dim]Total iterations:[/dim] {result.total_iterations}")
    console.print(f"[dim]Tasks completed:[/dim] {result.tasks_completed}")
    console.print(f"[dim]Final status:[/dim] {format_status(result.final_status)}")

    if result.iterations:
        table = Table(show_header=True, header_style="bold", box=None)
        table.add_column("#", style="dim", width=3)
        table.add_column("Status", width=10)
        table.add_column("Duration", justify="right", width=10)
        table.add_column("Message")
        for it in result.iterations:
            style = ITERATION_STYLES.get(it.status, "white")
            duration = f"{it.duration_ms / 1000:.1f}s" if it.duration_ms is not None else "-"
            table.add_row(
                str(it.iteration),
                f"[{style}]{it.status}[/{style}]",
                duration,
                it.message or "",
            )
        console.print()
        console.print(table)


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Run a coding agent in a loop until the task list is done."""
    pass


@app.command()
def loop(
    iterations: Optional[int] = typer.Option(
        None,
        "--iterations",
        "-n",
        min=1,
        help="Maximum number of iterations (default: 10).",
    ),
    prompt: Optional[str] = typer.Option(
        None,
        "--prompt",
        "-p",
        help="Preset name (default, test-coverage, linting, duplication, entropy) "
             "or path to a custom prompt file.",
    ),
    tag: Optional[str] = typer.Option(
        None,
        "--tag",
        "-t",
        help="Only work on tasks with this tag.",
    ),
    status: Optional[str] = typer.Option(
        None,
        "--status",
        help="Task status filter (default: pending).",
    ),
    sleep: Optional[float] = typer.Option(
        None,
        "--sleep",
        min=0,
        help="Seconds to wait between iterations (default: 5).",
    ),
    on_complete: Optional[str] = typer.Option(
        None,
        "--on-complete",
        help="Shell command to run when all tasks are complete.",
    ),
    progress_file: Optional[Path] = typer.Option(
        None,
        "--progress-file",
        help="Progress log path, relative to the project (default: .taskmaster/loop-progress.txt).",
    ),
    project: Optional[Path] = typer.Option(
        None,
        "--project",
        help="Project root the agent runs in (default: current directory).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the loop result as JSON.",
    ),
    mock: bool = typer.Option(
        False,
        "--mock",
        "-m",
        help="Run in mock mode (no agent process is started).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose output.",
    ),
) -> None:
    """Run the agent loop on a project.

    Each iteration hands the agent a prompt built from the selected preset.
    The loop stops when the agent prints <loop-complete>...</loop-complete>
    or <loop-blocked>...</loop-blocked>, or when the iteration budget is used.

    Examples:
        # Work through pending tasks, at most 10 iterations:
        taskloop loop

        # Improve test coverage for 20 iterations without pauses:
        taskloop loop --prompt test-coverage -n 20 --sleep 0

        # Use a custom prompt file and print the result as JSON:
        taskloop loop --prompt ./prompts/migrate.md --json
    """
    setup_logging(verbose, quiet=json_output)
    logger = logging.getLogger(__name__)

    project_root = (project or Path.cwd()).resolve()
    settings = Settings.from_env(project_root)
    if mock:
        settings.mock_mode = True

    errors = settings.validate()
    if errors:
        err_console.print("[red]Configuration errors:[/red]")
        for error in errors:
            err_console.print(f"  - {error}")
        raise typer.Exit(1)

    if not verbose and not json_output:
        logging.getLogger().setLevel(settings.log_level.upper())

    config = build_config(
        project_root,
        defaults=settings.loop,
        iterations=iterations,
        prompt=prompt,
        progress_file=progress_file,
        sleep_seconds=sleep,
        tag=tag,
        status=status,
        on_complete=on_complete,
    )

    if not is_valid_preset(config.prompt) and not is_file_path(config.prompt):
        logger.warning(
            f"'{config.prompt}' is not a preset name; treating it as a prompt file path"
        )

    def show_iteration_start(index: int, budget: int) -> None:
        console.print(f"\n[bold]Iteration {index}/{budget}[/bold]")

    def show_iteration_end(iteration: LoopIteration) -> None:
        style = ITERATION_STYLES.get(iteration.status, "white")
        detail = f" - {iteration.message}" if iteration.message else ""
        console.print(f"  [{style}]{iteration.status}[/{style}]{detail}")

    orchestrator = LoopOrchestrator.from_settings(
        settings,
        on_iteration_start=None if json_output else show_iteration_start,
        on_iteration_end=None if json_output else show_iteration_end,
    )

    if not settings.mock_mode and not orchestrator.executor.check_installed():
        err_console.print(
            f"[red]Error:[/red] Agent command not available: {settings.agent_command}"
        )
        err_console.print("[dim]Hint: set TASKLOOP_AGENT_COMMAND or use --mock[/dim]")
        raise typer.Exit(1)

    if not json_output:
        console.print(f"\n[bold]Starting loop{' (mock)' if settings.mock_mode else ''}[/bold]")
        console.print(f"[dim]Project:[/dim] {project_root}")
        console.print(f"[dim]Prompt:[/dim] {config.prompt}")
        console.print(f"[dim]Max iterations:[/dim] {config.iterations}")
        console.print(f"[dim]Sleep:[/dim] {config.sleep_seconds}s")
        if config.tag:
            console.print(f"[dim]Tag:[/dim] {config.tag}")
        console.print(f"[dim]Progress file:[/dim] {config.progress_file}")

    def handle_interrupt(signum, frame) -> None:
        logger.warning("Interrupted; stopping after the current iteration")
        orchestrator.stop()

    previous_handler = signal.signal(signal.SIGINT, handle_interrupt)
    try:
        result = orchestrator.run(config)
    except (PresetError, LoopConfigError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        display_result(result)


@app.command()
def presets(
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the presets as JSON.",
    ),
) -> None:
    """List the built-in loop presets."""
    descriptions = get_preset_descriptions()

    if json_output:
        typer.echo(json.dumps({"presets": descriptions, "count": len(descriptions)}, indent=2))
        return

    table = Table(title="Loop Presets")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    for preset in descriptions:
        table.add_row(preset["name"], preset["description"])
    console.print(table)
