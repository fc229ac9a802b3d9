"""CLI command implementations.

Each function implements a codchestra subcommand (init, run, status, tasks,
reset, monitor, doctor) and returns an exit code.
"""

import contextlib
import json
import logging
import shlex
import shutil
import time
from pathlib import Path

from rich.console import Console, Group
from rich.live import Live
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from codchestra.config import CodchestraConfig, find_config_dir, load_config, save_config
from codchestra.errors import CodchestraError, WorkspaceNotFoundError
from codchestra.loop.detectors import activity_score
from codchestra.loop.hooks import HookRegistry
from codchestra.loop.invoker import AgentInvoker, resolve_ai_command
from codchestra.loop.runner import ExitReason, LoopOptions, LoopResult, LoopRunner
from codchestra.loop.state import RunStateStore
from codchestra.session_log import LOGGER_NAME, session_log
from codchestra.tasks.checklist import TaskStatus, count_by_status, get_tasks
from codchestra.utils.git import diff_summary, find_git_root, is_git_repo
from codchestra.utils.paths import (
    PROMPT_FILE,
    TASKS_FILE,
    config_path,
    logs_dir,
    prompt_path,
    state_dir,
    tasks_path,
)

console = Console()
# Logs and spinners go to stderr so --json output on stdout stays parseable
err_console = Console(stderr=True)

LOG_LEVELS = {
    "quiet": logging.ERROR,
    "normal": logging.INFO,
    "verbose": logging.DEBUG,
}

DEFAULT_TASKS = """\
# Codchestra tasks
# Use [ ], [-], [x] for pending, in-progress, done

[ ] Add your first task here
"""

DEFAULT_PROMPT_TEMPLATE = """\
You are an autonomous software development agent working under Codchestra.

Keep improving the project until every task in codchestra.tasks.md is complete.

Rules:
1. Work on the highest priority unfinished task.
2. Make real file changes; do not pretend work is done.
3. Mark tasks [-] when you start them and [x] when they are finished.
4. Prefer small safe changes over large risky ones.
5. If you are stuck, try a different approach instead of repeating yourself.

At the end of every response you MUST output:

STATUS:
progress: <0-100 estimate>
tasks_completed: <number>
tasks_total: <number>
EXIT_SIGNAL: <true or false>
summary: <one line describing what you did>

EXIT_SIGNAL may only be true when all tasks are complete.
"""

TASK_ICONS = {
    TaskStatus.DONE: "[green]\\[x][/]",
    TaskStatus.IN_PROGRESS: "[yellow]\\[-][/]",
    TaskStatus.PENDING: "\\[ ]",
}


def setup_logging(verbosity: str = "normal") -> logging.Logger:
    """Configure the codchestra logger with a Rich handler.

    Only the ``codchestra`` logger is touched; handlers from a previous call
    are replaced so repeated CLI invocations in one process do not duplicate
    output.

    Args:
        verbosity: quiet (errors only), normal (info) or verbose (debug)

    Returns:
        The configured logger, passed on to the loop and the invoker
    """
    level = LOG_LEVELS.get(verbosity, logging.INFO)
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(console=err_console, rich_tracebacks=True, show_path=False)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def print_json(data: dict) -> None:
    """Print JSON to stdout without Rich markup, highlighting or wrapping."""
    console.print(json.dumps(data, indent=2), markup=False, highlight=False, soft_wrap=True)


def print_remediation(error: CodchestraError) -> None:
    err_console.print(f"[red]Error:[/] {escape(str(error))}")
    if error.remediation:
        err_console.print(f"[dim]{escape(error.remediation)}[/]")


def _is_initialized(workspace: Path) -> bool:
    return state_dir(workspace).exists()


def cmd_init(workspace: Path) -> int:
    """Initialize Codchestra in a workspace.

    Creates the state directory, a task list template, a prompt template and a
    default config. Existing files are left untouched.

    Returns:
        Exit code (0 for success)
    """
    console.print(Panel("[bold blue]codchestra init[/]", expand=False))

    directory = state_dir(workspace)
    if not directory.exists():
        directory.mkdir(parents=True)
        console.print(f"[green]✓[/] Created {directory}")

    for path, content, name in (
        (tasks_path(workspace), DEFAULT_TASKS, TASKS_FILE),
        (prompt_path(workspace), DEFAULT_PROMPT_TEMPLATE, PROMPT_FILE),
    ):
        if path.exists():
            console.print(f"[yellow]![/] {name} already exists")
        else:
            path.write_text(content, encoding="utf-8")
            console.print(f"[green]✓[/] Created {path}")

    if not config_path(workspace).exists():
        path = save_config(workspace, CodchestraConfig())
        console.print(f"[green]✓[/] Created {path}")

    console.print("[green]✓[/] Codchestra initialized.")
    return 0


def _apply_overrides(
    config: CodchestraConfig,
    *,
    max_loops: int | None,
    timeout_minutes: int | None,
    ai_command: str | None,
) -> None:
    if max_loops is not None:
        config.loop.max_loops = max_loops
    if timeout_minutes is not None:
        config.loop.timeout_minutes = timeout_minutes
    if ai_command:
        config.agent.command = ai_command


def print_run_result(result: LoopResult) -> None:
    """Print the outcome of a run."""
    console.print()
    if result.ok:
        console.print(f"[bold green]✓ Complete after {result.loop} loop(s).[/]")
    else:
        console.print(
            f"[yellow]Stopped:[/] {result.exit_reason.value} (loop {result.loop})"
        )
    if result.last_status and result.last_status.summary:
        console.print(f"[dim]{escape(result.last_status.summary)}[/]")


def cmd_run(
    workspace: Path,
    *,
    resume: bool = False,
    max_loops: int | None = None,
    timeout_minutes: int | None = None,
    ai_command: str | None = None,
    json_output: bool = False,
    verbosity: str | None = None,
) -> int:
    """Run the loop until the work is done or a limit is hit.

    Args:
        workspace: Workspace directory the agent works in
        resume: Continue from the saved run state instead of starting fresh
        max_loops: Override [loop] max_loops
        timeout_minutes: Override [loop] timeout_minutes
        ai_command: Override [agent] command
        json_output: Print the result as JSON
        verbosity: Override [output] verbosity

    Returns:
        Exit code (0 for every normal stop, 1 for errors)
    """
    if not workspace.is_dir():
        print_remediation(WorkspaceNotFoundError(str(workspace)))
        return 1

    config = load_config(workspace)
    _apply_overrides(
        config, max_loops=max_loops, timeout_minutes=timeout_minutes, ai_command=ai_command
    )
    use_json = json_output or config.output.format == "json"
    logger = setup_logging(verbosity or config.output.verbosity)

    store = RunStateStore(workspace)
    if not resume:
        store.clear()

    try:
        command = resolve_ai_command(config.agent.command)
        invoker = AgentInvoker(
            command,
            config.agent.args or None,
            call_timeout_seconds=config.agent.call_timeout_minutes * 60,
            logger=logger,
        )
    except CodchestraError as e:
        print_remediation(e)
        return 1

    runner = LoopRunner(
        workspace,
        invoker,
        LoopOptions.from_config(config),
        store=store,
        hooks=HookRegistry.from_entry_points(logger=logger),
        logger=logger,
    )

    if not use_json:
        console.print(Panel("[bold blue]Codchestra - Run[/]", expand=False))
        console.print(f"[dim]Workspace: {workspace}[/]")
        console.print(f"[dim]AI command: {escape(shlex.join(invoker.argv))}[/]")
        console.print(
            f"[dim]Limits: {config.loop.max_loops} loops, "
            f"{config.loop.timeout_minutes} minutes[/]"
        )
        if resume:
            console.print("[dim]Resuming from saved state[/]")
        console.print()

    spinner = (
        contextlib.nullcontext()
        if use_json
        else err_console.status("[bold cyan]Running loop...[/]")
    )
    try:
        with session_log(workspace) as log_file, spinner:
            logger.debug("Session log: %s", log_file)
            result = runner.run()
    except CodchestraError as e:
        print_remediation(e)
        return 1

    if use_json:
        print_json(result.to_dict())
    else:
        print_run_result(result)

    return 1 if result.exit_reason is ExitReason.ERROR else 0


def cmd_status(workspace: Path, *, json_output: bool = False) -> int:
    """Show run state and task progress.

    Returns:
        Exit code (0 for success)
    """
    config = load_config(workspace)
    use_json = json_output or config.output.format == "json"
    state = RunStateStore(workspace).load()
    tasks = get_tasks(workspace)
    counts = count_by_status(tasks)
    initialized = _is_initialized(workspace)

    if use_json:
        print_json(
            {
                "state": (
                    {
                        "loop": state.loop,
                        "stagnationCount": state.stagnation_count,
                        "lastStatus": state.last_status.to_dict() if state.last_status else None,
                        "startedAt": state.started_at,
                    }
                    if state
                    else None
                ),
                "tasks": {"total": counts.total, **counts.to_dict()},
                "initialized": initialized,
            }
        )
        return 0

    if state is None and not tasks and not initialized:
        console.print("[yellow]Not initialized. Run: codchestra init[/]")
        return 0

    console.print(Panel("[bold blue]codchestra status[/]", expand=False))

    if state:
        table = Table(title="Run State")
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        table.add_row("Loop", str(state.loop))
        table.add_row("Stagnation count", str(state.stagnation_count))
        table.add_row("Started", state.started_at)
        if state.last_status:
            last = state.last_status
            table.add_row("Last progress", f"{last.progress}%")
            table.add_row("Tasks (reported)", f"{last.tasks_completed}/{last.tasks_total}")
            table.add_row("Summary", escape(last.summary))
        console.print(table)
        console.print()

    console.print("[bold]Tasks[/]")
    console.print(f"  Total: {counts.total}")
    console.print(
        f"  Pending: {counts.pending}  In progress: {counts.in_progress}  Done: {counts.done}"
    )
    return 0


def cmd_tasks(workspace: Path, *, json_output: bool = False) -> int:
    """List tasks from the task list.

    Returns:
        Exit code (0 for success)
    """
    config = load_config(workspace)
    use_json = json_output or config.output.format == "json"
    path = tasks_path(workspace)

    if not path.exists():
        if use_json:
            print_json({"tasks": [], "file": str(path)})
        else:
            console.print(f"[yellow]No {TASKS_FILE}. Run: codchestra init[/]")
        return 0

    tasks = get_tasks(workspace)
    if use_json:
        print_json({"tasks": [task.to_dict() for task in tasks], "file": str(path)})
        return 0

    console.print("[bold]Tasks[/]")
    console.print()
    for task in tasks:
        console.print(f"  {TASK_ICONS[task.status]} {escape(task.title)}")
    return 0


def cmd_reset(workspace: Path) -> int:
    """Clear run state and session logs. Config and task files are kept.

    Returns:
        Exit code (0 for success)
    """
    store = RunStateStore(workspace)
    logs = logs_dir(workspace)
    if not store.state_file.exists() and not logs.exists():
        console.print("[dim]No state to reset.[/]")
        return 0

    store.clear()
    try:
        if logs.exists():
            shutil.rmtree(logs)
    except OSError as e:
        console.print(f"[red]Error:[/] Failed to remove {logs}: {e}")
        return 1

    console.print("[green]✓[/] State cleared.")
    return 0


def render_dashboard(workspace: Path) -> Panel:
    """Build the monitor view from the files on disk."""
    state = RunStateStore(workspace).load()
    tasks = get_tasks(workspace)
    counts = count_by_status(tasks)
    git = diff_summary(workspace)

    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column()
    table.add_row("Loop", str(state.loop if state else 0))
    table.add_row("Stagnation", str(state.stagnation_count if state else 0))
    table.add_row(
        "Task progress",
        f"{counts.done}/{counts.total} done "
        f"({counts.pending} pending, {counts.in_progress} in progress)",
    )
    table.add_row("Activity score", str(activity_score(git)))
    table.add_row(
        "Git",
        f"{git.files_changed} files, +{git.insertions} -{git.deletions}" if git else "-",
    )

    if state and state.last_status:
        last = Text(
            f"Last: {state.last_status.progress}% - {state.last_status.summary}", style="dim"
        )
    else:
        last = Text("No last status", style="dim")

    return Panel(Group(table, Text(), last), title="Codchestra Monitor", expand=False)


def cmd_monitor(workspace: Path, *, interval: float = 2.0, once: bool = False) -> int:
    """Show a live dashboard of a run in progress. Ctrl+C exits.

    Args:
        workspace: Workspace of the run being watched
        interval: Seconds between refreshes
        once: Render a single frame and exit

    Returns:
        Exit code (0 for success, 1 if not initialized)
    """
    if not _is_initialized(workspace):
        console.print("[yellow]Not initialized. Run: codchestra init[/]")
        return 1

    if once:
        console.print(render_dashboard(workspace))
        return 0

    try:
        with Live(render_dashboard(workspace), console=console, auto_refresh=False) as live:
            while True:
                time.sleep(interval)
                live.update(render_dashboard(workspace), refresh=True)
    except KeyboardInterrupt:
        pass
    return 0


def cmd_doctor(workspace: Path) -> int:
    """Check environment and config.

    Returns:
        Exit code (0 if everything required is present, 1 otherwise)
    """
    console.print(Panel("[bold blue]Codchestra Doctor[/]", expand=False))

    config_dir = find_config_dir(workspace)
    config = load_config(config_dir)
    ai_command = resolve_ai_command(config.agent.command)
    ok = True

    if config_dir.resolve() == workspace.resolve():
        console.print(f"[green]✓[/] Config dir: {config_dir}")
    else:
        console.print(f"[yellow]?[/] Using config from: {config_dir}")

    try:
        argv = shlex.split(ai_command)
    except ValueError as e:
        console.print(f"[red]✗[/] AI command cannot be parsed: {escape(ai_command)} ({e})")
        argv = []
        ok = False
    if argv and shutil.which(argv[0]):
        console.print(f"[green]✓[/] AI command: {ai_command}")
    elif argv:
        console.print(f"[yellow]?[/] AI command not on PATH: {ai_command}")

    console.print(
        f"[green]✓[/] max_loops: {config.loop.max_loops}, "
        f"timeout_minutes: {config.loop.timeout_minutes}"
    )

    directory = state_dir(workspace)
    if directory.exists():
        console.print(f"[green]✓[/] State dir exists: {directory}")
    else:
        console.print("[red]✗[/] State dir missing. Run: codchestra init")
        ok = False

    if tasks_path(workspace).exists():
        console.print(f"[green]✓[/] Tasks file: {tasks_path(workspace)}")
    else:
        console.print(f"[red]✗[/] Tasks file missing: {tasks_path(workspace)}")
        ok = False

    if prompt_path(workspace).exists():
        console.print(f"[green]✓[/] Prompt file: {prompt_path(workspace)}")
    else:
        console.print(f"[yellow]?[/] Prompt file missing (optional): {prompt_path(workspace)}")

    if is_git_repo(workspace):
        console.print(f"[green]✓[/] Git repo detected: {find_git_root(workspace)}")
    else:
        console.print("[yellow]?[/] Not a git repo (git diff summary will be empty)")

    return 0 if ok else 1
