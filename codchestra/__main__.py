"""CLI entry point for Codchestra.

Usage:
    python -m codchestra init                 # Set up .codchestra/ and templates
    python -m codchestra run                  # Run the loop from scratch
    python -m codchestra run --resume         # Continue a stopped run

Or via the installed command:
    codchestra run --max-loops 20             # Tighter iteration budget
    codchestra run --ai-command "codex"       # Pick the agent CLI explicitly
    codchestra status --json                  # Machine-readable run state
    codchestra monitor                        # Live dashboard in another terminal
    codchestra doctor                         # Check environment and config
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from codchestra._version import get_full_version_string
from codchestra.commands import (
    cmd_doctor,
    cmd_init,
    cmd_monitor,
    cmd_reset,
    cmd_run,
    cmd_status,
    cmd_tasks,
    console,
)

# Load environment variables (agent API keys, etc.)
load_dotenv()


def _add_workspace_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--workspace",
        "-w",
        type=Path,
        default=None,
        help="Workspace directory (defaults to the current directory)",
    )


def _add_json_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--json",
        "-j",
        dest="json_output",
        action="store_true",
        help="Output as JSON",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codchestra",
        description="Codchestra - loop-based orchestration for autonomous AI coding agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  codchestra init                        Create task list, prompt and config
  codchestra run                         Run until done or a limit is hit
  codchestra run --resume                Continue from .codchestra/state.json
  codchestra status                      Show run state and task progress
  codchestra monitor                     Watch a run in progress

Configuration:
  Edit .codchestra/config.toml in your project:
    [loop]
    max_loops = 50
    timeout_minutes = 120

    [agent]
    command = "codex"
""",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="store_true",
        help="Show version and exit",
    )

    subparsers = parser.add_subparsers(dest="command")

    init_parser = subparsers.add_parser("init", help="Initialize Codchestra in a project")
    _add_workspace_argument(init_parser)

    run_parser = subparsers.add_parser(
        "run", help="Run the agent loop until complete or a limit is hit"
    )
    _add_workspace_argument(run_parser)
    run_parser.add_argument(
        "--resume",
        action="store_true",
        help="Continue from the saved run state instead of starting fresh",
    )
    run_parser.add_argument(
        "--max-loops",
        type=int,
        default=None,
        help="Maximum number of agent calls (overrides config)",
    )
    run_parser.add_argument(
        "--timeout-minutes",
        type=int,
        default=None,
        help="Wall-clock limit for the whole run (overrides config)",
    )
    run_parser.add_argument(
        "--ai-command",
        default=None,
        help="Agent command to run, e.g. 'codex' (overrides config)",
    )
    _add_json_argument(run_parser)
    verbosity = run_parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--verbose",
        "-v",
        dest="verbosity",
        action="store_const",
        const="verbose",
        help="Show debug logging",
    )
    verbosity.add_argument(
        "--quiet",
        "-q",
        dest="verbosity",
        action="store_const",
        const="quiet",
        help="Only show errors",
    )

    status_parser = subparsers.add_parser("status", help="Show run status and task progress")
    _add_workspace_argument(status_parser)
    _add_json_argument(status_parser)

    tasks_parser = subparsers.add_parser("tasks", help="List tasks from codchestra.tasks.md")
    _add_workspace_argument(tasks_parser)
    _add_json_argument(tasks_parser)

    reset_parser = subparsers.add_parser("reset", help="Clear run state and session logs")
    _add_workspace_argument(reset_parser)

    monitor_parser = subparsers.add_parser("monitor", help="Show a live monitoring dashboard")
    _add_workspace_argument(monitor_parser)
    monitor_parser.add_argument(
        "--interval",
        type=float,
        default=2.0,
        help="Refresh interval in seconds (default: 2)",
    )
    monitor_parser.add_argument(
        "--once",
        action="store_true",
        help="Render a single frame and exit",
    )

    doctor_parser = subparsers.add_parser("doctor", help="Check environment and config")
    _add_workspace_argument(doctor_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        console.print(get_full_version_string(), highlight=False)
        return 0

    if args.command is None:
        parser.print_help()
        return 0

    workspace = args.workspace.resolve() if args.workspace else Path.cwd()

    if args.command == "init":
        return cmd_init(workspace)

    if args.command == "run":
        return cmd_run(
            workspace,
            resume=args.resume,
            max_loops=args.max_loops,
            timeout_minutes=args.timeout_minutes,
            ai_command=args.ai_command,
            json_output=args.json_output,
            verbosity=args.verbosity,
        )

    if args.command == "status":
        return cmd_status(workspace, json_output=args.json_output)

    if args.command == "tasks":
        return cmd_tasks(workspace, json_output=args.json_output)

    if args.command == "reset":
        return cmd_reset(workspace)

    if args.command == "monitor":
        return cmd_monitor(workspace, interval=args.interval, once=args.once)

    if args.command == "doctor":
        return cmd_doctor(workspace)

    parser.error(f"Unknown command: {args.command}")


if __name__ == "__main__":
    sys.exit(main())
