"""Project-local file locations.

Everything Codchestra writes lives under ``<workspace>/.codchestra/``; the
task list and the optional custom prompt sit at the workspace root so they
are easy to edit by hand.
"""

from pathlib import Path

STATE_DIR = ".codchestra"
STATE_FILE = "state.json"
CONFIG_FILE = "config.toml"
LOGS_DIR = "logs"
TASKS_FILE = "codchestra.tasks.md"
PROMPT_FILE = "CODCHESTRA_PROMPT.md"


def state_dir(workspace: Path) -> Path:
    return workspace / STATE_DIR


def state_path(workspace: Path) -> Path:
    return state_dir(workspace) / STATE_FILE


def config_path(workspace: Path) -> Path:
    return state_dir(workspace) / CONFIG_FILE


def logs_dir(workspace: Path) -> Path:
    return state_dir(workspace) / LOGS_DIR


def tasks_path(workspace: Path) -> Path:
    return workspace / TASKS_FILE


def prompt_path(workspace: Path) -> Path:
    return workspace / PROMPT_FILE
