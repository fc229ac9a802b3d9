"""Git helpers: working-tree diff statistics and repository detection."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# " 3 files changed, 10 insertions(+), 2 deletions(-)"
_FILES_RE = re.compile(r"(\d+)\s+files?\s+changed")
_INSERTIONS_RE = re.compile(r"(\d+)\s+insertions?\(\+\)")
_DELETIONS_RE = re.compile(r"(\d+)\s+deletions?\(-\)")


@dataclass
class DiffSummary:
    """Point-in-time statistics of uncommitted changes."""

    files_changed: int
    insertions: int
    deletions: int
    raw_text: str


def run_git(args: list[str], cwd: Path, timeout: int = 30) -> tuple[bool, str]:
    """Run a git command and return (success, output).

    Args:
        args: Command arguments (without 'git' prefix)
        cwd: Directory to run in
        timeout: Seconds before giving up

    Returns:
        Tuple of (success, stdout_or_error)
    """
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        if result.returncode == 0:
            return True, result.stdout
        return False, result.stderr.strip()
    except subprocess.TimeoutExpired:
        return False, "Command timed out"
    except (FileNotFoundError, NotADirectoryError) as e:
        return False, str(e)


def parse_diff_stat(stat_output: str) -> DiffSummary:
    """Parse `git diff --stat` output into a DiffSummary.

    Only the trailing summary line is used for the counts; per-file lines are
    kept verbatim for display.
    """
    text = stat_output.strip("\n")
    summary_line = text.splitlines()[-1] if text else ""

    def _count(pattern: re.Pattern[str]) -> int:
        match = pattern.search(summary_line)
        return int(match.group(1)) if match else 0

    return DiffSummary(
        files_changed=_count(_FILES_RE),
        insertions=_count(_INSERTIONS_RE),
        deletions=_count(_DELETIONS_RE),
        raw_text=text,
    )


def diff_summary(workspace: Path) -> DiffSummary | None:
    """Summarize uncommitted changes in the workspace.

    Returns:
        DiffSummary (all zeros for a clean tree), or None when git is missing,
        the directory is not a repository, or the command fails
    """
    success, output = run_git(["diff", "--stat"], workspace)
    if not success:
        logger.debug("git diff unavailable in %s: %s", workspace, output)
        return None
    return parse_diff_stat(output)


def is_git_repo(workspace: Path) -> bool:
    success, output = run_git(["rev-parse", "--is-inside-work-tree"], workspace)
    return success and output.strip() == "true"


def find_git_root(start_path: Path) -> Path:
    """Find the git repository root from a starting path.

    Args:
        start_path: Directory to start searching from

    Returns:
        Path to the git root, or start_path if not found
    """
    current = start_path.resolve()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    return start_path
