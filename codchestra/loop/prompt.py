"""Prompt construction for each iteration.

Every iteration gets a fresh prompt: instructions, the current task list,
what changed on disk, and what the agent last reported. Progress lives in
files and git, not in agent memory.
"""

from __future__ import annotations

from pathlib import Path

from codchestra.loop.state import RunState
from codchestra.utils.git import DiffSummary
from codchestra.utils.paths import TASKS_FILE, prompt_path, tasks_path

DEFAULT_SYSTEM_PROMPT = "You are an autonomous development agent."

MAX_DIFF_CHARS = 500

STATUS_TRAILER = """\
Remember: at the end of your response you MUST output a STATUS block:

STATUS:
progress: <0-100>
tasks_completed: <integer>
tasks_total: <integer>
EXIT_SIGNAL: <true|false>
summary: <one line>
"""


def truncate_to_line_boundary(content: str, max_chars: int) -> str:
    """Truncate content to approximately max_chars, respecting line boundaries.

    Keeps the trailing lines, where `git diff --stat` puts its totals.

    Args:
        content: Text content to truncate
        max_chars: Approximate maximum characters to keep

    Returns:
        Truncated content ending at a line boundary, with "..." prefix if truncated
    """
    if len(content) <= max_chars:
        return content

    lines = content.split("\n")
    result_lines: list[str] = []
    char_count = 0

    for line in reversed(lines):
        line_len = len(line) + 1  # +1 for newline
        if char_count + line_len > max_chars and result_lines:
            break
        result_lines.append(line)
        char_count += line_len

    result_lines.reverse()
    return "...\n" + "\n".join(result_lines)


def _read_optional(path: Path) -> str | None:
    if not path.exists():
        return None
    return path.read_text(encoding="utf-8", errors="replace")


def build_prompt(
    workspace: Path,
    run_state: RunState | None,
    diff: DiffSummary | None,
    *,
    max_loops: int | None = None,
) -> str:
    """Assemble the prompt sent to the agent on stdin.

    Args:
        workspace: Working directory holding the task list and prompt file
        run_state: Current run state (iteration number, last status)
        diff: Current diff summary, or None when there is no VCS data
        max_loops: Iteration budget, shown to the agent when given

    Returns:
        Full prompt text
    """
    system_prompt = _read_optional(prompt_path(workspace)) or DEFAULT_SYSTEM_PROMPT
    tasks_section = _read_optional(tasks_path(workspace)) or "No tasks file found."

    sections = [system_prompt.rstrip()]

    if run_state is not None and run_state.loop > 0:
        verb = "Continuing" if run_state.loop > 1 else "Starting"
        budget = f" of {max_loops}" if max_loops else ""
        sections.append(f"{verb} autonomous execution (iteration {run_state.loop}{budget}).")

    sections.append(f"## Current tasks ({TASKS_FILE})\n\n{tasks_section.rstrip()}")

    if diff is not None and diff.raw_text.strip():
        diff_text = truncate_to_line_boundary(diff.raw_text, MAX_DIFF_CHARS)
        sections.append(f"## Git diff summary\n```\n{diff_text}\n```")
    else:
        sections.append("(No git diff or not a git repo.)")

    last = run_state.last_status if run_state else None
    if last is not None:
        sections.append(
            "## Last loop status\n"
            f"- progress: {last.progress}\n"
            f"- tasks_completed: {last.tasks_completed}\n"
            f"- tasks_total: {last.tasks_total}\n"
            f"- summary: {last.summary}"
        )

    sections.append(STATUS_TRAILER)
    return "\n\n".join(sections)
