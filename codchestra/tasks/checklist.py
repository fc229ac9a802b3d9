"""Task list parsing for codchestra.tasks.md.

The task list is a plain markdown file with one checkbox per line:

    # Tasks
    [ ] Add login form
    [-] Wire up the API client
    [x] Create project skeleton

``[ ]`` is pending, ``[-]`` in progress and ``[x]``/``[X]`` done. A list
bullet before the checkbox (``- [ ] ...``) is accepted too. The file is
re-read on every query; nothing is cached between calls.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from codchestra.utils.paths import tasks_path


class TaskStatus(Enum):
    """Status of a task, derived from its checkbox marker."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @property
    def marker(self) -> str:
        if self is TaskStatus.DONE:
            return "[x]"
        if self is TaskStatus.IN_PROGRESS:
            return "[-]"
        return "[ ]"

    @classmethod
    def from_marker(cls, mark: str) -> TaskStatus:
        if mark in ("x", "X"):
            return cls.DONE
        if mark == "-":
            return cls.IN_PROGRESS
        return cls.PENDING


@dataclass
class Task:
    """A task parsed from the task list."""

    id: str
    title: str
    status: TaskStatus
    line_number: int
    raw: str

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "status": self.status.value}


@dataclass
class TaskCounts:
    """Number of tasks per status."""

    pending: int = 0
    in_progress: int = 0
    done: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.in_progress + self.done

    def to_dict(self) -> dict:
        return {"pending": self.pending, "inProgress": self.in_progress, "done": self.done}


class TaskListParser:
    """Parses checkbox tasks from a markdown task list."""

    # Matches "[ ] title", "[-] title", "- [x] title"
    TASK_PATTERN = re.compile(r"^(?:[-*+]\s+)?\[([ xX\-])\]\s*(.*)$")
    CHECKBOX_PATTERN = re.compile(r"\[[ xX\-]\]")

    def __init__(self, path: Path):
        self.path = path

    def parse_tasks(self) -> list[Task]:
        """Parse all tasks. A missing file yields an empty list."""
        if not self.path.exists():
            return []

        tasks: list[Task] = []
        # Undecodable bytes become U+FFFD rather than failing the whole list
        lines = self.path.read_text(encoding="utf-8", errors="replace").splitlines()
        for line_number, line in enumerate(lines, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            match = self.TASK_PATTERN.match(stripped)
            if not match:
                continue
            tasks.append(
                Task(
                    id=str(len(tasks) + 1),
                    title=match.group(2).strip(),
                    status=TaskStatus.from_marker(match.group(1)),
                    line_number=line_number,
                    raw=line,
                )
            )
        return tasks

    def set_status(self, task_id: str, status: TaskStatus) -> bool:
        """Update one task's checkbox in place, leaving other lines untouched.

        Returns:
            True if the task was found and the file rewritten
        """
        task = next((t for t in self.parse_tasks() if t.id == task_id), None)
        if task is None:
            return False

        # surrogateescape keeps undecodable bytes intact on the way back out
        content = self.path.read_text(encoding="utf-8", errors="surrogateescape")
        lines = content.splitlines()
        line_idx = task.line_number - 1
        lines[line_idx] = self.CHECKBOX_PATTERN.sub(status.marker, lines[line_idx], count=1)
        trailing = "\n" if content.endswith("\n") else ""
        self.path.write_text(
            "\n".join(lines) + trailing, encoding="utf-8", errors="surrogateescape"
        )
        return True


def get_tasks(workspace: Path) -> list[Task]:
    """Read the workspace task list."""
    return TaskListParser(tasks_path(workspace)).parse_tasks()


def set_task_status(workspace: Path, task_id: str, status: TaskStatus) -> bool:
    return TaskListParser(tasks_path(workspace)).set_status(task_id, status)


def count_by_status(tasks: list[Task]) -> TaskCounts:
    counts = TaskCounts()
    for task in tasks:
        if task.status is TaskStatus.PENDING:
            counts.pending += 1
        elif task.status is TaskStatus.IN_PROGRESS:
            counts.in_progress += 1
        else:
            counts.done += 1
    return counts


def all_tasks_done(tasks: list[Task]) -> bool:
    """True only for a non-empty list where every task is done."""
    return len(tasks) > 0 and all(t.status is TaskStatus.DONE for t in tasks)


def tasks_to_markdown(tasks: list[Task]) -> str:
    return "\n".join(f"{t.status.marker} {t.title}" for t in tasks)
