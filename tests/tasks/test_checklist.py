"""Tests for task list parsing."""

from pathlib import Path

import pytest

from codchestra.tasks import (
    Task,
    TaskCounts,
    TaskListParser,
    TaskStatus,
    all_tasks_done,
    count_by_status,
    get_tasks,
    set_task_status,
    tasks_to_markdown,
)

SAMPLE_TASKS = """\
# Codchestra tasks
# Use [ ], [-], [x] for pending, in-progress, done

[ ] A
[-] B
[x] C
- [X] D with bullet
* [ ] E with star

Some prose that is not a task.
  [ ]   F indented
"""


@pytest.fixture
def tasks_file(temp_workspace: Path) -> Path:
    path = temp_workspace / "codchestra.tasks.md"
    path.write_text(SAMPLE_TASKS)
    return path


class TestTaskStatus:
    """Tests for TaskStatus markers."""

    def test_from_marker(self) -> None:
        assert TaskStatus.from_marker(" ") is TaskStatus.PENDING
        assert TaskStatus.from_marker("-") is TaskStatus.IN_PROGRESS
        assert TaskStatus.from_marker("x") is TaskStatus.DONE
        assert TaskStatus.from_marker("X") is TaskStatus.DONE

    def test_marker(self) -> None:
        assert TaskStatus.PENDING.marker == "[ ]"
        assert TaskStatus.IN_PROGRESS.marker == "[-]"
        assert TaskStatus.DONE.marker == "[x]"


class TestTaskListParser:
    """Tests for TaskListParser."""

    def test_parse_tasks(self, tasks_file: Path) -> None:
        tasks = TaskListParser(tasks_file).parse_tasks()

        assert [t.title for t in tasks] == [
            "A",
            "B",
            "C",
            "D with bullet",
            "E with star",
            "F indented",
        ]
        assert [t.status for t in tasks] == [
            TaskStatus.PENDING,
            TaskStatus.IN_PROGRESS,
            TaskStatus.DONE,
            TaskStatus.DONE,
            TaskStatus.PENDING,
            TaskStatus.PENDING,
        ]
        assert [t.id for t in tasks] == ["1", "2", "3", "4", "5", "6"]

    def test_records_line_numbers(self, tasks_file: Path) -> None:
        tasks = TaskListParser(tasks_file).parse_tasks()
        assert tasks[0].line_number == 4
        assert tasks[0].raw == "[ ] A"

    def test_missing_file_returns_empty(self, temp_workspace: Path) -> None:
        assert TaskListParser(temp_workspace / "missing.md").parse_tasks() == []

    def test_comment_lines_with_checkboxes_are_skipped(self, temp_workspace: Path) -> None:
        path = temp_workspace / "tasks.md"
        path.write_text("# [x] not a task\n[ ] real task\n")
        tasks = TaskListParser(path).parse_tasks()
        assert [t.title for t in tasks] == ["real task"]

    def test_set_status_updates_only_that_line(self, tasks_file: Path) -> None:
        parser = TaskListParser(tasks_file)
        assert parser.set_status("1", TaskStatus.DONE) is True

        content = tasks_file.read_text()
        assert "[x] A" in content
        assert "[-] B" in content
        assert content.startswith("# Codchestra tasks\n# Use [ ], [-], [x]")
        assert content.endswith("\n")

    def test_set_status_preserves_bullets(self, tasks_file: Path) -> None:
        parser = TaskListParser(tasks_file)
        parser.set_status("5", TaskStatus.IN_PROGRESS)
        assert "* [-] E with star" in tasks_file.read_text()

    def test_set_status_unknown_task(self, tasks_file: Path) -> None:
        before = tasks_file.read_text()
        assert TaskListParser(tasks_file).set_status("99", TaskStatus.DONE) is False
        assert tasks_file.read_text() == before

    def test_undecodable_bytes_are_replaced(self, temp_workspace: Path) -> None:
        path = temp_workspace / "codchestra.tasks.md"
        path.write_bytes(b"[x] caf\xe9\n[ ] tea\n")

        tasks = TaskListParser(path).parse_tasks()

        assert [t.status for t in tasks] == [TaskStatus.DONE, TaskStatus.PENDING]
        assert tasks[0].title == "caf\ufffd"
        assert tasks[1].title == "tea"

    def test_set_status_keeps_undecodable_bytes(self, temp_workspace: Path) -> None:
        path = temp_workspace / "codchestra.tasks.md"
        path.write_bytes(b"[x] caf\xe9\n[ ] tea\n")

        assert TaskListParser(path).set_status("2", TaskStatus.DONE) is True
        assert path.read_bytes() == b"[x] caf\xe9\n[x] tea\n"


class TestTaskHelpers:
    """Tests for the module-level task helpers."""

    def test_get_tasks_reads_workspace_file(self, tasks_file: Path) -> None:
        assert len(get_tasks(tasks_file.parent)) == 6

    def test_set_task_status(self, tasks_file: Path) -> None:
        assert set_task_status(tasks_file.parent, "2", TaskStatus.DONE) is True
        assert get_tasks(tasks_file.parent)[1].status is TaskStatus.DONE

    def test_count_by_status(self) -> None:
        tasks = [
            Task("1", "A", TaskStatus.PENDING, 1, "[ ] A"),
            Task("2", "B", TaskStatus.IN_PROGRESS, 2, "[-] B"),
            Task("3", "C", TaskStatus.DONE, 3, "[x] C"),
        ]
        counts = count_by_status(tasks)
        assert counts == TaskCounts(pending=1, in_progress=1, done=1)
        assert counts.total == 3
        assert counts.to_dict() == {"pending": 1, "inProgress": 1, "done": 1}
        assert all_tasks_done(tasks) is False

    def test_all_tasks_done(self) -> None:
        done = [Task("1", "A", TaskStatus.DONE, 1, "[x] A")]
        assert all_tasks_done(done) is True
        assert all_tasks_done([]) is False

    def test_tasks_to_markdown(self) -> None:
        tasks = [
            Task("1", "A", TaskStatus.PENDING, 1, "- [ ] A"),
            Task("2", "B", TaskStatus.DONE, 2, "[X] B"),
        ]
        assert tasks_to_markdown(tasks) == "[ ] A\n[x] B"

    def test_task_to_dict(self) -> None:
        task = Task("1", "A", TaskStatus.IN_PROGRESS, 1, "[-] A")
        assert task.to_dict() == {"id": "1", "title": "A", "status": "in-progress"}
