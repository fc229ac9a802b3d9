"""Task list (codchestra.tasks.md) parsing and updates."""

from codchestra.tasks.checklist import (
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

__all__ = [
    "Task",
    "TaskCounts",
    "TaskListParser",
    "TaskStatus",
    "all_tasks_done",
    "count_by_status",
    "get_tasks",
    "set_task_status",
    "tasks_to_markdown",
]
