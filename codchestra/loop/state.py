"""Run state persistence.

One JSON record per working directory in .codchestra/state.json. It is the
only mutable record of loop progress: saved after every iteration so a crash
loses at most one iteration, and read by `status`/`monitor`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from codchestra.config import atomic_write
from codchestra.utils.paths import state_path

logger = logging.getLogger(__name__)


@dataclass
class ParsedStatus:
    """Completion signal parsed from one agent response."""

    progress: int
    tasks_completed: int
    tasks_total: int
    exit_signal: bool
    summary: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "progress": self.progress,
            "tasksCompleted": self.tasks_completed,
            "tasksTotal": self.tasks_total,
            "exitSignal": self.exit_signal,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ParsedStatus:
        """Create from dictionary. Raises KeyError/TypeError on bad records."""
        return cls(
            progress=int(data["progress"]),
            tasks_completed=int(data["tasksCompleted"]),
            tasks_total=int(data["tasksTotal"]),
            exit_signal=bool(data["exitSignal"]),
            summary=str(data.get("summary", "")),
        )


@dataclass
class RunState:
    """Persisted loop progress for one working directory."""

    loop: int = 0
    stagnation_count: int = 0
    last_output_hash: str | None = None
    last_status: ParsedStatus | None = None
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    cwd: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "loop": self.loop,
            "stagnationCount": self.stagnation_count,
            "lastOutputHash": self.last_output_hash,
            "lastStatus": self.last_status.to_dict() if self.last_status else None,
            "startedAt": self.started_at,
            "cwd": self.cwd,
        }

    @classmethod
    def from_dict(cls, data: dict) -> RunState:
        """Create from dictionary."""
        status_data = data.get("lastStatus")
        last_hash = data.get("lastOutputHash")
        return cls(
            loop=int(data.get("loop", 0)),
            stagnation_count=int(data.get("stagnationCount", 0)),
            last_output_hash=str(last_hash) if last_hash else None,
            last_status=ParsedStatus.from_dict(status_data) if status_data else None,
            started_at=str(data.get("startedAt") or datetime.now().isoformat()),
            cwd=str(data.get("cwd", "")),
        )


class RunStateStore:
    """Loads, saves and clears the run state of a workspace."""

    def __init__(self, workspace: Path):
        """Initialize the store.

        Args:
            workspace: Working directory the state belongs to
        """
        self.workspace = workspace
        self.state_file = state_path(workspace)

    def load(self) -> RunState | None:
        """Load persisted state.

        Returns:
            The state, or None when the file is missing or unreadable
        """
        if not self.state_file.exists():
            return None

        try:
            with open(self.state_file, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise TypeError(f"expected object, got {type(data).__name__}")
            state = RunState.from_dict(data)
            logger.debug(f"Loaded state: loop={state.loop}, stagnation={state.stagnation_count}")
            return state
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable state file {self.state_file}: {e}")
            return None

    def save(self, state: RunState) -> None:
        """Write the full state atomically."""
        content = json.dumps(state.to_dict(), indent=2) + "\n"
        try:
            atomic_write(self.state_file, content.encode("utf-8"))
            logger.debug(f"Saved state: loop={state.loop}, stagnation={state.stagnation_count}")
        except OSError as e:
            logger.error(f"Failed to save state to {self.state_file}: {e}")
            raise

    def clear(self) -> bool:
        """Remove persisted state. Safe to call when nothing is stored.

        Returns:
            True if a state file was removed
        """
        try:
            self.state_file.unlink()
        except FileNotFoundError:
            return False
        logger.debug(f"Cleared state {self.state_file}")
        return True
