"""Per-run session logs.

While a run is active, every record on the ``codchestra`` logger is also
written to ``.codchestra/logs/session-<timestamp>.log`` so a long unattended
run can be inspected afterwards.

File naming:
- session-20260101T120000Z.log
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from codchestra.utils.paths import logs_dir

LOGGER_NAME = "codchestra"
SESSION_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def session_log_path(workspace: Path, now: datetime | None = None) -> Path:
    """Get the log file path for a session starting at `now`."""
    stamp = (now or datetime.now(UTC)).strftime("%Y%m%dT%H%M%SZ")
    return logs_dir(workspace) / f"session-{stamp}.log"


@contextmanager
def session_log(workspace: Path, level: int = logging.DEBUG) -> Iterator[Path]:
    """Attach a file handler to the codchestra logger for the duration of a run.

    The logger's own level is lowered to `level` while the handler is attached
    so the file captures detail the console may hide.

    Yields:
        Path of the session log file
    """
    path = session_log_path(workspace)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(SESSION_LOG_FORMAT))

    logger = logging.getLogger(LOGGER_NAME)
    previous_level = logger.level
    logger.addHandler(handler)
    if previous_level == logging.NOTSET or previous_level > level:
        logger.setLevel(level)
    try:
        yield path
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)
        handler.close()
