"""STATUS block parsing.

Agents are asked to finish every response with:

    STATUS:
    progress: <0-100>
    tasks_completed: <integer>
    tasks_total: <integer>
    EXIT_SIGNAL: <true|false>
    summary: <one line>

Real output is messier: color codes, CRLF line endings, markdown bullets and
bold labels, ``100%`` instead of ``100``, and scratch STATUS blocks written
while reasoning. Only the last block counts. The result is either a fully
populated ParsedStatus or None, never a partial one.
"""

from __future__ import annotations

import re

from rich.text import Text

from codchestra.loop.state import ParsedStatus

# Leading decoration a line may carry: blockquote, heading hashes, list bullet
_LEAD = r"^[ \t]*(?:>[ \t]*)?(?:#{1,6}[ \t]+)?(?:[-*+][ \t]+)?"
# Markdown emphasis around a label or after its colon
_EMPH = r"(?:\*\*|__|\*|_)?"

STATUS_MARKER_RE = re.compile(
    _LEAD + _EMPH + r"status" + _EMPH + r"[ \t]*:[ \t]*" + _EMPH + r"[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)

_INT_RE = re.compile(r"-?\d+")
_BOOL_RE = re.compile(r"\b(true|false)\b", re.IGNORECASE)


def _field_pattern(label: str) -> re.Pattern[str]:
    return re.compile(
        _LEAD + _EMPH + label + _EMPH + r"[ \t]*:" + _EMPH + r"[ \t]*(?P<value>.*)$",
        re.IGNORECASE | re.MULTILINE,
    )


PROGRESS_RE = _field_pattern(r"progress")
TASKS_COMPLETED_RE = _field_pattern(r"tasks[_ ]completed")
TASKS_TOTAL_RE = _field_pattern(r"tasks[_ ]total")
EXIT_SIGNAL_RE = _field_pattern(r"exit[_ ]signal")
SUMMARY_RE = _field_pattern(r"summary")


def normalize_output(text: str) -> str:
    """Strip terminal escape codes and normalise line endings to LF."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return Text.from_ansi(text).plain


def _field_value(block: str, pattern: re.Pattern[str]) -> str | None:
    match = pattern.search(block)
    if match is None:
        return None
    return match.group("value").strip()


def extract_int(block: str, pattern: re.Pattern[str]) -> int | None:
    """First integer embedded in the labelled value, e.g. ``**80**%`` -> 80."""
    value = _field_value(block, pattern)
    if value is None:
        return None
    number = _INT_RE.search(value)
    return int(number.group(0)) if number else None


def extract_bool(block: str, pattern: re.Pattern[str]) -> bool | None:
    value = _field_value(block, pattern)
    if value is None:
        return None
    token = _BOOL_RE.search(value)
    return token.group(1).lower() == "true" if token else None


def extract_summary(block: str) -> str:
    value = _field_value(block, SUMMARY_RE)
    return value or ""


def last_status_block(text: str) -> str | None:
    """Text following the last STATUS marker, or None if there is none."""
    last = None
    for last in STATUS_MARKER_RE.finditer(text):
        pass
    if last is None:
        return None
    return text[last.end() :]


def parse_status_block(output: str) -> ParsedStatus | None:
    """Parse the authoritative STATUS block from agent output.

    Args:
        output: Raw agent stdout

    Returns:
        ParsedStatus with clamped values, or None when no complete block exists
    """
    block = last_status_block(normalize_output(output))
    if block is None:
        return None

    progress = extract_int(block, PROGRESS_RE)
    tasks_completed = extract_int(block, TASKS_COMPLETED_RE)
    tasks_total = extract_int(block, TASKS_TOTAL_RE)
    exit_signal = extract_bool(block, EXIT_SIGNAL_RE)
    if progress is None or tasks_completed is None or tasks_total is None or exit_signal is None:
        return None

    return ParsedStatus(
        progress=min(100, max(0, progress)),
        tasks_completed=max(0, tasks_completed),
        tasks_total=max(0, tasks_total),
        exit_signal=exit_signal,
        summary=extract_summary(block),
    )


def has_status_block(output: str) -> bool:
    return parse_status_block(output) is not None
