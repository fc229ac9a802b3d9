"""Tests for STATUS block parsing."""

from codchestra.loop.state import ParsedStatus
from codchestra.loop.status_parser import (
    EXIT_SIGNAL_RE,
    PROGRESS_RE,
    extract_bool,
    extract_int,
    has_status_block,
    last_status_block,
    normalize_output,
    parse_status_block,
)

PLAIN_BLOCK = """\
I updated the parser and added tests.

STATUS:
progress: 60
tasks_completed: 3
tasks_total: 5
EXIT_SIGNAL: false
summary: Added parser tests
"""


class TestParseStatusBlock:
    """Tests for parse_status_block."""

    def test_plain_block(self) -> None:
        status = parse_status_block(PLAIN_BLOCK)
        assert status == ParsedStatus(
            progress=60,
            tasks_completed=3,
            tasks_total=5,
            exit_signal=False,
            summary="Added parser tests",
        )

    def test_no_marker_returns_none(self) -> None:
        """Output without a STATUS marker has no status."""
        assert parse_status_block("progress: 50\nEXIT_SIGNAL: true") is None
        assert parse_status_block("") is None

    def test_missing_required_field_returns_none(self) -> None:
        """A block without tasks_total is incomplete, not partially parsed."""
        text = "STATUS:\nprogress: 50\ntasks_completed: 1\nEXIT_SIGNAL: false\n"
        assert parse_status_block(text) is None

    def test_invalid_exit_signal_returns_none(self) -> None:
        text = "STATUS:\nprogress: 50\ntasks_completed: 1\ntasks_total: 2\nEXIT_SIGNAL: maybe\n"
        assert parse_status_block(text) is None

    def test_clamps_out_of_range_values(self) -> None:
        text = (
            "STATUS:\nprogress: 150\ntasks_completed: -3\ntasks_total: 5\n"
            "EXIT_SIGNAL: true\nsummary: ok"
        )
        status = parse_status_block(text)
        assert status is not None
        assert status.progress == 100
        assert status.tasks_completed == 0
        assert status.tasks_total == 5
        assert status.exit_signal is True
        assert status.summary == "ok"

    def test_negative_progress_clamped_to_zero(self) -> None:
        text = "STATUS:\nprogress: -20\ntasks_completed: 0\ntasks_total: 1\nEXIT_SIGNAL: false"
        status = parse_status_block(text)
        assert status is not None
        assert status.progress == 0

    def test_last_block_wins(self) -> None:
        """A scratch block written while reasoning is superseded by the final one."""
        text = (
            "Draft:\nSTATUS:\nprogress: 10\ntasks_completed: 0\ntasks_total: 4\n"
            "EXIT_SIGNAL: true\nsummary: draft\n\n"
            "Final answer:\nSTATUS:\nprogress: 75\ntasks_completed: 3\ntasks_total: 4\n"
            "EXIT_SIGNAL: false\nsummary: final\n"
        )
        status = parse_status_block(text)
        assert status is not None
        assert status.progress == 75
        assert status.exit_signal is False
        assert status.summary == "final"

    def test_summary_is_optional(self) -> None:
        text = "STATUS:\nprogress: 20\ntasks_completed: 1\ntasks_total: 5\nEXIT_SIGNAL: false\n"
        status = parse_status_block(text)
        assert status is not None
        assert status.summary == ""

    def test_summary_is_trimmed(self) -> None:
        text = (
            "STATUS:\nprogress: 20\ntasks_completed: 1\ntasks_total: 5\n"
            "EXIT_SIGNAL: false\nsummary:    lots of space   \n"
        )
        status = parse_status_block(text)
        assert status is not None
        assert status.summary == "lots of space"

    def test_markdown_decoration(self) -> None:
        """Bold labels, bullets, headings and percent signs are tolerated."""
        text = """\
## **Status:**
- **progress:** 80%
- **tasks_completed:** **4**
- tasks total: 5
- **EXIT_SIGNAL**: `false`
- summary: Wired up the client
"""
        status = parse_status_block(text)
        assert status == ParsedStatus(
            progress=80,
            tasks_completed=4,
            tasks_total=5,
            exit_signal=False,
            summary="Wired up the client",
        )

    def test_blockquote_and_lowercase_marker(self) -> None:
        text = (
            "> status:\n> progress: 100\n> tasks_completed: 2\n> tasks_total: 2\n"
            "> exit signal: TRUE\n"
        )
        status = parse_status_block(text)
        assert status is not None
        assert status.exit_signal is True
        assert status.progress == 100

    def test_ansi_and_crlf(self) -> None:
        """Terminal color codes and CRLF line endings are stripped first."""
        text = (
            "\x1b[1mSTATUS:\x1b[0m\r\nprogress: \x1b[32m90\x1b[0m\r\n"
            "tasks_completed: 9\r\ntasks_total: 10\r\nEXIT_SIGNAL: false\r\n"
        )
        status = parse_status_block(text)
        assert status is not None
        assert status.progress == 90
        assert status.tasks_completed == 9

    def test_marker_must_end_line(self) -> None:
        """Prose mentioning 'status:' mid-sentence is not a marker."""
        text = "The status: all good\nprogress: 50\ntasks_completed: 1\ntasks_total: 2\n"
        assert parse_status_block(text) is None

    def test_never_raises_on_garbage(self) -> None:
        for text in ["STATUS:", "STATUS:\n\n\n", "\x00\x1b[", "STATUS:\nprogress: abc"]:
            assert parse_status_block(text) is None


class TestHelpers:
    """Tests for the per-field extraction helpers."""

    def test_has_status_block(self) -> None:
        assert has_status_block(PLAIN_BLOCK) is True
        assert has_status_block("no block here") is False

    def test_extract_int_takes_first_integer(self) -> None:
        assert extract_int("progress: about 45 of 100", PROGRESS_RE) == 45
        assert extract_int("progress: none", PROGRESS_RE) is None
        assert extract_int("nothing", PROGRESS_RE) is None

    def test_extract_bool(self) -> None:
        assert extract_bool("EXIT_SIGNAL: True", EXIT_SIGNAL_RE) is True
        assert extract_bool("exit_signal: false.", EXIT_SIGNAL_RE) is False
        assert extract_bool("EXIT_SIGNAL: yes", EXIT_SIGNAL_RE) is None

    def test_normalize_output(self) -> None:
        assert normalize_output("a\r\nb\rc") == "a\nb\nc"
        assert normalize_output("\x1b[31mred\x1b[0m") == "red"

    def test_last_status_block_returns_tail(self) -> None:
        block = last_status_block("x\nSTATUS:\nprogress: 1\n")
        assert block is not None
        assert "progress: 1" in block
        assert last_status_block("no marker") is None
