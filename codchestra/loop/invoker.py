"""External AI command invocation.

One blocking call per iteration: the prompt goes to the agent on stdin, in
the workspace directory, bounded by a per-call timeout. Failures are sorted
into three kinds:

- command not found: fatal, raised as AgentNotFoundError;
- credential failure in stderr: fatal, raised as AgentAuthError;
- timeout or other non-zero exit: reported, and the loop carries on with
  whatever output was produced.
"""

from __future__ import annotations

import logging
import re
import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from codchestra.errors import (
    AgentAuthError,
    AgentNotFoundError,
    InvalidAgentCommandError,
    WorkspaceNotFoundError,
)

# Known CLIs probed in order when no command is configured
KNOWN_COMMANDS = ("chatgpt", "codex")

# Non-interactive invocation per known CLI; prompt is read from stdin
DEFAULT_ARGS: dict[str, list[str]] = {
    "codex": ["exec", "-", "--full-auto"],
}

AUTH_FAILURE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?i)\b401\b.*unauthori[sz]ed"),
    re.compile(r"(?i)\binvalid[_ ]api[_ ]key\b"),
    re.compile(r"(?i)\bincorrect api key\b"),
    re.compile(r"(?i)\bauthentication (?:failed|required|error)\b"),
    re.compile(r"(?i)\b(?:access |auth |refresh )?token (?:has )?expired\b"),
    re.compile(r"(?i)\bnot (?:logged|signed) in\b"),
    re.compile(r"(?i)\bplease (?:log ?in|sign in|re-?authenticate)\b"),
)


def resolve_ai_command(override: str = "") -> str:
    """Pick the AI command: explicit override, else the first known CLI on PATH."""
    if override and override.strip():
        return override.strip()
    for candidate in KNOWN_COMMANDS:
        if shutil.which(candidate):
            return candidate
    return KNOWN_COMMANDS[0]


def build_argv(command: str, args: list[str] | None = None) -> list[str]:
    """Split the command string and append configured or default arguments."""
    try:
        argv = shlex.split(command)
    except ValueError as e:
        raise InvalidAgentCommandError(command, str(e)) from e
    if not argv:
        raise AgentNotFoundError(command)
    if args:
        return argv + list(args)
    return argv + DEFAULT_ARGS.get(Path(argv[0]).name.lower(), [])


def detect_auth_failure(stderr: str) -> str | None:
    """Return the stderr line that looks like a credential failure, if any."""
    for line in stderr.splitlines():
        if any(pattern.search(line) for pattern in AUTH_FAILURE_PATTERNS):
            return line.strip()
    return None


def _decode(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


@dataclass
class AgentCallResult:
    """Result of one agent invocation."""

    stdout: str
    stderr: str
    exit_code: int | None
    timed_out: bool = False
    duration_seconds: float = 0.0

    @property
    def output(self) -> str:
        """Combined output used for repeat detection."""
        return self.stdout + self.stderr

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.exit_code == 0


class AgentInvoker:
    """Runs the external AI command once per call."""

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        call_timeout_seconds: float = 600,
        logger: logging.Logger | None = None,
    ):
        """Initialize the invoker.

        Args:
            command: Executable (plus optional fixed flags) as a shell-style string
            args: Arguments to use instead of the built-in defaults for the command
            call_timeout_seconds: Bound on a single call
            logger: Logger for warnings (defaults to this module's logger)
        """
        self.command = command
        self.argv = build_argv(command, args)
        self.call_timeout_seconds = call_timeout_seconds
        self.logger = logger or logging.getLogger(__name__)

    def invoke(self, prompt: str, workspace: Path) -> AgentCallResult:
        """Send the prompt to the agent and wait for it to finish.

        Raises:
            AgentNotFoundError: If the executable does not exist
            AgentAuthError: If the agent failed with a credential error
            WorkspaceNotFoundError: If the workspace is not a directory
        """
        if not workspace.is_dir():
            raise WorkspaceNotFoundError(str(workspace))
        self.logger.debug("Running %s in %s", shlex.join(self.argv), workspace)
        started = time.monotonic()
        try:
            completed = subprocess.run(
                self.argv,
                input=prompt,
                cwd=workspace,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.call_timeout_seconds,
            )
        except FileNotFoundError as e:
            raise AgentNotFoundError(self.argv[0]) from e
        except subprocess.TimeoutExpired as e:
            self.logger.warning(
                "%s timed out after %ss; continuing with partial output",
                self.argv[0],
                self.call_timeout_seconds,
            )
            return AgentCallResult(
                stdout=_decode(e.stdout),
                stderr=_decode(e.stderr),
                exit_code=None,
                timed_out=True,
                duration_seconds=time.monotonic() - started,
            )

        result = AgentCallResult(
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_code=completed.returncode,
            duration_seconds=time.monotonic() - started,
        )

        if result.exit_code != 0:
            auth_line = detect_auth_failure(result.stderr)
            if auth_line:
                raise AgentAuthError(self.argv[0], auth_line)
            self.logger.warning("%s exited with code %s", self.argv[0], result.exit_code)
            if result.stderr.strip():
                self.logger.debug("stderr: %s", result.stderr.strip()[-2000:])

        return result
