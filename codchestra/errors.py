"""Fatal error types.

Expected stop reasons (max loops, stagnation, ...) are returned as values in
``LoopResult``. Only setup problems the operator has to fix are raised.
"""

from __future__ import annotations


class CodchestraError(Exception):
    """Base class for errors that stop Codchestra before or during a run."""

    def __init__(self, message: str, remediation: str | None = None):
        super().__init__(message)
        self.remediation = remediation


class AgentNotFoundError(CodchestraError):
    """The configured AI command is not installed or not on PATH."""

    def __init__(self, command: str):
        super().__init__(
            f"AI command not found: {command}",
            remediation=(
                "Install the agent CLI (e.g. `npm install -g @openai/codex`) or set "
                "[agent] command in .codchestra/config.toml"
            ),
        )
        self.command = command


class AgentAuthError(CodchestraError):
    """The agent rejected its credentials (expired or invalid login)."""

    def __init__(self, command: str, detail: str):
        super().__init__(
            f"{command} authentication failed: {detail}",
            remediation=f"Re-authenticate the agent CLI (e.g. `{command} login`) and run again",
        )
        self.command = command
        self.detail = detail


class InvalidAgentCommandError(CodchestraError):
    """The AI command string cannot be split into arguments."""

    def __init__(self, command: str, reason: str):
        super().__init__(
            f"Invalid AI command {command!r}: {reason}",
            remediation="Check the quoting of --ai-command or [agent] command in .codchestra/config.toml",
        )
        self.command = command


class WorkspaceNotFoundError(CodchestraError):
    """The workspace the agent should run in is not a directory."""

    def __init__(self, workspace: str):
        super().__init__(
            f"Workspace directory not found: {workspace}",
            remediation="Pass an existing directory with --workspace",
        )
        self.workspace = workspace
