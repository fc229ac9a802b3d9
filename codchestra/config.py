"""Codchestra configuration management.

Loads configuration from .codchestra/config.toml if present, with sensible defaults.
Configuration hierarchy (highest priority first):
1. Command-line flags
2. Repo-level config (.codchestra/config.toml)
3. Defaults
"""

import io
import logging
import os
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import tomli_w

from codchestra.utils.paths import CONFIG_FILE, STATE_DIR, config_path

logger = logging.getLogger(__name__)

VERBOSITY_LEVELS = ("quiet", "normal", "verbose")
OUTPUT_FORMATS = ("text", "json")


def atomic_write(path: Path, content: bytes) -> None:
    """Replace `path` with `content` so readers see the old file or the new one.

    The bytes go to a sibling temp file which is then renamed over the
    target. On failure the temp file is removed and the target is untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(content)
            tmp.flush()
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
    try:
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


@dataclass
class LoopConfig:
    """Limits and detector thresholds for the iteration loop."""

    max_loops: int = 50
    timeout_minutes: int = 120
    stagnation_threshold: int = 3
    repeated_output_threshold: int = 2
    # Outputs shorter than this (after stripping) never count as repeats
    min_substantial_output: int = 120


@dataclass
class AgentConfig:
    """External AI command settings."""

    command: str = ""  # Empty: auto-detect chatgpt, then codex
    args: list[str] = field(default_factory=list)
    call_timeout_minutes: int = 10


@dataclass
class OutputConfig:
    """Terminal output settings."""

    verbosity: str = "normal"
    format: str = "text"

    def __post_init__(self) -> None:
        if self.verbosity not in VERBOSITY_LEVELS:
            self.verbosity = "normal"
        if self.format not in OUTPUT_FORMATS:
            self.format = "text"


@dataclass
class CodchestraConfig:
    """Codchestra configuration."""

    loop: LoopConfig = field(default_factory=LoopConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def to_dict(self) -> dict:
        """Convert to the TOML document layout."""
        return {
            "loop": {
                "max_loops": self.loop.max_loops,
                "timeout_minutes": self.loop.timeout_minutes,
                "stagnation_threshold": self.loop.stagnation_threshold,
                "repeated_output_threshold": self.loop.repeated_output_threshold,
                "min_substantial_output": self.loop.min_substantial_output,
            },
            "agent": {
                "command": self.agent.command,
                "args": list(self.agent.args),
                "call_timeout_minutes": self.agent.call_timeout_minutes,
            },
            "output": {
                "verbosity": self.output.verbosity,
                "format": self.output.format,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CodchestraConfig":
        """Create from a parsed TOML document, filling gaps with defaults."""
        loop_data = data.get("loop", {})
        agent_data = data.get("agent", {})
        output_data = data.get("output", {})

        defaults = LoopConfig()
        loop = LoopConfig(
            max_loops=int(loop_data.get("max_loops", defaults.max_loops)),
            timeout_minutes=int(loop_data.get("timeout_minutes", defaults.timeout_minutes)),
            stagnation_threshold=int(
                loop_data.get("stagnation_threshold", defaults.stagnation_threshold)
            ),
            repeated_output_threshold=int(
                loop_data.get("repeated_output_threshold", defaults.repeated_output_threshold)
            ),
            min_substantial_output=int(
                loop_data.get("min_substantial_output", defaults.min_substantial_output)
            ),
        )

        agent = AgentConfig(
            command=str(agent_data.get("command", "")),
            args=[str(arg) for arg in agent_data.get("args", [])],
            call_timeout_minutes=int(agent_data.get("call_timeout_minutes", 10)),
        )

        output = OutputConfig(
            verbosity=str(output_data.get("verbosity", "normal")),
            format=str(output_data.get("format", "text")),
        )

        return cls(loop=loop, agent=agent, output=output)


def load_config(workspace: Path) -> CodchestraConfig:
    """Load configuration from .codchestra/config.toml if it exists.

    Args:
        workspace: Path to the workspace/repository root.

    Returns:
        CodchestraConfig with values from config file or defaults.
    """
    path = config_path(workspace)

    if not path.exists():
        return CodchestraConfig()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return CodchestraConfig.from_dict(data)
    except (tomllib.TOMLDecodeError, TypeError, ValueError) as e:
        logger.warning("Ignoring invalid config %s: %s", path, e)
        return CodchestraConfig()


def save_config(workspace: Path, config: CodchestraConfig) -> Path:
    """Write the full configuration to .codchestra/config.toml.

    Returns:
        Path of the written file.
    """
    path = config_path(workspace)
    buffer = io.BytesIO()
    tomli_w.dump(config.to_dict(), buffer)
    atomic_write(path, buffer.getvalue())
    return path


def find_config_dir(start: Path) -> Path:
    """Find the nearest directory (start or a parent) holding a config file.

    Returns:
        That directory, or start if none of its ancestors has one
    """
    current = start.resolve()
    while True:
        if (current / STATE_DIR / CONFIG_FILE).exists():
            return current
        if current == current.parent:
            return start
        current = current.parent
