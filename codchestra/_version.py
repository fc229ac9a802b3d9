"""Version information for Codchestra.

The version is statically defined here and should match pyproject.toml.
When running from a git checkout, the short commit and a dirty marker are
appended for bug reports.
"""

import subprocess
from functools import lru_cache
from pathlib import Path

__version__ = "0.1.0"


@lru_cache(maxsize=1)
def get_git_info() -> dict[str, str | None]:
    """Get git information for the source checkout, if any.

    Returns:
        Dict with 'sha' (short commit hash) and 'dirty' (bool as string)
    """
    source_dir = Path(__file__).resolve().parent
    try:
        sha = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=source_dir,
        )
        if sha.returncode != 0:
            return {"sha": None, "dirty": None}
        dirty = subprocess.run(
            ["git", "status", "--porcelain", "--", "."],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=source_dir,
        )
        return {
            "sha": sha.stdout.strip(),
            "dirty": "true" if dirty.stdout.strip() else "false",
        }
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return {"sha": None, "dirty": None}


def get_version() -> str:
    return __version__


def get_full_version_string() -> str:
    """Get a human-readable version string.

    Returns:
        String like "codchestra 0.1.0 (abc1234, dirty)" or "codchestra 0.1.0"
    """
    git_info = get_git_info()
    details = []
    if git_info["sha"]:
        details.append(git_info["sha"])
    if git_info["dirty"] == "true":
        details.append("dirty")

    version = f"codchestra {__version__}"
    if details:
        version += f" ({', '.join(details)})"
    return version
