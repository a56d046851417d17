"""Version information for the monitor.

This module provides version information that can be read from:
1. The VERSION file (primary source)
2. Git tags as fallback
"""

import os
import subprocess
from pathlib import Path


def _git(*args: str) -> str | None:
    try:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=Path(__file__).parent,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def get_version() -> str:
    """Get the monitor version.

    Reads from VERSION file first, falls back to git tag.
    """
    version_file = Path(__file__).parent / "VERSION"
    if version_file.exists():
        version = version_file.read_text().strip()
        if version:
            return version

    tag = _git("describe", "--tags", "--abbrev=0")
    if tag:
        return tag[1:] if tag.startswith("v") else tag

    return "0.0.0"


# Cache the version at import time
__version__ = get_version()


def get_commit() -> str:
    """Get the deployed commit SHA.

    Reads from MONITOR_GIT_SHA first, falls back to git rev-parse.
    """
    env_sha = os.getenv("MONITOR_GIT_SHA", "").strip()
    if env_sha:
        return env_sha
    return _git("rev-parse", "HEAD") or "unknown"
