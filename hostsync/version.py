"""Version information for hostsync.

Read from the installed distribution metadata, falling back to the
VERSION file next to this module.
"""

import os
import subprocess
from importlib import metadata
from pathlib import Path


def get_version() -> str:
    """Get the package version (e.g. "0.3.0")."""
    try:
        return metadata.version("hostsync")
    except metadata.PackageNotFoundError:
        pass

    version_file = Path(__file__).parent / "VERSION"
    if version_file.exists():
        version = version_file.read_text().strip()
        if version:
            return version

    return "0.0.0"


__version__ = get_version()


def get_commit() -> str:
    """Get the commit SHA from HOSTSYNC_GIT_SHA, falling back to git."""
    env_sha = os.getenv("HOSTSYNC_GIT_SHA", "").strip()
    if env_sha:
        return env_sha

    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=Path(__file__).parent,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (OSError, subprocess.SubprocessError):
        pass

    return "unknown"
