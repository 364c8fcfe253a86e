"""Build metadata exposed at runtime by /health.

APP_VERSION and GIT_COMMIT are set via environment variables in CI.
Otherwise APP_VERSION falls back to the installed distribution's version and
GIT_COMMIT to the short SHA of the checkout ("dev" when neither is available).
"""

import os
import subprocess
from importlib import metadata

DISTRIBUTION_NAME = "collision-race"


def _git_short_sha() -> str:
    """Read short SHA from git for local development."""
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (FileNotFoundError, subprocess.CalledProcessError):
        return "dev"


def _installed_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "dev"


APP_VERSION: str = os.environ.get("APP_VERSION") or _installed_version()
GIT_COMMIT: str = os.environ.get("GIT_COMMIT") or _git_short_sha()
