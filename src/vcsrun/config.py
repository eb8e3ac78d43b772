"""Project configuration for vcsrun.

Resolves the directory a ``Git`` handle works in and the switches it starts
with. Values come from explicit arguments first, then ``VCSRUN_*``
environment variables, then discovery on disk.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv as _dotenv_load
from pydantic import BaseModel, Field

from vcsrun.git import Git
from vcsrun.process import ExecutionError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PROJECT_FILE = "vcsrun.toml"
DOTENV_FILE = ".env"

VCSRUN_ROOT_ENV = "VCSRUN_ROOT"
VCSRUN_QUIET_ENV = "VCSRUN_QUIET"
VCSRUN_SHALLOW_ENV = "VCSRUN_SHALLOW"
VCSRUN_NO_GPG_SIGN_ENV = "VCSRUN_NO_GPG_SIGN"

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"", "0", "false", "no", "off"})


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class ProjectConfig(BaseModel, frozen=True):
    """Settings a repository handle is built from."""

    root: Path = Field(description="Working directory for repository operations.")
    quiet: bool = Field(default=False, description="Capture stderr of long-running commands.")
    shallow: bool = Field(default=False, description="Use depth-1 history for submodules.")
    no_gpg_sign: bool = Field(default=False, description="Never GPG-sign commits.")


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------


def parse_flag(name: str, value: str | None) -> bool:
    """Interpret an environment flag value.

    Unset and empty values are false.

    Raises:
        ValueError: If the value is neither truthy nor falsy.
    """
    if value is None:
        return False
    normalized = value.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    msg = f"Invalid {name} value {value!r}. Use one of: 1, 0, true, false, yes, no, on, off"
    raise ValueError(msg)


def color_enabled() -> bool:
    """Terminal colours are off whenever ``NO_COLOR`` is set."""
    return "NO_COLOR" not in os.environ


# ---------------------------------------------------------------------------
# Imperative shell
# ---------------------------------------------------------------------------


def find_project_root(start: Path | None = None) -> Path:
    """Locate the project root for *start* (default: the current directory).

    Resolution order:

    1. Nearest ancestor (inclusive) containing ``vcsrun.toml``.
    2. Toplevel of the git repository containing *start*.
    3. *start* itself.
    """
    start = (start or Path.cwd()).resolve()
    for candidate in (start, *start.parents):
        if (candidate / PROJECT_FILE).is_file():
            return candidate

    try:
        return Git.root_of(start)
    except ExecutionError:
        logger.debug("No git repository above %s; using it as the project root", start)
        return start


def load_config(root: Path | None = None) -> ProjectConfig:
    """Build a ``ProjectConfig`` from *root* and the ``VCSRUN_*`` variables.

    Raises:
        ValueError: If a flag variable holds an unrecognised value.
    """
    if root is None:
        env_root = os.environ.get(VCSRUN_ROOT_ENV)
        root = Path(env_root) if env_root else find_project_root()

    return ProjectConfig(
        root=root,
        quiet=parse_flag(VCSRUN_QUIET_ENV, os.environ.get(VCSRUN_QUIET_ENV)),
        shallow=parse_flag(VCSRUN_SHALLOW_ENV, os.environ.get(VCSRUN_SHALLOW_ENV)),
        no_gpg_sign=parse_flag(VCSRUN_NO_GPG_SIGN_ENV, os.environ.get(VCSRUN_NO_GPG_SIGN_ENV)),
    )


def load_dotenv(start: Path | None = None) -> list[Path]:
    """Load ``.env`` from the project root and the current directory.

    Best effort: missing files are skipped and variables that are already set
    keep their values. Returns the files that were loaded, project root first.
    """
    cwd = (start or Path.cwd()).resolve()
    project_root = find_project_root(cwd)

    candidates = [project_root]
    if cwd != project_root:
        candidates.append(cwd)

    loaded: list[Path] = []
    for directory in candidates:
        env_file = directory / DOTENV_FILE
        if env_file.is_file():
            _dotenv_load(env_file, override=False)
            loaded.append(env_file)
    return loaded
