"""Shared test fixtures for vcsrun."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path

_GITCONFIG = """\
[user]
    name = Vcsrun Test
    email = test@vcsrun.test
[init]
    defaultBranch = main
[commit]
    gpgsign = false
[tag]
    gpgsign = false
[protocol "file"]
    allow = always
"""


@pytest.fixture(autouse=True)
def _isolated_git(
    tmp_path_factory: pytest.TempPathFactory,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Point git at a throwaway global config and keep it inside the temp tree.

    The config fixes the identity and default branch, and allows ``file://``
    submodules. The ceiling stops repository discovery from escaping into
    whatever checkout the tests run from.
    """
    config = tmp_path_factory.mktemp("git-home") / "gitconfig"
    config.write_text(_GITCONFIG)
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path_factory.getbasetemp()))
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")
    for name in ("VCSRUN_ROOT", "VCSRUN_QUIET", "VCSRUN_SHALLOW", "VCSRUN_NO_GPG_SIGN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("VCSRUN_OTEL_EXPORTER", raising=False)
    monkeypatch.delenv("NO_COLOR", raising=False)


def _git(*args: str, cwd: Path) -> str:
    result = subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)
    return result.stdout.strip()


def _commit_file(repo: Path, name: str, content: str, message: str) -> None:
    (repo / name).write_text(content)
    _git("add", name, cwd=repo)
    _git("commit", "-m", message, cwd=repo)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository with one initial commit.

    The repo has a committed ``README.md`` on the ``main`` branch.

    Returns the path to the repository root.
    """
    repo = tmp_path / "repo"
    repo.mkdir()
    _git("init", "-b", "main", cwd=repo)
    _commit_file(repo, "README.md", "# Test repo\n", "Initial commit")
    return repo


@pytest.fixture
def history_repo(tmp_path: Path) -> Path:
    """Create a repository with three commits on ``main``.

    Used as a clone and submodule source; refer to it by ``as_uri()`` so
    that ``--depth`` is honoured for local clones.
    """
    repo = tmp_path / "upstream"
    repo.mkdir()
    _git("init", "-b", "main", cwd=repo)
    for i in range(3):
        _commit_file(repo, "VERSION", f"{i}\n", f"Release {i}")
    _git("tag", "v2", cwd=repo)
    return repo
