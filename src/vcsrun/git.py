"""Git repository handle for vcsrun.

A ``Git`` value names a working directory plus a few behaviour switches and
turns each repository operation into one ``git`` invocation run through
``vcsrun.process``. Handles are immutable; the ``with_*`` methods return
modified copies, so one base handle can safely seed many variants.

Design follows Function Core / Imperative Shell:
- Pure functions: *_args builders, is_nothing_to_commit,
  has_uninitialized_submodule
- Imperative shell: the Git handle methods
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from vcsrun.process import (
    ExecutionError,
    Invocation,
    VcsError,
    execute,
    execute_text,
    format_failure,
    run,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from vcsrun.config import ProjectConfig

logger = logging.getLogger(__name__)

GIT = "git"

StrPath = str | os.PathLike[str]

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DirtyWorkingTreeError(VcsError):
    """The repository has uncommitted, staged, or untracked changes."""


DIRTY_WORKING_TREE_MESSAGE = """\
The target directory is a part of or on its own an already initialized git repository,
and it requires clean working and staging areas, including no untracked files.

Check the current git repository's status with `git status`.
Then, you can track files with `git add ...` and then commit them with `git commit`,
ignore them in the `.gitignore` file, or run this command again with the `--no-commit` flag."""

NOTHING_TO_COMMIT = "nothing to commit, working tree clean"


# ---------------------------------------------------------------------------
# Pure functions: argument builders
# ---------------------------------------------------------------------------


def _paths(paths: Iterable[StrPath]) -> list[str]:
    return [os.fspath(p) for p in paths]


def clone_args(shallow: bool, source: StrPath, dest: StrPath | None = None) -> list[str]:
    """Arguments for ``git clone``, always recursing into submodules."""
    args = ["clone", "--recurse-submodules"]
    if shallow:
        args += ["--depth=1", "--shallow-submodules"]
    args.append(os.fspath(source))
    if dest is not None:
        args.append(os.fspath(dest))
    return args


def checkout_args(recursive: bool, ref: StrPath) -> list[str]:
    args = ["checkout"]
    if recursive:
        args.append("--recurse-submodules")
    args.append(os.fspath(ref))
    return args


def rm_args(force: bool, paths: Iterable[StrPath]) -> list[str]:
    args = ["rm"]
    if force:
        args.append("--force")
    return args + _paths(paths)


def commit_args(message: str, no_gpg_sign: bool = False) -> list[str]:
    args = ["commit", "-m", message]
    if no_gpg_sign:
        args.append("--no-gpg-sign")
    return args


def commit_hash_args(short: bool) -> list[str]:
    args = ["rev-parse"]
    if short:
        args.append("--short")
    args.append("HEAD")
    return args


def branch_list_args(name: str) -> list[str]:
    return ["branch", "--list", "--no-color", name]


def submodule_status_args(paths: Iterable[StrPath]) -> list[str]:
    return ["submodule", "status", *_paths(paths)]


def submodule_add_args(shallow: bool, force: bool, url: str, path: StrPath) -> list[str]:
    args = ["submodule", "add"]
    if shallow:
        args.append("--depth=1")
    if force:
        args.append("--force")
    return [*args, url, os.fspath(path)]


def submodule_update_args(
    shallow: bool,
    force: bool,
    remote: bool,
    paths: Iterable[StrPath],
) -> list[str]:
    args = ["submodule", "update", "--progress", "--init", "--recursive"]
    if shallow:
        args.append("--depth=1")
    if force:
        args.append("--force")
    if remote:
        args.append("--remote")
    return args + _paths(paths)


# ---------------------------------------------------------------------------
# Pure functions: output interpretation
# ---------------------------------------------------------------------------


def is_nothing_to_commit(stdout: str, stderr: str) -> bool:
    """True if git refused to commit only because there was nothing to commit."""
    return NOTHING_TO_COMMIT in stdout or NOTHING_TO_COMMIT in stderr


def has_uninitialized_submodule(status_output: str) -> bool:
    """True if any ``git submodule status`` line has the ``-`` prefix.

    Git prefixes uninitialized submodules with ``-``, out-of-date ones with
    ``+``, and up-to-date ones with a space.
    """
    return any(line.startswith("-") for line in status_output.splitlines())


# ---------------------------------------------------------------------------
# Repository handle
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class Git:
    """Immutable handle on a git working directory.

    Attributes:
        root: Working directory of every handle-scoped command.
        quiet: Capture stderr of long-running commands instead of letting it
            stream to the terminal. Captured text still feeds error messages.
        shallow: Request depth-1 history when adding or updating submodules.
        no_gpg_sign: Pass ``--no-gpg-sign`` to ``git commit``.
    """

    root: Path
    quiet: bool = False
    shallow: bool = False
    no_gpg_sign: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", Path(self.root))

    @classmethod
    def from_config(cls, config: ProjectConfig) -> Git:
        return cls(
            root=config.root,
            quiet=config.quiet,
            shallow=config.shallow,
            no_gpg_sign=config.no_gpg_sign,
        )

    # -- derived handles ----------------------------------------------------

    def with_root(self, root: StrPath) -> Git:
        return dataclasses.replace(self, root=Path(root))

    def with_quiet(self, quiet: bool) -> Git:
        return dataclasses.replace(self, quiet=quiet)

    def with_shallow(self, shallow: bool) -> Git:
        """Copy of this handle that adds and updates submodules with depth-1 history."""
        return dataclasses.replace(self, shallow=shallow)

    def with_no_gpg_sign(self, no_gpg_sign: bool) -> Git:
        return dataclasses.replace(self, no_gpg_sign=no_gpg_sign)

    # -- invocation building --------------------------------------------------

    def invocation(self, args: Iterable[str], *, stream_stderr: bool = False) -> Invocation:
        """Build a ``git`` invocation running in ``root``.

        With *stream_stderr*, stderr goes to the terminal unless the handle is
        quiet. Only commands with long-running side effects ask for this.
        """
        capture = self.quiet or not stream_stderr
        return Invocation(GIT, tuple(args), cwd=self.root, capture_stderr=capture)

    # -- handle-free operations -----------------------------------------------

    @staticmethod
    def root_of(relative_to: StrPath) -> Path:
        """Return the toplevel directory of the repository containing *relative_to*.

        Raises:
            ExecutionError: If *relative_to* is not inside a git repository.
        """
        output = execute_text(
            Invocation(GIT, ("rev-parse", "--show-toplevel"), cwd=Path(relative_to))
        )
        return Path(output)

    @staticmethod
    def clone(
        shallow: bool,
        source: StrPath,
        dest: StrPath | None = None,
        *,
        cwd: StrPath | None = None,
        quiet: bool = False,
    ) -> None:
        """Clone *source* into *dest* (or git's default directory name).

        Relative *dest* paths resolve against *cwd*, which defaults to the
        current directory. Progress streams to the terminal unless *quiet*, in
        which case stderr is captured for the error message.
        """
        workdir = Path(cwd) if cwd is not None else Path.cwd()
        logger.info("Cloning %s (shallow=%s)", os.fspath(source), shallow)
        execute(
            Invocation(
                GIT,
                tuple(clone_args(shallow, source, dest)),
                cwd=workdir,
                capture_stderr=quiet,
            )
        )

    # -- working tree -----------------------------------------------------------

    def checkout(self, recursive: bool, ref: StrPath) -> None:
        execute(self.invocation(checkout_args(recursive, ref)))

    def init(self) -> None:
        execute(self.invocation(["init"]))

    def add(self, paths: Iterable[StrPath]) -> None:
        execute(self.invocation(["add", *_paths(paths)]))

    def rm(self, force: bool, paths: Iterable[StrPath]) -> None:
        execute(self.invocation(rm_args(force, paths)))

    def commit(self, message: str) -> None:
        """Commit the staged changes.

        A clean working tree is not an error: git's "nothing to commit"
        refusal is treated as success.

        Raises:
            ExecutionError: If git fails for any other reason.
        """
        inv = self.invocation(commit_args(message, self.no_gpg_sign))
        result = run(inv)
        if result.ok:
            return
        if is_nothing_to_commit(result.stdout, result.stderr):
            logger.debug("Nothing to commit in %s", self.root)
            return
        raise ExecutionError(
            format_failure(inv, result),
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    # -- queries ------------------------------------------------------------------

    def is_in_repo(self) -> bool:
        """True if ``root`` is inside a git working tree. Judged by exit status."""
        return run(self.invocation(["rev-parse", "--is-inside-work-tree"])).ok

    def is_clean(self) -> bool:
        """True if there are no staged, unstaged, or untracked changes."""
        return execute(self.invocation(["status", "--porcelain"])).stdout == ""

    def has_branch(self, name: str) -> bool:
        return execute_text(self.invocation(branch_list_args(name))) != ""

    def ensure_clean(self) -> None:
        """Raise unless the working tree is clean.

        Raises:
            DirtyWorkingTreeError: With guidance on how to clean up.
        """
        if not self.is_clean():
            raise DirtyWorkingTreeError(DIRTY_WORKING_TREE_MESSAGE)

    def commit_hash(self, short: bool) -> str:
        return execute_text(self.invocation(commit_hash_args(short)))

    def tag(self) -> str:
        return execute_text(self.invocation(["tag"]))

    # -- submodules -----------------------------------------------------------------

    def has_missing_dependencies(self, paths: Iterable[StrPath] = ()) -> bool:
        """True if any submodule under *paths* (all, when empty) is uninitialized."""
        return has_uninitialized_submodule(
            execute_text(self.invocation(submodule_status_args(paths)))
        )

    def submodule_add(self, force: bool, url: str, path: StrPath) -> None:
        logger.info("Adding submodule %s at %s", url, os.fspath(path))
        execute(
            self.invocation(
                submodule_add_args(self.shallow, force, url, path),
                stream_stderr=True,
            )
        )

    def submodule_update(
        self,
        force: bool,
        remote: bool,
        paths: Iterable[StrPath] = (),
    ) -> None:
        execute(
            self.invocation(
                submodule_update_args(self.shallow, force, remote, paths),
                stream_stderr=True,
            )
        )
