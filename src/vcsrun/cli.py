"""CLI entry point for vcsrun.

Provides ``vcsrun root``, ``clone``, ``checkout``, ``init``, ``add``, ``rm``,
``commit``, ``status``, ``hash``, ``tags``, ``ensure-clean``, ``install``,
``update``, and ``missing`` subcommands.

Follows Function Core / Imperative Shell:
- Pure functions: verbosity_level, format_status, install_commit_message
- Imperative shell: collect_status, _vcs_errors
- Click commands: main and one command per repository operation
"""

from __future__ import annotations

import contextlib
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from vcsrun.config import color_enabled, load_config, load_dotenv
from vcsrun.git import Git
from vcsrun.models import RepoStatus
from vcsrun.process import ExecutionError, VcsError
from vcsrun.tracing import init_tracing, shutdown_tracing

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------


def verbosity_level(verbose: int) -> int:
    """Map the number of ``-v`` flags to a logging level."""
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


def format_status(status: RepoStatus) -> str:
    """Format a RepoStatus for human-readable terminal output."""
    lines = [f"Repository: {status.root}"]
    if not status.in_repo:
        lines.append("Status: not a git repository")
        return "\n".join(lines)

    lines.append(f"Status: {'clean' if status.clean else 'dirty'}")
    lines.append(f"HEAD: {status.commit or '(no commits)'}")
    lines.append(f"Tags: {', '.join(status.tags) if status.tags else '(none)'}")
    return "\n".join(lines)


def install_commit_message(url: str, path: Path) -> str:
    """Commit message recorded after installing a dependency."""
    return f"vcsrun install: {path.name}\n\nSource: {url}"


# ---------------------------------------------------------------------------
# Imperative shell
# ---------------------------------------------------------------------------


def collect_status(git: Git) -> RepoStatus:
    """Query the repository behind *git* for a status snapshot."""
    if not git.is_in_repo():
        return RepoStatus(root=str(git.root), in_repo=False)

    try:
        commit = git.commit_hash(short=True)
    except ExecutionError:
        # No HEAD yet.
        commit = None

    return RepoStatus(
        root=str(git.root),
        in_repo=True,
        clean=git.is_clean(),
        commit=commit,
        tags=git.tag().splitlines(),
    )


@contextlib.contextmanager
def _vcs_errors() -> Iterator[None]:
    """Report a VcsError on stderr and exit with EXIT_FAILURE."""
    try:
        yield
    except VcsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILURE)


# ---------------------------------------------------------------------------
# Click commands
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="vcsrun")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Repository directory. Defaults to VCSRUN_ROOT or the discovered project root.",
)
@click.option("--quiet", is_flag=True, help="Do not stream git progress output.")
@click.option("--shallow", is_flag=True, help="Use depth-1 history for submodules.")
@click.option("--no-gpg-sign", is_flag=True, help="Never GPG-sign commits.")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (repeatable).")
@click.pass_context
def main(
    ctx: click.Context,
    root: Path | None,
    quiet: bool,
    shallow: bool,
    no_gpg_sign: bool,
    verbose: int,
) -> None:
    """vcsrun: drive git repositories from scripts."""
    if verbose:
        logging.basicConfig(
            level=verbosity_level(verbose),
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )
    if not color_enabled():
        ctx.color = False

    load_dotenv()
    try:
        config = load_config(root)
        init_tracing()
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    ctx.call_on_close(shutdown_tracing)

    git = Git.from_config(config)
    if quiet:
        git = git.with_quiet(True)
    if shallow:
        git = git.with_shallow(True)
    if no_gpg_sign:
        git = git.with_no_gpg_sign(True)
    logger.debug("Using %s", git)
    ctx.obj = git


@main.command("root")
@click.argument("path", required=False, type=click.Path(exists=True, path_type=Path))
@click.pass_obj
def root_cmd(git: Git, path: Path | None) -> None:
    """Print the toplevel directory of the repository containing PATH."""
    with _vcs_errors():
        click.echo(str(Git.root_of(path or git.root)))


@main.command()
@click.argument("source")
@click.argument("dest", required=False, type=click.Path(path_type=Path))
@click.option("--shallow", "shallow_clone", is_flag=True, help="Clone with depth-1 history.")
@click.pass_obj
def clone(git: Git, source: str, dest: Path | None, shallow_clone: bool) -> None:
    """Clone SOURCE, with submodules, into DEST."""
    with _vcs_errors():
        Git.clone(shallow_clone or git.shallow, source, dest, cwd=git.root, quiet=git.quiet)


@main.command()
@click.argument("ref")
@click.option("--recursive", is_flag=True, help="Also update submodules.")
@click.pass_obj
def checkout(git: Git, ref: str, recursive: bool) -> None:
    """Check out REF."""
    with _vcs_errors():
        git.checkout(recursive, ref)


@main.command()
@click.pass_obj
def init(git: Git) -> None:
    """Initialize a repository in the root directory."""
    with _vcs_errors():
        git.init()


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.pass_obj
def add(git: Git, paths: tuple[str, ...]) -> None:
    """Stage PATHS."""
    with _vcs_errors():
        git.add(paths)


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.option("--force", is_flag=True, help="Remove even with local modifications.")
@click.pass_obj
def rm(git: Git, paths: tuple[str, ...], force: bool) -> None:
    """Remove PATHS from the working tree and the index."""
    with _vcs_errors():
        git.rm(force, paths)


@main.command()
@click.option("-m", "--message", required=True, help="Commit message.")
@click.pass_obj
def commit(git: Git, message: str) -> None:
    """Commit staged changes. A clean tree is not an error."""
    with _vcs_errors():
        git.commit(message)


@main.command()
@click.option("--json", "output_json", is_flag=True, help="Machine-readable JSON output.")
@click.pass_obj
def status(git: Git, output_json: bool) -> None:
    """Show whether the root is a clean repository, its HEAD, and its tags."""
    with _vcs_errors():
        snapshot = collect_status(git)
    if output_json:
        click.echo(snapshot.model_dump_json(indent=2))
    else:
        click.echo(format_status(snapshot))


@main.command("hash")
@click.option("--short", is_flag=True, help="Abbreviated hash.")
@click.pass_obj
def hash_cmd(git: Git, short: bool) -> None:
    """Print the HEAD commit hash."""
    with _vcs_errors():
        click.echo(git.commit_hash(short))


@main.command()
@click.pass_obj
def tags(git: Git) -> None:
    """List tags."""
    with _vcs_errors():
        output = git.tag()
    if output:
        click.echo(output)


@main.command("ensure-clean")
@click.pass_obj
def ensure_clean(git: Git) -> None:
    """Fail unless the working tree is clean."""
    with _vcs_errors():
        git.ensure_clean()


@main.command()
@click.argument("url")
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--force", is_flag=True, help="Add even if PATH is ignored or exists.")
@click.option("--no-commit", is_flag=True, help="Do not require a clean tree or commit.")
@click.pass_obj
def install(git: Git, url: str, path: Path, force: bool, no_commit: bool) -> None:
    """Add the repository at URL as a submodule at PATH and commit it."""
    with _vcs_errors():
        if not no_commit:
            git.ensure_clean()
        git.submodule_add(force, url, path)
        if not no_commit:
            git.commit(install_commit_message(url, path))
    click.echo(f"Installed {path}")


@main.command()
@click.argument("paths", nargs=-1)
@click.option("--force", is_flag=True, help="Discard local changes in submodules.")
@click.option("--remote", is_flag=True, help="Move submodules to their remote branch tip.")
@click.pass_obj
def update(git: Git, paths: tuple[str, ...], force: bool, remote: bool) -> None:
    """Initialize and update submodules under PATHS (all by default)."""
    with _vcs_errors():
        git.submodule_update(force, remote, paths)


@main.command()
@click.argument("paths", nargs=-1)
@click.pass_obj
def missing(git: Git, paths: tuple[str, ...]) -> None:
    """Exit non-zero if any submodule under PATHS is not initialized."""
    with _vcs_errors():
        has_missing = git.has_missing_dependencies(paths)
    if has_missing:
        click.echo("Missing dependencies found. Run `vcsrun update` to install them.", err=True)
        sys.exit(EXIT_FAILURE)
    click.echo("All dependencies are installed.")
