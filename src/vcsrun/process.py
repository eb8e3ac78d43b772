"""Child process execution with uniform failure reporting.

Runs one external command to completion and classifies the outcome. Every
failure, whatever the command, surfaces as a single ``ExecutionError`` whose
message names the command, its exit status, and the most useful diagnostic
text it produced.

Design follows Function Core / Imperative Shell:
- Transport: Invocation (what to run), SubprocessResult (what happened)
- Pure functions: command_name, diagnostic, format_failure
- Imperative shell: run (never raises on non-zero), execute, execute_text
"""

from __future__ import annotations

import dataclasses
import logging
import os
import subprocess
from pathlib import Path

from vcsrun.subprocess_result import SubprocessResult
from vcsrun.tracing import command_attributes, get_tracer

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class VcsError(Exception):
    """Base exception for all vcsrun errors."""


class ExecutionError(VcsError):
    """An external process exited non-zero, was killed, or could not start.

    ``returncode`` is ``None`` when the process never started.
    """

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


# ---------------------------------------------------------------------------
# Invocation descriptor
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class Invocation:
    """One command to run: program, arguments, working directory, stderr mode.

    With ``capture_stderr=False`` the child writes its stderr straight to the
    parent's terminal and the result carries an empty ``stderr``.
    """

    program: str
    args: tuple[str, ...] = ()
    cwd: Path | None = None
    capture_stderr: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(os.fspath(a) for a in self.args))
        if self.cwd is not None:
            object.__setattr__(self, "cwd", Path(self.cwd))

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def command_name(invocation: Invocation) -> str:
    """Readable name for a command: the program plus its subcommand, if any.

    ``git submodule update`` reads as ``git submodule``; ``git --version``
    reads as ``git``.
    """
    name = invocation.program
    if invocation.args and not invocation.args[0].startswith("-"):
        name = f"{name} {invocation.args[0]}"
    return name


def diagnostic(result: SubprocessResult) -> str:
    """Trimmed stderr, falling back to trimmed stdout when stderr is blank."""
    return result.stderr.strip() or result.stdout.strip()


def format_failure(invocation: Invocation, result: SubprocessResult) -> str:
    """Build the error message for a failed process."""
    name = command_name(invocation)
    if result.signalled:
        msg = f"{name} terminated by a signal"
    else:
        msg = f"{name} exited with code {result.returncode}"
    detail = diagnostic(result)
    if detail:
        msg = f"{msg}: {detail}"
    return msg


# ---------------------------------------------------------------------------
# Imperative shell
# ---------------------------------------------------------------------------


def run(invocation: Invocation) -> SubprocessResult:
    """Run *invocation* to completion and return its outcome.

    Does **not** raise on non-zero exit codes; callers decide what constitutes
    an error. Never goes through a shell.

    stdout is always captured. stderr is captured only when
    ``invocation.capture_stderr`` is set; otherwise the child writes straight
    to the inherited stderr and the result carries ``stderr=""``, so failure
    messages for such calls report only the exit code and any stdout.

    Raises:
        ExecutionError: If the process could not be started at all.
    """
    logger.debug("Executing %s (cwd=%s)", invocation.argv, invocation.cwd)

    with get_tracer().start_as_current_span("subprocess") as span:
        span.set_attributes(
            command_attributes(invocation.program, invocation.args, invocation.cwd)
        )

        try:
            completed = subprocess.run(
                invocation.argv,
                cwd=invocation.cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE if invocation.capture_stderr else None,
                check=False,
            )
        except OSError as e:
            msg = f"failed to execute {command_name(invocation)}: {e}"
            raise ExecutionError(msg) from e

        span.set_attributes(
            command_attributes(
                invocation.program,
                invocation.args,
                invocation.cwd,
                returncode=completed.returncode,
            )
        )

    result = SubprocessResult(
        returncode=completed.returncode,
        stdout=_decode(completed.stdout),
        stderr=_decode(completed.stderr),
    )
    logger.debug(
        "Exited %s: code=%d stdout=%r stderr=%r",
        command_name(invocation),
        result.returncode,
        result.stdout,
        result.stderr,
    )
    return result


def execute(invocation: Invocation) -> SubprocessResult:
    """Run *invocation* and return its outcome only if it succeeded.

    Raises:
        ExecutionError: On a non-zero exit, a signal, or a spawn failure.
    """
    result = run(invocation)
    if not result.ok:
        raise ExecutionError(
            format_failure(invocation, result),
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return result


def execute_text(invocation: Invocation) -> str:
    """Run *invocation* and return its trimmed stdout.

    Raises:
        ExecutionError: As for ``execute``.
    """
    return execute(invocation).stdout.strip()
