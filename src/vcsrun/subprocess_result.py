"""Outcome of a finished child process.

Shared by the process runner and the repository handle.
"""

from __future__ import annotations

import dataclasses


@dataclasses.dataclass(frozen=True)
class SubprocessResult:
    """Exit status and captured output of one process. Internal transport only.

    ``returncode`` is negative when the process was killed by a signal.
    ``stderr`` is empty when the child wrote straight to the terminal.
    """

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def signalled(self) -> bool:
        return self.returncode < 0
