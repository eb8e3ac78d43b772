"""Data models for vcsrun command output."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RepoStatus(BaseModel):
    """Snapshot of a working directory, as reported by ``vcsrun status``."""

    root: str
    in_repo: bool
    clean: bool | None = Field(default=None, description="None outside a repository.")
    commit: str | None = Field(
        default=None,
        description="Short HEAD hash. None before the first commit.",
    )
    tags: list[str] = Field(default_factory=list)
