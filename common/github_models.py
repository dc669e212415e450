from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class DiffSide(str, Enum):
    LEFT = "LEFT"
    RIGHT = "RIGHT"


class FileStatus(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    RENAMED = "renamed"
    COPIED = "copied"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class InstallationToken(BaseModel):
    """Short-lived installation access token."""

    token: str
    expires_at: datetime


class PRFile(BaseModel):
    """One changed file of a pull request, as listed by GitHub."""

    filename: str
    status: FileStatus
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    # Absent for binary files and for diffs GitHub refuses to render.
    patch: Optional[str] = None


class PRFilesResult(BaseModel):
    files: list[PRFile] = Field(default_factory=list)
    base_commit: str
    head_commit: str


class ExistingPRComment(BaseModel):
    """A comment already on the pull request. Read-only to the reconciler."""

    id: int
    body: str = ""
    path: Optional[str] = None
    position: Optional[int] = None
    line: Optional[int] = None
    side: DiffSide = DiffSide.RIGHT
    author_login: str = ""
    author_type: str = "User"

    @property
    def author_is_bot(self) -> bool:
        return self.author_type == "Bot" or "[bot]" in self.author_login
