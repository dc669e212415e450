"""Pydantic models for the code review workflow."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from common.github_models import DiffSide

Severity = Literal["suggestion", "warning", "blocker"]
Category = Literal["code-quality", "performance", "security", "best-practices", "documentation"]

DEFAULT_SEVERITY: Severity = "suggestion"
DEFAULT_CATEGORY: Category = "code-quality"


class ReviewComment(BaseModel):
    """One review finding, from the model or translated from static analysis."""

    file: str = Field(description="File path the comment is about")
    line: Optional[int] = Field(default=None, description="Line in the new file, if any")
    body: str = Field(description="Comment text (markdown)")
    severity: Severity = Field(default=DEFAULT_SEVERITY)
    category: Optional[Category] = Field(default=DEFAULT_CATEGORY)
    fix_suggestion: Optional[str] = Field(default=None)
    auto_fixable: bool = Field(default=False)
    # Filled in when the comment is anchored against the file patch
    position: Optional[int] = Field(default=None, description="Diff position within the hunk")
    side: DiffSide = Field(default=DiffSide.RIGHT)


class Finding(BaseModel):
    """A static-analysis result."""

    file: str
    line: Optional[int] = None
    column: Optional[int] = None
    severity: Literal["error", "warning", "info"]
    message: str
    rule: Optional[str] = None
    tool: Literal["eslint", "prettier", "flake8", "other"]
    fixable: bool = False
    fix: Optional[str] = None
    suggestion: Optional[str] = None


class ModelResponse(BaseModel):
    """Raw model output; ``done`` is False when generation was cut off."""

    text: str = ""
    done: bool = True
