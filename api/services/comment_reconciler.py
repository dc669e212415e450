"""
Decide how a run's review comments land on the pull request.

Two steps, both pure:

* ``resolve_comment_anchor`` checks a candidate comment against the file
  patch and turns it into an inline comment, a general comment, or nothing.
* ``reconcile`` matches the anchored comments against what the bot already
  posted so repeated deliveries for the same PR state update comments in
  place instead of adding new ones.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Tuple

from api.utils.comment_formatter import (
    SUMMARY_HEADER,
    build_aggregated_comment,
    build_no_issues_comment,
    render_inline_comment,
)
from common.diff_parser import map_line_to_position
from common.github_models import DiffSide, ExistingPRComment, PRFile
from reviewer.models.review_schemas import ReviewComment

logger = logging.getLogger(__name__)


# ── Anchoring ─────────────────────────────────────────────────────────────────

def resolve_comment_anchor(
    comment: ReviewComment,
    file_change: PRFile,
    demote_unchanged: bool = True,
) -> Optional[ReviewComment]:
    """
    Anchor a candidate comment against the reviewed file's patch.

    Returns:
        The comment with ``position`` set when it targets an added line,
        the comment with ``position=None`` when it can only be posted as a
        general comment, or None when it should be dropped.
    """
    anchored = comment.model_copy(update={"file": file_change.filename, "position": None})
    if comment.line is None:
        return anchored

    result = map_line_to_position(file_change.patch, comment.line, DiffSide.RIGHT)

    if not file_change.patch:
        logger.info(
            f"{file_change.filename}:{comment.line} has no patch ({result.reason}); "
            "keeping as general comment"
        )
        return anchored

    if result.position is None:
        logger.info(f"Suppressing comment on {file_change.filename}:{comment.line}: {result.reason}")
        return None

    if result.is_unchanged:
        if not demote_unchanged:
            logger.info(f"Suppressing comment on unchanged line {file_change.filename}:{comment.line}")
            return None
        logger.info(f"Demoting comment on unchanged line {file_change.filename}:{comment.line} to general")
        return anchored

    if not result.is_added:
        logger.info(f"{file_change.filename}:{comment.line} is a deletion; keeping as general comment")
        return anchored

    return anchored.model_copy(update={"position": result.position, "side": DiffSide.RIGHT})


# ── Reconciliation ────────────────────────────────────────────────────────────

@dataclass
class ReconciliationPlan:
    """
    What to post for one delivery.

    ``to_update`` pairs an existing comment id with its new body; it holds the
    matched inline comments and, when one exists, the summary comment
    (``summary_comment_id``). ``to_create`` holds inline comments with no
    match. When ``summary_comment_id`` is None the caller creates the summary
    from ``aggregated_body``.
    """

    to_update: List[Tuple[int, str]] = field(default_factory=list)
    to_create: List[ReviewComment] = field(default_factory=list)
    aggregated_body: str = ""
    summary_comment_id: Optional[int] = None

    @property
    def inline_updates(self) -> List[Tuple[int, str]]:
        return [(cid, body) for cid, body in self.to_update if cid != self.summary_comment_id]


def _same_target(existing: ExistingPRComment, comment: ReviewComment) -> bool:
    return existing.path == comment.file and existing.side == comment.side


def _match_pass(
    pending: List[Optional[ReviewComment]],
    candidates: List[ExistingPRComment],
    claimed: Set[int],
    matches: List[Optional[int]],
    same_anchor: Callable[[ExistingPRComment, ReviewComment], bool],
) -> None:
    for index, comment in enumerate(pending):
        if comment is None or matches[index] is not None:
            continue
        for existing in candidates:
            if existing.id in claimed:
                continue
            if _same_target(existing, comment) and same_anchor(existing, comment):
                matches[index] = existing.id
                claimed.add(existing.id)
                break


def find_summary_comment(existing_issue_comments: List[ExistingPRComment]) -> Optional[ExistingPRComment]:
    """First bot comment carrying the summary header, in host order."""
    for existing in existing_issue_comments:
        if existing.author_is_bot and SUMMARY_HEADER in existing.body:
            return existing
    return None


def reconcile(
    new_comments: List[ReviewComment],
    existing_review_comments: List[ExistingPRComment],
    existing_issue_comments: List[ExistingPRComment],
    files_reviewed: int,
) -> ReconciliationPlan:
    """
    Match this run's comments against the bot's existing comments.

    Inline comments (those with a diff position) are matched on file path and
    side, first by line number and only then by diff position, since positions
    move whenever the diff around them changes. Each existing comment is
    matched at most once; ties go to the first candidate in host order.

    Args:
        new_comments: Anchored comments from every reviewed file
        existing_review_comments: Line comments currently on the PR
        existing_issue_comments: PR-level comments currently on the PR
        files_reviewed: Number of files reviewed in this run (must be > 0
            when ``new_comments`` is empty)

    Returns:
        ReconciliationPlan
    """
    plan = ReconciliationPlan()

    if new_comments:
        plan.aggregated_body = build_aggregated_comment(new_comments)
    else:
        plan.aggregated_body = build_no_issues_comment(files_reviewed)

    inline: List[Optional[ReviewComment]] = [c for c in new_comments if c.position is not None]
    bot_comments = [c for c in existing_review_comments if c.author_is_bot]
    claimed: Set[int] = set()
    matches: List[Optional[int]] = [None] * len(inline)

    _match_pass(inline, bot_comments, claimed, matches,
                lambda existing, comment: existing.line is not None and existing.line == comment.line)
    _match_pass(inline, bot_comments, claimed, matches,
                lambda existing, comment: existing.position is not None and existing.position == comment.position)

    for comment, match in zip(inline, matches):
        if match is not None:
            logger.info(f"Updating inline comment {match} on {comment.file}:{comment.line}")
            plan.to_update.append((match, render_inline_comment(comment)))
        else:
            logger.info(f"Creating inline comment on {comment.file}:{comment.line}")
            plan.to_create.append(comment)

    summary = find_summary_comment(existing_issue_comments)
    if summary is not None:
        logger.info(f"Updating existing summary comment {summary.id}")
        plan.summary_comment_id = summary.id
        plan.to_update.append((summary.id, plan.aggregated_body))
    else:
        logger.info("No existing summary comment; a new one will be created")

    return plan
