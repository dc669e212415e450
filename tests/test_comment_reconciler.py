"""Tests for comment anchoring and reconciliation against existing PR comments."""

from typing import List

import pytest

from api.services.comment_reconciler import (
    find_summary_comment,
    reconcile,
    resolve_comment_anchor,
)
from api.utils.comment_formatter import SUMMARY_HEADER
from common.github_models import DiffSide, ExistingPRComment, FileStatus, PRFile
from reviewer.models.review_schemas import ReviewComment

PATCH = "\n".join([
    "@@ -1,3 +1,4 @@",
    " line1",
    "-old2",
    "+new2",
    "+new3",
    " line3",
])


def _file(patch=PATCH, name="src/app.py") -> PRFile:
    return PRFile(filename=name, status=FileStatus.MODIFIED, additions=2, deletions=1, patch=patch)


def _inline(line: int, position: int, file="src/app.py", body="issue") -> ReviewComment:
    return ReviewComment(file=file, line=line, position=position, body=body)


def _bot(id: int, **kwargs) -> ExistingPRComment:
    return ExistingPRComment(id=id, author_login="review-bot[bot]", author_type="Bot", **kwargs)


class TestResolveCommentAnchor:
    def test_added_line_gets_position(self):
        resolved = resolve_comment_anchor(ReviewComment(file="other.py", line=3, body="x"), _file())

        assert resolved.file == "src/app.py"
        assert resolved.position == 4
        assert resolved.side == DiffSide.RIGHT

    def test_unchanged_line_is_demoted(self):
        resolved = resolve_comment_anchor(ReviewComment(file="src/app.py", line=1, body="x"), _file())

        assert resolved is not None
        assert resolved.position is None
        assert resolved.line == 1

    def test_unchanged_line_suppressed_when_demotion_disabled(self):
        comment = ReviewComment(file="src/app.py", line=1, body="x")
        assert resolve_comment_anchor(comment, _file(), demote_unchanged=False) is None

    def test_line_outside_diff_is_dropped(self):
        assert resolve_comment_anchor(ReviewComment(file="src/app.py", line=40, body="x"), _file()) is None

    def test_missing_patch_keeps_general_comment(self):
        resolved = resolve_comment_anchor(ReviewComment(file="src/app.py", line=7, body="x"), _file(patch=None))
        assert resolved is not None
        assert resolved.position is None

    def test_comment_without_line_is_general(self):
        resolved = resolve_comment_anchor(ReviewComment(file="src/app.py", body="x"), _file())
        assert resolved.position is None
        assert resolved.line is None


class TestReconcile:
    def test_first_run_creates_everything(self):
        comments = [_inline(2, 3), _inline(3, 4), ReviewComment(file="src/app.py", body="general")]

        plan = reconcile(comments, [], [], files_reviewed=1)

        assert plan.to_update == []
        assert plan.to_create == comments[:2]
        assert plan.summary_comment_id is None
        assert plan.aggregated_body.startswith(SUMMARY_HEADER)

    def test_repeated_delivery_is_idempotent(self):
        comments = [_inline(2, 3), _inline(3, 4, body="other")]
        first = reconcile(comments, [], [], files_reviewed=1)

        # What the first run left on the PR
        posted_review: List[ExistingPRComment] = [
            _bot(100 + i, path=c.file, line=c.line, position=c.position, side=c.side)
            for i, c in enumerate(first.to_create)
        ]
        posted_issue = [_bot(900, body=first.aggregated_body)]

        second = reconcile(comments, posted_review, posted_issue, files_reviewed=1)

        assert second.to_create == []
        assert sorted(cid for cid, _ in second.to_update) == [100, 101, 900]
        assert second.summary_comment_id == 900
        assert (900, first.aggregated_body) in second.to_update

    def test_line_match_preferred_over_position_match(self):
        existing = [
            _bot(1, path="src/app.py", line=50, position=3),
            _bot(2, path="src/app.py", line=2, position=9),
        ]

        plan = reconcile([_inline(2, 3)], existing, [], files_reviewed=1)

        assert [cid for cid, _ in plan.to_update] == [2]

    def test_position_match_when_line_differs(self):
        existing = [_bot(7, path="src/app.py", line=99, position=3)]
        plan = reconcile([_inline(2, 3)], existing, [], files_reviewed=1)
        assert [cid for cid, _ in plan.to_update] == [7]

    def test_position_fallback_can_claim_unrelated_comment(self):
        # Known tradeoff: a shifted diff can line up an unrelated bot comment by position
        existing = [_bot(8, path="src/app.py", line=40, position=4, body="about something else")]
        plan = reconcile([_inline(3, 4)], existing, [], files_reviewed=1)
        assert [cid for cid, _ in plan.to_update] == [8]

    def test_each_existing_comment_matched_once(self):
        existing = [_bot(1, path="src/app.py", line=2, position=3)]
        plan = reconcile([_inline(2, 3), _inline(2, 3, body="dup")], existing, [], files_reviewed=1)

        assert [cid for cid, _ in plan.to_update] == [1]
        assert [c.body for c in plan.to_create] == ["dup"]

    def test_ignores_human_comments_and_other_targets(self):
        existing = [
            ExistingPRComment(id=1, path="src/app.py", line=2, position=3, author_login="alice"),
            _bot(2, path="src/other.py", line=2, position=3),
            _bot(3, path="src/app.py", line=2, position=3, side=DiffSide.LEFT),
        ]
        plan = reconcile([_inline(2, 3)], existing, [], files_reviewed=1)

        assert plan.to_update == []
        assert len(plan.to_create) == 1

    def test_login_with_bot_suffix_counts_as_bot(self):
        existing = [ExistingPRComment(id=5, path="src/app.py", line=2, author_login="app[bot]")]
        plan = reconcile([_inline(2, 3)], existing, [], files_reviewed=1)
        assert [cid for cid, _ in plan.to_update] == [5]

    def test_no_comments_uses_no_issues_body(self):
        plan = reconcile([], [], [], files_reviewed=3)
        assert "Reviewed 3 files." in plan.aggregated_body

    def test_no_comments_and_no_files_is_an_error(self):
        with pytest.raises(ValueError):
            reconcile([], [], [], files_reviewed=0)

    def test_summary_updated_in_place(self):
        issue_comments = [
            ExistingPRComment(id=1, body=f"{SUMMARY_HEADER}\n\nby a human", author_login="alice"),
            _bot(2, body="unrelated bot note"),
            _bot(3, body=f"{SUMMARY_HEADER}\n\nold"),
        ]
        plan = reconcile([ReviewComment(file="a.py", body="x")], [], issue_comments, files_reviewed=1)

        assert plan.summary_comment_id == 3
        assert plan.to_update == [(3, plan.aggregated_body)]
        assert plan.inline_updates == []


class TestFindSummaryComment:
    def test_first_in_host_order_wins_with_duplicates(self):
        comments = [_bot(11, body=f"{SUMMARY_HEADER} a"), _bot(12, body=f"{SUMMARY_HEADER} b")]
        assert find_summary_comment(comments).id == 11

    def test_none_when_absent(self):
        assert find_summary_comment([_bot(1, body="hello")]) is None
