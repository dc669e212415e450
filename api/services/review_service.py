"""
PR review delivery pipeline.

One webhook delivery -> list changed files -> static analysis + model review
per file -> anchor comments against each patch -> reconcile against what the
bot already posted -> create or update the single summary comment.
"""

import logging
from pathlib import PurePosixPath
from typing import List, Optional

from api.models.schemas import PullRequestEvent
from api.services.comment_reconciler import ReconciliationPlan, reconcile, resolve_comment_anchor
from api.utils.comment_formatter import render_inline_comment
from common.errors import AuthenticationError, ReviewIncompleteError
from common.github_client import GitHubClient
from common.github_models import FileStatus, PRFile
from reviewer.agent.review_pipeline import FileReviewer
from reviewer.config import ReviewerConfig, config
from reviewer.models.review_schemas import ReviewComment
from reviewer.static_analysis import StaticAnalyzer
from reviewer.static_comments import findings_to_comments

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = {FileStatus.ADDED, FileStatus.MODIFIED}
EXCLUDED_PREFIXES = (".github/workflows/",)
# Reviewed from static findings only; the model adds little on data/docs files
RULE_BASED_EXTENSIONS = {".json", ".md", ".markdown"}


def select_reviewable_files(files: List[PRFile]) -> List[PRFile]:
    """Added or modified files outside CI workflow definitions."""
    return [
        f for f in files
        if f.status in REVIEWABLE_STATUSES and not f.filename.startswith(EXCLUDED_PREFIXES)
    ]


def is_rule_based(path: str) -> bool:
    return PurePosixPath(path).suffix.lower() in RULE_BASED_EXTENSIONS


class ReviewService:
    """Runs the review for one pull-request delivery end to end."""

    def __init__(
        self,
        github: GitHubClient,
        reviewer: FileReviewer,
        analyzer: StaticAnalyzer,
        settings: ReviewerConfig = config,
    ):
        self.github = github
        self.reviewer = reviewer
        self.analyzer = analyzer
        self.settings = settings

    async def _review_file(
        self,
        owner: str,
        repo: str,
        file_change: PRFile,
        head_sha: str,
        installation_id: int,
    ) -> List[ReviewComment]:
        path = file_change.filename
        content = await self.github.get_file_content(owner, repo, path, head_sha, installation_id)
        try:
            findings = await self.analyzer.analyze(path, content)
        except Exception as e:
            logger.warning(f"Static analysis of {path} failed, continuing without findings: {e}")
            findings = []
        logger.info(f"Static analysis found {len(findings)} issue(s) in {path}")

        if is_rule_based(path):
            candidates = findings_to_comments(findings, min_severity="warning", include_info=False, file_path=path)
        else:
            candidates = await self.reviewer.review_file(content, path, findings, file_change)

        anchored: List[ReviewComment] = []
        for candidate in candidates:
            resolved = resolve_comment_anchor(candidate, file_change, self.settings.demote_unchanged_lines)
            if resolved is not None:
                anchored.append(resolved)
        logger.info(f"{path}: {len(anchored)}/{len(candidates)} comment(s) kept after anchoring")
        return anchored

    async def _post(
        self,
        event: PullRequestEvent,
        plan: ReconciliationPlan,
        head_sha: str,
    ) -> None:
        owner, repo, pr_number = event.owner, event.repo, event.number
        installation_id = event.installation_id

        if self.settings.post_inline_comments:
            for comment_id, body in plan.inline_updates:
                await self.github.update_review_comment(owner, repo, pr_number, comment_id, body, installation_id)
            for comment in plan.to_create:
                await self.github.create_review_comment(
                    owner,
                    repo,
                    pr_number,
                    path=comment.file,
                    line=comment.line,
                    body=render_inline_comment(comment),
                    commit_sha=head_sha,
                    installation_id=installation_id,
                    side=comment.side,
                )

        if plan.summary_comment_id is not None:
            await self.github.update_issue_comment(
                owner, repo, pr_number, plan.summary_comment_id, plan.aggregated_body, installation_id
            )
        else:
            await self.github.create_issue_comment(owner, repo, pr_number, plan.aggregated_body, installation_id)

    async def handle_pull_request_event(self, event: PullRequestEvent) -> Optional[ReconciliationPlan]:
        """
        Review a pull request and post the summary comment.

        Returns:
            The plan that was applied, or None when there was nothing to review.

        Raises:
            AuthenticationError: the installation token could not be obtained
            GitHubAPIError: listing or posting comments failed
            ReviewIncompleteError: every reviewable file failed; nothing was posted
        """
        owner, repo, pr_number = event.owner, event.repo, event.number
        installation_id = event.installation_id
        pr_label = f"{owner}/{repo}#{pr_number}"
        logger.info(f"Starting review pipeline for {pr_label}")

        # ── Step 1: Fetch changed files ─────────────────────────────────
        pr_files = await self.github.list_pr_files(owner, repo, pr_number, installation_id)
        head_sha = event.pull_request.head.sha
        if pr_files.head_commit != head_sha:
            logger.warning(
                f"Head SHA mismatch for {pr_label}: payload={head_sha[:7]} "
                f"fetched={pr_files.head_commit[:7]}; using the payload's"
            )

        # ── Step 2: Select reviewable files ─────────────────────────────
        files = select_reviewable_files(pr_files.files)
        if not files:
            logger.info(f"No reviewable files in {pr_label}; nothing to post")
            return None
        logger.info(f"Reviewing {len(files)} of {len(pr_files.files)} changed file(s) in {pr_label}")

        # ── Step 3: Review each file ────────────────────────────────────
        all_comments: List[ReviewComment] = []
        files_reviewed = 0
        for index, file_change in enumerate(files, start=1):
            logger.info(f"[{index}/{len(files)}] Reviewing {file_change.filename}")
            try:
                all_comments.extend(
                    await self._review_file(owner, repo, file_change, head_sha, installation_id)
                )
            except AuthenticationError:
                raise
            except Exception as e:
                logger.error(f"Review of {file_change.filename} failed, skipping: {e}", exc_info=e)
                continue
            files_reviewed += 1

        if files_reviewed == 0:
            raise ReviewIncompleteError(pr_label, len(files))

        # ── Step 4: Reconcile against existing comments ─────────────────
        existing_review = await self.github.list_review_comments(owner, repo, pr_number, installation_id)
        existing_issue = await self.github.list_issue_comments(owner, repo, pr_number, installation_id)
        plan = reconcile(all_comments, existing_review, existing_issue, files_reviewed=files_reviewed)
        logger.info(
            f"Reconciled {len(all_comments)} comment(s): "
            f"{len(plan.to_update)} to update, {len(plan.to_create)} to create"
        )

        # ── Step 5: Post ────────────────────────────────────────────────
        await self._post(event, plan, head_sha)
        logger.info(f"Posted review summary on {pr_label}")
        return plan


async def execute_pr_review(service: ReviewService, event: PullRequestEvent) -> None:
    """Background-task entry point; failures are logged, never raised."""
    try:
        await service.handle_pull_request_event(event)
    except AuthenticationError as e:
        logger.error(
            f"GitHub App authentication failed for {event.owner}/{event.repo}#{event.number}: {e}. "
            "Check GITHUB_APP_ID and the private key configuration."
        )
    except ReviewIncompleteError as e:
        logger.error(f"Review pipeline produced no results: {e}")
    except Exception as e:
        logger.error(f"Review pipeline failed for {event.owner}/{event.repo}#{event.number}: {e}", exc_info=e)
