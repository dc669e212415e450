"""End-to-end tests of the delivery pipeline against fake collaborators."""

import pytest

from api.models.schemas import PullRequestEvent
from api.services.review_service import ReviewService, execute_pr_review, is_rule_based, select_reviewable_files
from api.utils.comment_formatter import SUMMARY_HEADER
from common.errors import AuthenticationError, AuthFailure, ReviewIncompleteError
from common.github_models import FileStatus, PRFile
from conftest import FakeAnalyzer, FakeGitHub, StaticModel
from reviewer.agent.review_pipeline import FileReviewer
from reviewer.config import ReviewerConfig
from reviewer.models.review_schemas import Finding

APP_PATCH = "@@ -1,2 +1,3 @@\n a\n+b\n c"
MODEL_OUTPUT = (
    '[{"line": 2, "body": "check b"},'
    ' {"line": 1, "body": "about context"},'
    ' {"line": 50, "body": "outside the diff"}]'
)


def _files():
    return [
        PRFile(filename="src/app.py", status=FileStatus.MODIFIED, additions=1, patch=APP_PATCH),
        PRFile(filename="README.md", status=FileStatus.ADDED, additions=3),
        PRFile(filename="old.py", status=FileStatus.REMOVED, deletions=4),
        PRFile(filename=".github/workflows/ci.yml", status=FileStatus.MODIFIED, additions=1, patch="@@ -1 +1 @@\n+x"),
    ]


def _service(github, model_text=MODEL_OUTPUT, findings=None, **settings):
    config = ReviewerConfig(context_lines=1, **settings)
    return ReviewService(github, FileReviewer(StaticModel(model_text), config), FakeAnalyzer(findings), config)


def _github():
    return FakeGitHub(_files(), {"src/app.py": "a\nb\nc", "README.md": "# Title\n\ntext"})


README_FINDINGS = {
    "README.md": [Finding(file="README.md", line=1, severity="warning", message="heading style", tool="other")]
}


class TestFileSelection:
    def test_only_added_or_modified_outside_workflows(self):
        assert [f.filename for f in select_reviewable_files(_files())] == ["src/app.py", "README.md"]

    @pytest.mark.parametrize("path,expected", [("a.json", True), ("docs/x.MD", True), ("a.markdown", True), ("a.py", False)])
    def test_rule_based_extensions(self, path, expected):
        assert is_rule_based(path) is expected


class TestReviewService:
    @pytest.mark.asyncio
    async def test_first_delivery_creates_summary(self, pr_payload):
        github = _github()
        service = _service(github, findings=README_FINDINGS)

        plan = await service.handle_pull_request_event(PullRequestEvent.model_validate(pr_payload))

        assert [call[0] for call in github.calls] == ["create_issue_comment"]
        body = github.issue_comments[0].body
        assert body == plan.aggregated_body
        assert body.startswith(SUMMARY_HEADER)
        assert "Reviewed **2 files** with **3 comments**." in body
        assert "### 📄 src/app.py (2 comments)" in body
        assert "### 📄 README.md (1 comment)" in body
        assert "outside the diff" not in body
        assert set(github.content_refs) == {"headsha1234567"}

    @pytest.mark.asyncio
    async def test_repeated_delivery_updates_in_place(self, pr_payload):
        github = _github()
        service = _service(github, findings=README_FINDINGS, post_inline_comments=True)
        event = PullRequestEvent.model_validate(pr_payload)

        await service.handle_pull_request_event(event)
        first_calls = list(github.calls)
        second = await service.handle_pull_request_event(event)

        assert [c[0] for c in first_calls] == ["create_review_comment", "create_issue_comment"]
        assert second.to_create == []
        second_calls = [c[0] for c in github.calls[len(first_calls):]]
        assert second_calls == ["update_review_comment", "update_issue_comment"]
        assert len(github.issue_comments) == 1

    @pytest.mark.asyncio
    async def test_inline_comment_targets_added_line_at_payload_head(self, pr_payload):
        github = _github()
        github.head_commit = "someothersha99"
        service = _service(github, post_inline_comments=True)

        await service.handle_pull_request_event(PullRequestEvent.model_validate(pr_payload))

        created = [c for c in github.calls if c[0] == "create_review_comment"]
        assert created == [("create_review_comment", created[0][1], "src/app.py", 2, "headsha1234567")]
        assert set(github.content_refs) == {"headsha1234567"}

    @pytest.mark.asyncio
    async def test_suppressing_unchanged_lines(self, pr_payload):
        github = _github()
        service = _service(github, demote_unchanged_lines=False)

        plan = await service.handle_pull_request_event(PullRequestEvent.model_validate(pr_payload))

        assert "about context" not in plan.aggregated_body
        assert "check b" in plan.aggregated_body

    @pytest.mark.asyncio
    async def test_no_reviewable_files_posts_nothing(self, pr_payload):
        github = FakeGitHub([PRFile(filename="gone.py", status=FileStatus.REMOVED)], {})

        result = await _service(github).handle_pull_request_event(PullRequestEvent.model_validate(pr_payload))

        assert result is None
        assert github.calls == []

    @pytest.mark.asyncio
    async def test_clean_review_posts_no_issues_summary(self, pr_payload):
        github = _github()

        await _service(github, model_text="[]").handle_pull_request_event(PullRequestEvent.model_validate(pr_payload))

        assert "Reviewed 2 files.\n\n✅ No issues found. Great work!" in github.issue_comments[0].body

    @pytest.mark.asyncio
    async def test_failed_file_does_not_block_the_others(self, pr_payload):
        github = _github()
        github.fail_content_for = {"README.md"}

        plan = await _service(github, findings=README_FINDINGS).handle_pull_request_event(
            PullRequestEvent.model_validate(pr_payload)
        )

        assert "### 📄 src/app.py" in plan.aggregated_body
        assert "README.md" not in plan.aggregated_body

    @pytest.mark.asyncio
    async def test_authentication_error_is_fatal(self, pr_payload):
        github = _github()

        async def refuse(*args, **kwargs):
            raise AuthenticationError("bad key", app_id=1, failure=AuthFailure.INVALID_PRIVATE_KEY)

        github.list_pr_files = refuse
        service = _service(github)
        event = PullRequestEvent.model_validate(pr_payload)

        with pytest.raises(AuthenticationError):
            await service.handle_pull_request_event(event)

        # the background-task entry point logs instead of raising
        await execute_pr_review(service, event)
        assert github.calls == []

    @pytest.mark.asyncio
    async def test_static_analysis_crash_keeps_model_review(self, pr_payload):
        class CrashingAnalyzer:
            async def analyze(self, file_path, content):
                raise RuntimeError("linter crashed")

        github = FakeGitHub(
            [PRFile(filename="src/app.py", status=FileStatus.MODIFIED, additions=1, patch=APP_PATCH)],
            {"src/app.py": "a\nb\nc"},
        )
        config = ReviewerConfig(context_lines=1)
        service = ReviewService(
            github, FileReviewer(StaticModel('[{"line": 2, "body": "check b"}]'), config), CrashingAnalyzer(), config
        )

        plan = await service.handle_pull_request_event(PullRequestEvent.model_validate(pr_payload))

        assert "check b" in plan.aggregated_body
        assert "No issues found" not in plan.aggregated_body

    @pytest.mark.asyncio
    async def test_every_file_failing_posts_nothing(self, pr_payload):
        github = _github()
        github.fail_content_for = {"src/app.py", "README.md"}
        service = _service(github, model_text="[]")
        event = PullRequestEvent.model_validate(pr_payload)

        with pytest.raises(ReviewIncompleteError) as exc_info:
            await service.handle_pull_request_event(event)

        assert exc_info.value.failed_files == 2
        assert github.calls == []

        await execute_pr_review(service, event)
        assert github.calls == []

    @pytest.mark.asyncio
    async def test_summary_counts_only_completed_files(self, pr_payload):
        github = _github()
        github.fail_content_for = {"README.md"}

        plan = await _service(github, model_text="[]").handle_pull_request_event(
            PullRequestEvent.model_validate(pr_payload)
        )

        assert "Reviewed 1 file.\n\n✅ No issues found. Great work!" in plan.aggregated_body
