"""Shared fixtures: webhook payloads and fake collaborators."""

import copy
from typing import Dict, List, Optional, Set

import pytest

from common.errors import GitHubAPIError
from common.github_models import DiffSide, ExistingPRComment, PRFile, PRFilesResult
from reviewer.models.review_schemas import Finding, ModelResponse

PULL_REQUEST_PAYLOAD = {
    "action": "opened",
    "number": 7,
    "pull_request": {
        "number": 7,
        "title": "Add feature",
        "head": {"sha": "headsha1234567", "ref": "feature"},
        "base": {"sha": "basesha1234567", "ref": "main"},
    },
    "repository": {
        "full_name": "octo/widgets",
        "name": "widgets",
        "owner": {"login": "octo"},
    },
    "installation": {"id": 555},
}


@pytest.fixture
def pr_payload() -> dict:
    return copy.deepcopy(PULL_REQUEST_PAYLOAD)


class FakeGitHub:
    """In-memory stand-in for GitHubClient that remembers what was posted."""

    def __init__(self, files: List[PRFile], contents: Dict[str, str], head_commit: str = "headsha1234567"):
        self.files = files
        self.contents = contents
        self.head_commit = head_commit
        self.review_comments: List[ExistingPRComment] = []
        self.issue_comments: List[ExistingPRComment] = []
        self.content_refs: List[str] = []
        self.calls: List[tuple] = []
        self.fail_content_for: Set[str] = set()
        self._next_id = 1000

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    async def list_pr_files(self, owner, repo, pr_number, installation_id):
        return PRFilesResult(files=self.files, base_commit="basesha1234567", head_commit=self.head_commit)

    async def get_file_content(self, owner, repo, path, ref, installation_id):
        self.content_refs.append(ref)
        if path in self.fail_content_for:
            raise GitHubAPIError("get_file_content", 404, "Not Found")
        return self.contents[path]

    async def list_review_comments(self, owner, repo, pr_number, installation_id):
        return list(self.review_comments)

    async def list_issue_comments(self, owner, repo, pr_number, installation_id):
        return list(self.issue_comments)

    async def create_issue_comment(self, owner, repo, pr_number, body, installation_id):
        comment_id = self._id()
        self.calls.append(("create_issue_comment", comment_id))
        self.issue_comments.append(
            ExistingPRComment(id=comment_id, body=body, author_login="review-bot[bot]", author_type="Bot")
        )
        return comment_id

    async def update_issue_comment(self, owner, repo, pr_number, comment_id, body, installation_id):
        self.calls.append(("update_issue_comment", comment_id))
        for index, existing in enumerate(self.issue_comments):
            if existing.id == comment_id:
                self.issue_comments[index] = existing.model_copy(update={"body": body})

    async def create_review_comment(self, owner, repo, pr_number, *, path, line, body, commit_sha,
                                    installation_id, side=DiffSide.RIGHT):
        comment_id = self._id()
        self.calls.append(("create_review_comment", comment_id, path, line, commit_sha))
        self.review_comments.append(
            ExistingPRComment(id=comment_id, body=body, path=path, line=line, side=side,
                              author_login="review-bot[bot]", author_type="Bot")
        )
        return comment_id

    async def update_review_comment(self, owner, repo, pr_number, comment_id, body, installation_id):
        self.calls.append(("update_review_comment", comment_id))


class FakeAnalyzer:
    def __init__(self, findings: Optional[Dict[str, List[Finding]]] = None):
        self.findings = findings or {}

    async def analyze(self, file_path: str, content: str) -> List[Finding]:
        return list(self.findings.get(file_path, []))


class StaticModel:
    def __init__(self, text: str):
        self.text = text
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> ModelResponse:
        self.prompts.append(prompt)
        return ModelResponse(text=self.text, done=True)
