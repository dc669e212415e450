"""
GitHub Client for Pull Request Reviews

Talks to the GitHub REST API as a GitHub App installation. Every call is
authenticated with an installation token from the TokenCache, never with
the App JWT itself.

Required App permissions:
- Contents: Read (file contents, PR files)
- Pull requests: Read & write (review comments)
- Issues: Write (PR-level comments)
"""

import asyncio
import logging
from typing import Any, Callable, List, Tuple, TypeVar

from github import Auth, Github, GithubException

from common.errors import GitHubAPIError
from common.github_models import DiffSide, ExistingPRComment, PRFile, PRFilesResult
from common.token_cache import TokenCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _author(user: Any) -> Tuple[str, str]:
    if user is None:
        return "", "User"
    return user.login or "", user.type or "User"


class GitHubClient:
    """
    GitHub API client using GitHub App installation tokens via PyGithub.

    Provides async interface wrapping PyGithub's synchronous methods.
    """

    def __init__(self, token_cache: TokenCache, base_url: str = "https://api.github.com"):
        self.token_cache = token_cache
        self.base_url = base_url

    def _github(self, installation_id: int) -> Github:
        token = self.token_cache.get_token(installation_id)
        return Github(auth=Auth.Token(token), base_url=self.base_url)

    async def _call(self, operation: str, func: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(func)
        except GithubException as e:
            logger.error("GitHub %s failed: %s %s", operation, e.status, e.data)
            raise GitHubAPIError(operation, e.status, str(e.data)) from e

    async def list_pr_files(
        self, owner: str, repo: str, pr_number: int, installation_id: int
    ) -> PRFilesResult:
        """
        Get the changed files of a pull request with its base and head SHAs.

        Returns:
            PRFilesResult; file patches may be None for binary or huge files
        """
        def _list():
            github = self._github(installation_id)
            pr = github.get_repo(f"{owner}/{repo}").get_pull(pr_number)
            files = [
                PRFile(
                    filename=f.filename,
                    status=f.status,
                    additions=f.additions,
                    deletions=f.deletions,
                    changes=f.changes,
                    patch=f.patch,
                )
                for f in pr.get_files()
            ]
            return PRFilesResult(files=files, base_commit=pr.base.sha, head_commit=pr.head.sha)

        return await self._call("list_pr_files", _list)

    async def get_file_content(
        self, owner: str, repo: str, path: str, ref: str, installation_id: int
    ) -> str:
        """Get a file's text at ``ref``."""
        def _get():
            github = self._github(installation_id)
            content = github.get_repo(f"{owner}/{repo}").get_contents(path, ref=ref)
            if isinstance(content, list):
                raise GitHubAPIError("get_file_content", None, f"{path} is a directory")
            return content.decoded_content.decode("utf-8", errors="replace")

        return await self._call("get_file_content", _get)

    async def list_review_comments(
        self, owner: str, repo: str, pr_number: int, installation_id: int
    ) -> List[ExistingPRComment]:
        """List line-anchored review comments in host API order."""
        def _list():
            github = self._github(installation_id)
            pr = github.get_repo(f"{owner}/{repo}").get_pull(pr_number)
            result = []
            for c in pr.get_review_comments():
                login, user_type = _author(c.user)
                result.append(
                    ExistingPRComment(
                        id=c.id,
                        body=c.body or "",
                        path=c.path,
                        position=c.position,
                        line=getattr(c, "line", None),
                        side=getattr(c, "side", None) or DiffSide.RIGHT,
                        author_login=login,
                        author_type=user_type,
                    )
                )
            return result

        return await self._call("list_review_comments", _list)

    async def list_issue_comments(
        self, owner: str, repo: str, pr_number: int, installation_id: int
    ) -> List[ExistingPRComment]:
        """List PR-level (issue) comments in host API order."""
        def _list():
            github = self._github(installation_id)
            issue = github.get_repo(f"{owner}/{repo}").get_issue(pr_number)
            result = []
            for c in issue.get_comments():
                login, user_type = _author(c.user)
                result.append(
                    ExistingPRComment(id=c.id, body=c.body or "", author_login=login, author_type=user_type)
                )
            return result

        return await self._call("list_issue_comments", _list)

    async def create_issue_comment(
        self, owner: str, repo: str, pr_number: int, body: str, installation_id: int
    ) -> int:
        def _create():
            github = self._github(installation_id)
            comment = github.get_repo(f"{owner}/{repo}").get_issue(pr_number).create_comment(body)
            return comment.id

        comment_id = await self._call("create_issue_comment", _create)
        logger.info("Created PR comment %s on %s/%s#%s", comment_id, owner, repo, pr_number)
        return comment_id

    async def update_issue_comment(
        self, owner: str, repo: str, pr_number: int, comment_id: int, body: str, installation_id: int
    ) -> None:
        def _update():
            github = self._github(installation_id)
            github.get_repo(f"{owner}/{repo}").get_issue(pr_number).get_comment(comment_id).edit(body)

        await self._call("update_issue_comment", _update)
        logger.info("Updated PR comment %s on %s/%s#%s", comment_id, owner, repo, pr_number)

    async def create_review_comment(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        *,
        path: str,
        line: int,
        body: str,
        commit_sha: str,
        installation_id: int,
        side: DiffSide = DiffSide.RIGHT,
    ) -> int:
        def _create():
            github = self._github(installation_id)
            repository = github.get_repo(f"{owner}/{repo}")
            pr = repository.get_pull(pr_number)
            comment = pr.create_review_comment(
                body,
                repository.get_commit(commit_sha),
                path,
                line=line,
                side=DiffSide(side).value,
            )
            return comment.id

        comment_id = await self._call("create_review_comment", _create)
        logger.info("Created review comment %s on %s:%s", comment_id, path, line)
        return comment_id

    async def update_review_comment(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        comment_id: int,
        body: str,
        installation_id: int,
    ) -> None:
        def _update():
            github = self._github(installation_id)
            pr = github.get_repo(f"{owner}/{repo}").get_pull(pr_number)
            pr.get_review_comment(comment_id).edit(body)

        await self._call("update_review_comment", _update)
        logger.info("Updated review comment %s on %s/%s#%s", comment_id, owner, repo, pr_number)

