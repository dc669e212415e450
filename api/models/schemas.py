from typing import Optional

from pydantic import BaseModel, Field

REVIEW_ACTIONS = {"opened", "synchronize"}


class RepositoryOwner(BaseModel):
    login: str


class Repository(BaseModel):
    full_name: str
    name: str
    owner: RepositoryOwner


class GitRef(BaseModel):
    sha: str
    ref: str = ""


class PullRequest(BaseModel):
    number: int = Field(..., gt=0)
    title: str = ""
    head: GitRef
    base: GitRef


class Installation(BaseModel):
    id: int = Field(..., gt=0, description="GitHub App installation id")


class PullRequestEvent(BaseModel):
    """A validated ``pull_request`` webhook delivery."""

    action: str
    number: int = Field(..., gt=0)
    pull_request: PullRequest
    repository: Repository
    installation: Installation

    @property
    def owner(self) -> str:
        return self.repository.owner.login

    @property
    def repo(self) -> str:
        return self.repository.name

    @property
    def installation_id(self) -> int:
        return self.installation.id


class WebhookResponse(BaseModel):
    status: str
    reason: Optional[str] = None
    pr: Optional[str] = None
    action: Optional[str] = None
