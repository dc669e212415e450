"""Error taxonomy shared by the GitHub collaborator and the review pipeline."""

from enum import Enum
from typing import Optional


class AuthFailure(str, Enum):
    """Why a GitHub App credential exchange failed."""

    INVALID_PRIVATE_KEY = "invalid_private_key"
    APP_ID_MISMATCH = "app_id_mismatch"
    NOT_CONFIGURED = "not_configured"
    INSTALLATION_NOT_FOUND = "installation_not_found"
    NETWORK = "network"
    UNKNOWN = "unknown"


class AuthenticationError(Exception):
    """GitHub App authentication failed. Fatal for the delivery, never retried."""

    def __init__(
        self,
        message: str,
        *,
        app_id: Optional[int],
        failure: AuthFailure,
        installation_id: Optional[int] = None,
    ):
        super().__init__(message)
        self.app_id = app_id
        self.failure = failure
        self.installation_id = installation_id

    def __str__(self) -> str:
        base = super().__str__()
        return f"[{self.failure.value}] (app_id={self.app_id}, installation_id={self.installation_id}) {base}"


class GitHubAPIError(Exception):
    """A GitHub REST call failed while listing, reading or posting."""

    def __init__(self, operation: str, status: Optional[int], message: str):
        super().__init__(f"GitHub API error during {operation} (status={status}): {message}")
        self.operation = operation
        self.status = status


class ReviewIncompleteError(Exception):
    """Every reviewable file failed, so there is nothing trustworthy to post."""

    def __init__(self, pr_label: str, failed_files: int):
        super().__init__(f"All {failed_files} reviewable file(s) in {pr_label} failed; nothing posted")
        self.pr_label = pr_label
        self.failed_files = failed_files
