"""Collaborator interfaces consumed by the claim-lifecycle engine."""

from __future__ import annotations

from typing import Any, Protocol

from cookie_jar.config import RepositoryConfig
from cookie_jar.models import (
    GitHubIssue,
    GitHubUser,
    IssueComment,
    NotificationResult,
    PullRequestSummary,
)


class RepositoryDataSource(Protocol):
    """Read and write access to a repository's issues.

    Implementations raise :class:`~cookie_jar.exceptions.GitHubAPIError`
    (carrying the HTTP status code) on failure. Transport failures may
    surface as :class:`httpx.HTTPError`.
    """

    async def list_open_issues(self, owner: str, repo: str) -> list[GitHubIssue]:
        ...

    async def list_issue_comments(
        self, owner: str, repo: str, issue_number: int
    ) -> list[IssueComment]:
        ...

    async def get_issue(self, owner: str, repo: str, issue_number: int) -> GitHubIssue:
        ...

    async def post_issue_comment(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> dict[str, Any]:
        ...

    async def add_labels(
        self, owner: str, repo: str, issue_number: int, labels: list[str]
    ) -> None:
        ...

    async def remove_labels(
        self, owner: str, repo: str, issue_number: int, labels: list[str]
    ) -> None:
        ...

    async def patch_assignees(
        self, owner: str, repo: str, issue_number: int, assignees: list[str]
    ) -> None:
        ...

    async def get_user(self, username: str) -> GitHubUser:
        ...

    async def list_user_pulls(
        self, owner: str, repo: str, username: str
    ) -> list[PullRequestSummary]:
        ...


class NotificationSink(Protocol):
    """Delivers low completion probability alerts to contributors."""

    async def send_low_probability_alert(
        self,
        contributor_email: str,
        contributor_name: str,
        issue_title: str,
        issue_number: int,
        repo_name: str,
        current_probability: float,
        benchmark: float,
        issue_url: str,
    ) -> NotificationResult:
        ...


class ConfigStore(Protocol):
    """Key-value store of repository configurations keyed by ``owner/name``."""

    def get(self, repository_id: str) -> RepositoryConfig | None:
        ...

    def set(self, config: RepositoryConfig) -> None:
        ...
