"""Shared test fixtures for Cookie Jar tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest

from cookie_jar.config import RepositoryConfig, RepositoryDefaults
from cookie_jar.exceptions import GitHubAPIError, NotFoundError
from cookie_jar.models import (
    ClaimStatus,
    Contributor,
    GitHubIssue,
    GitHubUser,
    IssueClaim,
    IssueComment,
    PullRequestSummary,
)
from cookie_jar.store import InMemoryConfigStore

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)
BOT_LOGIN = "cookie-jar[bot]"


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


class FrozenClock:
    """A settable clock for deterministic scoring."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: float) -> None:
        self.now += timedelta(days=days)


def make_user(login: str = "alice", user_id: int = 1, email: str | None = None) -> GitHubUser:
    return GitHubUser(login=login, id=user_id, email=email)


def make_issue(
    number: int = 1,
    title: str = "Fix typo in README",
    body: str = "",
    labels: list[str] | None = None,
    assignees: list[str] | None = None,
    state: str = "open",
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
    closed_at: datetime | None = None,
) -> GitHubIssue:
    created = created_at or days_ago(30)
    return GitHubIssue(
        id=1000 + number,
        number=number,
        title=title,
        body=body,
        state=state,
        labels=labels or [],
        assignees=assignees or [],
        html_url=f"https://github.com/owner/repo/issues/{number}",
        created_at=created,
        updated_at=updated_at or created,
        closed_at=closed_at,
    )


def make_comment(
    comment_id: int,
    body: str,
    login: str = "alice",
    created_at: datetime | None = None,
) -> IssueComment:
    return IssueComment(
        id=comment_id,
        body=body,
        user=make_user(login, user_id=sum(map(ord, login))),
        created_at=created_at or NOW,
    )


def make_claim(
    username: str = "alice",
    claimed_days_ago: float = 0,
    idle_days: float | None = None,
    reliability: float = 50.0,
    nudges_sent: int = 0,
    progress: float = 0.0,
    risk: float = 0.0,
    grace_days: float = 7,
    **contributor_fields: Any,
) -> IssueClaim:
    claimed_at = days_ago(claimed_days_ago)
    last_activity = days_ago(idle_days if idle_days is not None else claimed_days_ago)
    return IssueClaim(
        id=f"owner/repo-1-{username}",
        issue_number=1,
        repository_id="owner/repo",
        contributor=Contributor(
            id=username,
            username=username,
            reliability_score=reliability,
            **contributor_fields,
        ),
        claimed_at=claimed_at,
        status=ClaimStatus.ACTIVE,
        last_activity_date=last_activity,
        progress_score=progress,
        risk_score=risk,
        grace_period_ends_at=claimed_at + timedelta(days=grace_days),
        nudges_sent=nudges_sent,
    )


class FakeGitHub:
    """In-memory repository data source.

    Posted comments are appended to the thread (authored by the bot at the
    current clock time) so later passes see them.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self.clock = clock or (lambda: NOW)
        self.issues: dict[int, GitHubIssue] = {}
        self.comments: dict[int, list[IssueComment]] = {}
        self.users: dict[str, GitHubUser] = {}
        self.pulls: list[PullRequestSummary] = []
        self.posted: list[tuple[int, str]] = []
        self.labels_added: list[tuple[int, list[str]]] = []
        self.labels_removed: list[tuple[int, list[str]]] = []
        self.assignee_patches: list[tuple[int, list[str]]] = []
        self.failing_comment_fetches: set[int] = set()
        self.fail_posts = False
        self.fail_labels = False
        self.fail_assignees = False
        self.fail_issue_fetch = False
        self.fail_user_fetch = False
        # raise httpx transport errors instead of API errors
        self.transport_errors = False
        self._next_id = 90_000

    def _fail(self, message: str, status_code: int) -> None:
        if self.transport_errors:
            raise httpx.ConnectError(message)
        raise GitHubAPIError(message, status_code=status_code)

    def add_issue(self, issue: GitHubIssue, comments: list[IssueComment] | None = None) -> None:
        self.issues[issue.number] = issue
        self.comments[issue.number] = list(comments or [])

    async def list_open_issues(self, owner: str, repo: str) -> list[GitHubIssue]:
        return [issue for issue in self.issues.values() if issue.state == "open"]

    async def list_issue_comments(
        self, owner: str, repo: str, issue_number: int
    ) -> list[IssueComment]:
        if issue_number in self.failing_comment_fetches:
            self._fail("boom", 502)
        return list(self.comments.get(issue_number, []))

    async def get_issue(self, owner: str, repo: str, issue_number: int) -> GitHubIssue:
        if self.fail_issue_fetch:
            self._fail("issue fetch failed", 502)
        if issue_number not in self.issues:
            raise NotFoundError(f"/repos/{owner}/{repo}/issues/{issue_number}")
        return self.issues[issue_number]

    async def post_issue_comment(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> dict[str, Any]:
        if self.fail_posts:
            self._fail("comment failed", 500)
        self._next_id += 1
        self.posted.append((issue_number, body))
        self.comments.setdefault(issue_number, []).append(
            IssueComment(
                id=self._next_id,
                body=body,
                user=GitHubUser(login=BOT_LOGIN, id=1),
                created_at=self.clock(),
            )
        )
        return {"id": self._next_id}

    async def add_labels(
        self, owner: str, repo: str, issue_number: int, labels: list[str]
    ) -> None:
        if self.fail_labels:
            self._fail("labels failed", 422)
        self.labels_added.append((issue_number, labels))

    async def remove_labels(
        self, owner: str, repo: str, issue_number: int, labels: list[str]
    ) -> None:
        if self.fail_labels:
            self._fail("labels failed", 422)
        self.labels_removed.append((issue_number, labels))

    async def patch_assignees(
        self, owner: str, repo: str, issue_number: int, assignees: list[str]
    ) -> None:
        if self.fail_assignees:
            self._fail("assignees failed", 403)
        self.assignee_patches.append((issue_number, assignees))
        issue = self.issues[issue_number]
        self.issues[issue_number] = issue.model_copy(update={"assignees": assignees})

    async def get_user(self, username: str) -> GitHubUser:
        if self.fail_user_fetch:
            self._fail("user fetch failed", 502)
        if username not in self.users:
            raise NotFoundError(f"/users/{username}")
        return self.users[username]

    async def list_user_pulls(
        self, owner: str, repo: str, username: str
    ) -> list[PullRequestSummary]:
        return [pr for pr in self.pulls if pr.author == username]


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def github(clock: FrozenClock) -> FakeGitHub:
    return FakeGitHub(clock)


@pytest.fixture
def store() -> InMemoryConfigStore:
    return InMemoryConfigStore()


@pytest.fixture
def repo_config() -> RepositoryConfig:
    return RepositoryDefaults().for_repository("owner", "repo")
