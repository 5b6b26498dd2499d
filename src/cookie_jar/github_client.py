"""Async GitHub REST client implementing the repository data source."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from cookie_jar.config import CookieJarConfig, load_config
from cookie_jar.exceptions import GitHubAPIError, NotFoundError, RateLimitExhaustedError
from cookie_jar.models import GitHubIssue, GitHubUser, IssueComment, PullRequestSummary

logger = logging.getLogger(__name__)

_GITHUB_BASE_URL = "https://api.github.com"
_MAX_PAGES = 10

# Failures a data-source call can raise: API errors and httpx transport errors.
UPSTREAM_ERRORS = (GitHubAPIError, httpx.HTTPError)


class GitHubClient:
    """Async GitHub API client for issues, comments, labels and assignees."""

    def __init__(
        self,
        token: str,
        config: CookieJarConfig | None = None,
    ) -> None:
        self._token = token
        self._config = config if config is not None else load_config()
        self._client = httpx.AsyncClient(
            base_url=_GITHUB_BASE_URL,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": self._config.github.user_agent,
            },
            timeout=self._config.github.timeout,
        )

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a REST request with error and rate-limit handling.

        Raises:
            RateLimitExhaustedError: On 403 with a rate-limit message or on 429.
            NotFoundError: On 404.
            GitHubAPIError: For any other non-2xx response.
        """
        response = await self._client.request(method, path, params=params, json=json)

        if response.status_code in (403, 429):
            body = response.json() if response.content else {}
            message = body.get("message", "") if isinstance(body, dict) else ""
            if response.status_code == 429 or "rate limit" in message.lower():
                reset_header = response.headers.get("X-RateLimit-Reset")
                if reset_header:
                    reset_at = datetime.fromtimestamp(int(reset_header), tz=UTC)
                else:
                    reset_at = datetime.now(UTC)
                raise RateLimitExhaustedError(reset_at=reset_at)

        if response.status_code == 404:
            raise NotFoundError(path)

        if not response.is_success:
            remaining = response.headers.get("X-RateLimit-Remaining")
            raise GitHubAPIError(
                message=f"GitHub API returned {response.status_code} for {method} {path}",
                status_code=response.status_code,
                rate_limit_remaining=int(remaining) if remaining else None,
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def _paginate(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Collect list results page by page until a short page is returned."""
        per_page = self._config.github.per_page
        items: list[dict[str, Any]] = []
        for page in range(1, _MAX_PAGES + 1):
            batch = await self._request(
                "GET", path, params={**params, "per_page": per_page, "page": page}
            )
            items.extend(batch or [])
            if not batch or len(batch) < per_page:
                break
        return items

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_open_issues(self, owner: str, repo: str) -> list[GitHubIssue]:
        """Open issues, excluding pull requests."""
        raw = await self._paginate(f"/repos/{owner}/{repo}/issues", {"state": "open"})
        issues = [GitHubIssue.from_api(item) for item in raw]
        return [issue for issue in issues if not issue.is_pull_request]

    async def list_issue_comments(
        self, owner: str, repo: str, issue_number: int
    ) -> list[IssueComment]:
        raw = await self._paginate(
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments", {}
        )
        return [IssueComment.from_api(item) for item in raw]

    async def get_issue(self, owner: str, repo: str, issue_number: int) -> GitHubIssue:
        data = await self._request("GET", f"/repos/{owner}/{repo}/issues/{issue_number}")
        return GitHubIssue.from_api(data)

    async def get_user(self, username: str) -> GitHubUser:
        data = await self._request("GET", f"/users/{username}")
        return GitHubUser.from_api(data)

    async def list_user_pulls(
        self, owner: str, repo: str, username: str
    ) -> list[PullRequestSummary]:
        """Pull requests in *owner/repo* authored by *username* (any state)."""
        raw = await self._paginate(f"/repos/{owner}/{repo}/pulls", {"state": "all"})
        pulls = [PullRequestSummary.from_api(item) for item in raw]
        return [pr for pr in pulls if pr.author == username]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def post_issue_comment(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> dict[str, Any]:
        """``POST /repos/{owner}/{repo}/issues/{issue_number}/comments``"""
        return await self._request(  # type: ignore[no-any-return]
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            json={"body": body},
        )

    async def add_labels(
        self, owner: str, repo: str, issue_number: int, labels: list[str]
    ) -> None:
        await self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/labels",
            json={"labels": labels},
        )

    async def remove_labels(
        self, owner: str, repo: str, issue_number: int, labels: list[str]
    ) -> None:
        """Remove each label; labels not present on the issue are ignored."""
        for label in labels:
            try:
                await self._request(
                    "DELETE",
                    f"/repos/{owner}/{repo}/issues/{issue_number}/labels/{quote(label, safe='')}",
                )
            except NotFoundError:
                logger.debug("Label %r not present on #%d", label, issue_number)

    async def patch_assignees(
        self, owner: str, repo: str, issue_number: int, assignees: list[str]
    ) -> None:
        await self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/issues/{issue_number}",
            json={"assignees": assignees},
        )


class ReadOnlyDataSource:
    """Wrap a data source so that writes are logged instead of sent."""

    def __init__(self, source: Any) -> None:
        self._source = source
        self.suppressed: list[tuple[str, int, Any]] = []

    async def list_open_issues(self, owner: str, repo: str) -> list[GitHubIssue]:
        return await self._source.list_open_issues(owner, repo)  # type: ignore[no-any-return]

    async def list_issue_comments(
        self, owner: str, repo: str, issue_number: int
    ) -> list[IssueComment]:
        return await self._source.list_issue_comments(  # type: ignore[no-any-return]
            owner, repo, issue_number
        )

    async def get_issue(self, owner: str, repo: str, issue_number: int) -> GitHubIssue:
        return await self._source.get_issue(owner, repo, issue_number)  # type: ignore[no-any-return]

    async def get_user(self, username: str) -> GitHubUser:
        return await self._source.get_user(username)  # type: ignore[no-any-return]

    async def list_user_pulls(
        self, owner: str, repo: str, username: str
    ) -> list[PullRequestSummary]:
        return await self._source.list_user_pulls(  # type: ignore[no-any-return]
            owner, repo, username
        )

    def _suppress(self, action: str, issue_number: int, payload: Any) -> None:
        logger.info("[dry-run] %s on #%d: %r", action, issue_number, payload)
        self.suppressed.append((action, issue_number, payload))

    async def post_issue_comment(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> dict[str, Any]:
        self._suppress("comment", issue_number, body.splitlines()[0] if body else "")
        return {}

    async def add_labels(
        self, owner: str, repo: str, issue_number: int, labels: list[str]
    ) -> None:
        self._suppress("add_labels", issue_number, labels)

    async def remove_labels(
        self, owner: str, repo: str, issue_number: int, labels: list[str]
    ) -> None:
        self._suppress("remove_labels", issue_number, labels)

    async def patch_assignees(
        self, owner: str, repo: str, issue_number: int, assignees: list[str]
    ) -> None:
        self._suppress("assignees", issue_number, assignees)
