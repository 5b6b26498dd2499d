"""Custom exception hierarchy for Cookie Jar."""

from __future__ import annotations

from datetime import datetime


class CookieJarError(Exception):
    """Base exception for Cookie Jar."""


class GitHubAPIError(CookieJarError):
    """Error from the GitHub API."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        rate_limit_remaining: int | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.rate_limit_remaining = rate_limit_remaining


class RateLimitExhaustedError(GitHubAPIError):
    """GitHub API rate limit exhausted."""

    def __init__(self, reset_at: datetime, rate_limit_remaining: int = 0):
        self.reset_at = reset_at
        super().__init__(
            f"Rate limit exhausted. Resets at {reset_at.isoformat()}",
            status_code=403,
            rate_limit_remaining=rate_limit_remaining,
        )


class NotFoundError(GitHubAPIError):
    """A GitHub resource (repository, issue or user) was not found."""

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"Not found: {resource}", status_code=404)


class ConfigError(CookieJarError):
    """Error with configuration."""


class StoreError(CookieJarError):
    """Error with the repository configuration store."""


class NoTemplateError(CookieJarError):
    """No nudge template exists for the requested escalation level."""

    def __init__(self, escalation_level: int):
        self.escalation_level = escalation_level
        super().__init__(
            f"No nudge template available for escalation level {escalation_level}"
        )
