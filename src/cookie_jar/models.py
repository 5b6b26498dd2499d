"""Data models for Cookie Jar claim tracking."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

SECONDS_PER_DAY = 24 * 60 * 60


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from *start* to *end*."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse a GitHub ISO-8601 timestamp (``...Z``) into an aware datetime."""
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class Complexity(StrEnum):
    """Issue complexity tiers."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ClaimType(StrEnum):
    """How a contributor claimed an issue."""
    COMMENT = "comment"
    ASSIGNMENT = "assignment"
    SELF_ASSIGNED = "self-assigned"


class ClaimStatus(StrEnum):
    """Lifecycle state of a claim."""
    ACTIVE = "active"
    STALE = "stale"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    AUTO_RELEASED = "auto-released"


class InterventionType(StrEnum):
    """Kind of action taken on a claim."""
    NUDGE = "nudge"
    AUTO_RELEASE = "auto_release"
    ESCALATE = "escalate"
    COMMUNITY_INTERVENTION = "community_intervention"


class SuggestedAction(StrEnum):
    """Action suggested by the advanced claim detector."""
    MONITOR = "monitor"
    NUDGE = "nudge"
    AUTO_RELEASE = "auto_release"
    ESCALATE = "escalate"


class NudgeTemplateType(StrEnum):
    """Nudge template families."""
    FRIENDLY_REMINDER = "friendly_reminder"
    PROGRESS_CHECK = "progress_check"
    FINAL_WARNING = "final_warning"
    COMMUNITY_NUDGE = "community_nudge"


# ---------------------------------------------------------------------------
# GitHub wire models
# ---------------------------------------------------------------------------


class GitHubUser(BaseModel):
    """A GitHub account as embedded in issues and comments."""
    login: str
    id: int = 0
    avatar_url: str = ""
    email: str | None = None
    public_repos: int = 0
    followers: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> GitHubUser:
        return cls(
            login=data["login"],
            id=data.get("id") or 0,
            avatar_url=data.get("avatar_url") or "",
            email=data.get("email"),
            public_repos=data.get("public_repos") or 0,
            followers=data.get("followers") or 0,
        )


class GitHubIssue(BaseModel):
    """A GitHub issue as returned by the REST API."""
    id: int
    number: int
    title: str = ""
    body: str = ""
    state: str = "open"
    labels: list[str] = []
    assignees: list[str] = []
    user: GitHubUser | None = None
    html_url: str = ""
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None
    is_pull_request: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> GitHubIssue:
        labels = [
            label["name"] if isinstance(label, dict) else str(label)
            for label in data.get("labels") or []
        ]
        assignees = [a["login"] for a in data.get("assignees") or []]
        user = data.get("user")
        created_at = parse_timestamp(data["created_at"])
        return cls(
            id=data["id"],
            number=data["number"],
            title=data.get("title") or "",
            body=data.get("body") or "",
            state=data.get("state") or "open",
            labels=labels,
            assignees=assignees,
            user=GitHubUser.from_api(user) if user else None,
            html_url=data.get("html_url") or "",
            created_at=created_at,
            updated_at=parse_timestamp(data.get("updated_at")) or created_at,
            closed_at=parse_timestamp(data.get("closed_at")),
            is_pull_request="pull_request" in data,
        )


class IssueComment(BaseModel):
    """A comment on a GitHub issue."""
    id: int
    body: str = ""
    user: GitHubUser
    created_at: datetime

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> IssueComment:
        return cls(
            id=data["id"],
            body=data.get("body") or "",
            user=GitHubUser.from_api(data["user"]),
            created_at=parse_timestamp(data["created_at"]),
        )


class PullRequestSummary(BaseModel):
    """Minimal pull request data used for candidate reliability."""
    number: int
    author: str
    created_at: datetime
    merged_at: datetime | None = None

    @property
    def is_merged(self) -> bool:
        return self.merged_at is not None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> PullRequestSummary:
        return cls(
            number=data["number"],
            author=(data.get("user") or {}).get("login", ""),
            created_at=parse_timestamp(data["created_at"]),
            merged_at=parse_timestamp(data.get("merged_at")),
        )


# ---------------------------------------------------------------------------
# Claim lifecycle models
# ---------------------------------------------------------------------------


class Contributor(BaseModel):
    """A contributor and their follow-through history."""
    id: str
    username: str
    email: str | None = None
    avatar_url: str = ""
    reliability_score: float = 50.0
    total_contributions: int = 0
    completed_issues: int = 0
    abandoned_issues: int = 0
    average_completion_time: float = 0.0
    last_activity_date: datetime | None = None

    @property
    def abandonment_rate(self) -> float:
        total = self.completed_issues + self.abandoned_issues
        if total == 0:
            return 0.0
        return self.abandoned_issues / total


class IssueClaim(BaseModel):
    """One contributor's claim on one issue."""
    id: str
    issue_number: int
    repository_id: str
    contributor: Contributor
    claimed_at: datetime
    claim_type: ClaimType = ClaimType.COMMENT
    claim_text: str = ""
    status: ClaimStatus = ClaimStatus.ACTIVE
    last_activity_date: datetime
    progress_score: float = 0.0
    risk_score: float = 0.0
    predicted_completion_probability: float = 0.5
    grace_period_ends_at: datetime
    nudges_sent: int = 0
    last_nudge_date: datetime | None = None
    auto_release_date: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == ClaimStatus.ACTIVE

    def days_since_claim(self, now: datetime) -> float:
        return days_between(self.claimed_at, now)

    def days_since_activity(self, now: datetime) -> float:
        return days_between(self.last_activity_date, now)


class IssueAnalysis(BaseModel):
    """Derived view of one issue and its claim history."""
    issue_id: str
    issue_number: int
    repository_id: str
    title: str
    body: str = ""
    labels: list[str] = []
    assignees: list[str] = []
    html_url: str = ""
    complexity: Complexity
    estimated_effort: int = 0
    has_clear_requirements: bool = False
    has_tests: bool = False
    has_documentation: bool = False
    difficulty_score: float = 0.0
    appeal_score: float = 0.0
    claim_count: int = 0
    current_claim: IssueClaim | None = None
    claim_history: list[IssueClaim] = []
    last_activity_date: datetime
    created_at: datetime
    updated_at: datetime


class NudgeTemplate(BaseModel):
    """A reminder message template at one escalation level."""
    id: str
    name: str
    type: NudgeTemplateType
    subject: str
    message: str
    timing: int
    escalation_level: int = Field(ge=1, le=5)
    success_rate: float = Field(ge=0.0, le=1.0)
    usage_count: int = 0


class Intervention(BaseModel):
    """Audit record of a nudge or auto-release."""
    id: str
    issue_claim_id: str
    type: InterventionType
    triggered_at: datetime
    template_id: str | None = None
    message: str | None = None
    success: bool = False
    response_time: float | None = None
    contributor_response: str | None = None
    auto_released_at: datetime | None = None
    escalated_to: str | None = None


class ClaimDetectionResult(BaseModel):
    """Output of the advanced claim detector."""
    is_claim: bool
    confidence: float = 0.0
    claim_type: ClaimType = ClaimType.COMMENT
    risk_factors: list[str] = []
    suggested_action: SuggestedAction = SuggestedAction.MONITOR


class ContributorStats(BaseModel):
    """Per-contributor outcome tally within one analysis pass."""
    username: str
    completed: int = 0
    abandoned: int = 0
    active: int = 0

    @property
    def net_score(self) -> int:
        return self.completed - self.abandoned


class Analytics(BaseModel):
    """Run-level summary of one repository pass."""
    repository_id: str = ""
    total_issues_analyzed: int = 0
    total_claims_detected: int = 0
    total_claims_resolved: int = 0
    total_auto_released: int = 0
    total_nudges_sent: int = 0
    average_resolution_time: float = 0.0
    success_rate: float = 0.0
    issue_complexity_distribution: dict[str, int] = {}
    intervention_effectiveness: dict[str, float] = {}
    top_contributors: list[ContributorStats] = []
    failed_issues: list[int] = []


class NotificationResult(BaseModel):
    """Outcome of a notification sink call."""
    success: bool
    message_id: str
    error: str | None = None


class NotificationLog(BaseModel):
    """Record of a low completion probability alert."""
    id: str
    timestamp: datetime
    repository: str
    issue: str
    contributor: str
    contributor_email: str
    current_probability: float
    benchmark: float
    email_sent: bool
    message_id: str
    error: str | None = None


class CandidateAssessment(BaseModel):
    """Ranking data for a contributor asking to work on an issue."""
    username: str
    avatar_url: str = ""
    claim_text: str = ""
    claimed_at: datetime
    days_since_claim: int = 0
    reliability_score: float = 50.0
    predictive_score: float = 50.0
    previous_contributions: int = 0
    successful_contributions: int = 0
    average_completion_time: float = 7.0


class AutoReleaseReport(BaseModel):
    """Summary of auto-release interventions over a time window."""
    start: datetime
    end: datetime
    total_auto_released: int = 0
    successful_releases: int = 0
    success_rate: float = 0.0
    average_time_to_release: float = 0.0
    top_reasons: list[str] = []
