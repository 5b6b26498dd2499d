"""Issue analysis: complexity heuristics and claim extraction."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import timedelta

from cookie_jar.classifier import (
    detect_abandonment,
    detect_claim,
    detect_progress,
    extract_claim_type,
)
from cookie_jar.formatter import COMMENT_MARKER, comment_kind
from cookie_jar.models import (
    ClaimStatus,
    Complexity,
    Contributor,
    GitHubIssue,
    IssueAnalysis,
    IssueClaim,
    IssueComment,
)

logger = logging.getLogger(__name__)

COMPLEXITY_KEYWORDS = (
    "architecture",
    "refactor",
    "performance",
    "security",
    "database",
    "api",
    "integration",
    "testing",
    "documentation",
)

DIFFICULTY_KEYWORDS = ("api", "database", "security", "performance", "optimization")

REQUIREMENT_INDICATORS = (
    "steps to reproduce",
    "expected behavior",
    "actual behavior",
    "requirements",
    "acceptance criteria",
    "todo",
    "checklist",
)

_BOT_LOGIN_RE = re.compile(r"\[bot\]$|-bot$|^github-actions", re.IGNORECASE)

_BASE_DIFFICULTY = {Complexity.LOW: 20, Complexity.MEDIUM: 50, Complexity.HIGH: 80}
_BASE_EFFORT_HOURS = {Complexity.LOW: 2, Complexity.MEDIUM: 8, Complexity.HIGH: 24}
_APPEAL_BY_COMPLEXITY = {Complexity.LOW: 20, Complexity.MEDIUM: 5, Complexity.HIGH: -10}

_LABEL_APPEAL = {
    "good first issue": 30,
    "beginner": 25,
    "help wanted": 20,
    "documentation": 15,
    "bug": 10,
    "needs discussion": -20,
    "blocked": -25,
    "wontfix": -30,
}


def _keyword_hits(content: str, keywords: Iterable[str]) -> int:
    return sum(1 for kw in keywords if re.search(rf"\b{re.escape(kw)}", content))


def _fence_count(body: str) -> int:
    return body.count("```")


def _normalized_labels(issue: GitHubIssue) -> list[str]:
    return [label.lower().replace("-", " ") for label in issue.labels]


def calculate_issue_complexity(issue: GitHubIssue) -> Complexity:
    """Classify an issue as low, medium or high complexity.

    Score contributions: body length (+2 over 500 chars, a further +3 over
    1000), labels (beginner -2, enhancement/feature +2, bug +1), one point
    per technical keyword, and one point per fenced code block.
    """
    body = issue.body or ""
    labels = _normalized_labels(issue)
    score = 0

    if len(body) > 500:
        score += 2
    if len(body) > 1000:
        score += 3

    if "good first issue" in labels or "beginner" in labels:
        score -= 2
    if "enhancement" in labels or "feature" in labels:
        score += 2
    if "bug" in labels:
        score += 1

    content = f"{issue.title} {body}".lower()
    score += _keyword_hits(content, COMPLEXITY_KEYWORDS)
    score += _fence_count(body) // 2

    if score <= 2:
        return Complexity.LOW
    if score <= 5:
        return Complexity.MEDIUM
    return Complexity.HIGH


def is_bot_comment(comment: IssueComment) -> bool:
    """Comments posted by this tool or by bot accounts never count as claims."""
    return COMMENT_MARKER in comment.body or bool(_BOT_LOGIN_RE.search(comment.user.login))


class IssueAnalyzer:
    """Derive an :class:`IssueAnalysis` from an issue and its comment thread."""

    def __init__(self, grace_period_days: int = 7) -> None:
        self.grace_period_days = grace_period_days

    def analyze_issue(
        self,
        issue: GitHubIssue,
        comments: list[IssueComment],
        repository_id: str,
    ) -> IssueAnalysis:
        complexity = calculate_issue_complexity(issue)
        claims = self.extract_claims(issue, comments, repository_id)
        current = next((c for c in claims if c.status == ClaimStatus.ACTIVE), None)

        return IssueAnalysis(
            issue_id=str(issue.id),
            issue_number=issue.number,
            repository_id=repository_id,
            title=issue.title,
            body=issue.body,
            labels=list(issue.labels),
            assignees=list(issue.assignees),
            html_url=issue.html_url,
            complexity=complexity,
            estimated_effort=self.estimate_effort(issue, complexity),
            has_clear_requirements=self.has_clear_requirements(issue),
            has_tests=self.has_tests(issue),
            has_documentation=self.has_documentation(issue),
            difficulty_score=self.calculate_difficulty_score(issue, complexity),
            appeal_score=self.calculate_appeal_score(issue, complexity),
            claim_count=len(claims),
            current_claim=current,
            claim_history=claims,
            last_activity_date=issue.updated_at,
            created_at=issue.created_at,
            updated_at=issue.updated_at,
        )

    def extract_claims(
        self,
        issue: GitHubIssue,
        comments: list[IssueComment],
        repository_id: str,
    ) -> list[IssueClaim]:
        """Walk the thread in order, keeping at most one claim open.

        A claim opens only while no other claim is open; later claimants are
        not tracked until the open claim closes.
        """
        claims: list[IssueClaim] = []
        current: IssueClaim | None = None

        for comment in sorted(comments, key=lambda c: (c.created_at, c.id)):
            if is_bot_comment(comment):
                # Our own nudges and releases carry the claim state between passes.
                kind = comment_kind(comment.body)
                if current is not None and kind == "nudge":
                    current.nudges_sent += 1
                    current.last_nudge_date = comment.created_at
                elif current is not None and kind == "auto_release":
                    current.status = ClaimStatus.AUTO_RELEASED
                    current.auto_release_date = comment.created_at
                    current = None
                continue
            text = comment.body

            if current is None:
                if detect_claim(text):
                    current = self._open_claim(comment, issue.number, repository_id)
                    claims.append(current)
            elif detect_progress(text):
                current.progress_score = min(100.0, current.progress_score + 20)
                current.last_activity_date = comment.created_at
                current.status = ClaimStatus.ACTIVE
            elif detect_abandonment(text):
                current.status = ClaimStatus.ABANDONED
                current.last_activity_date = comment.created_at
                current = None

        if current is not None and issue.state == "closed":
            current.status = ClaimStatus.COMPLETED
            current.last_activity_date = issue.closed_at or issue.updated_at

        return claims

    def _open_claim(
        self, comment: IssueComment, issue_number: int, repository_id: str
    ) -> IssueClaim:
        user = comment.user
        return IssueClaim(
            id=f"{repository_id}-{issue_number}-{comment.id}",
            issue_number=issue_number,
            repository_id=repository_id,
            contributor=Contributor(
                id=str(user.id),
                username=user.login,
                avatar_url=user.avatar_url,
                last_activity_date=comment.created_at,
            ),
            claimed_at=comment.created_at,
            claim_type=extract_claim_type(comment.body),
            claim_text=comment.body,
            status=ClaimStatus.ACTIVE,
            last_activity_date=comment.created_at,
            grace_period_ends_at=comment.created_at + timedelta(days=self.grace_period_days),
        )

    @staticmethod
    def calculate_difficulty_score(issue: GitHubIssue, complexity: Complexity) -> float:
        body = issue.body or ""
        score = _BASE_DIFFICULTY[complexity]
        content = f"{issue.title} {body}".lower()
        score += 10 * _keyword_hits(content, DIFFICULTY_KEYWORDS)
        score += min(20, _fence_count(body) * 5)
        # Sparse descriptions make an issue harder to pick up.
        if len(body) < 100:
            score += 15
        return float(max(0, min(100, score)))

    @staticmethod
    def calculate_appeal_score(issue: GitHubIssue, complexity: Complexity) -> float:
        body = issue.body or ""
        lowered = body.lower()
        labels = _normalized_labels(issue)
        score = 50

        for label, delta in _LABEL_APPEAL.items():
            if label in labels:
                score += delta

        if "TODO" in body or "FIXME" in body:
            score += 10
        if "easy" in lowered or "simple" in lowered:
            score += 15
        if "quick" in lowered or "small" in lowered:
            score += 10

        score += _APPEAL_BY_COMPLEXITY[complexity]
        return float(max(0, min(100, score)))

    @staticmethod
    def estimate_effort(issue: GitHubIssue, complexity: Complexity) -> int:
        """Estimated effort in hours."""
        body = issue.body or ""
        multiplier = 1.0
        if len(body) > 1000:
            multiplier += 0.5
        if "```" in body:
            multiplier += 0.3
        if "test" in body.lower():
            multiplier += 0.2
        return int(_BASE_EFFORT_HOURS[complexity] * multiplier + 0.5)

    @staticmethod
    def has_clear_requirements(issue: GitHubIssue) -> bool:
        content = f"{issue.title} {issue.body}".lower()
        return any(indicator in content for indicator in REQUIREMENT_INDICATORS)

    @staticmethod
    def has_tests(issue: GitHubIssue) -> bool:
        labels = _normalized_labels(issue)
        body = (issue.body or "").lower()
        return (
            "tests" in labels
            or "testing" in labels
            or "test" in body
            or "spec" in body
        )

    @staticmethod
    def has_documentation(issue: GitHubIssue) -> bool:
        labels = _normalized_labels(issue)
        return any(label in labels for label in ("documentation", "docs", "readme"))
