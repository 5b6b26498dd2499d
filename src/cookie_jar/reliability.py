"""Contributor reliability scoring."""

from __future__ import annotations

from collections.abc import Iterable

from cookie_jar.models import (
    ClaimStatus,
    Contributor,
    ContributorStats,
    IssueClaim,
    PullRequestSummary,
    days_between,
)

NEUTRAL_RELIABILITY = 50.0


def calculate_reliability_score(completed: int, abandoned: int) -> float:
    """Score follow-through from historical claim outcomes (0-100).

    Starts from a neutral 50, rewards completions (up to +30) and penalizes
    abandonments (up to -40).  Contributors with no history stay neutral.
    """
    total = completed + abandoned
    if total <= 0:
        return NEUTRAL_RELIABILITY
    completion_rate = completed / total
    abandonment_rate = abandoned / total
    score = NEUTRAL_RELIABILITY + completion_rate * 30 - abandonment_rate * 40
    return max(0.0, min(100.0, score))


def estimate_reliability_from_pulls(pulls: Iterable[PullRequestSummary]) -> float:
    """Merged-to-total pull request ratio as a 0-100 score.

    Used for candidates who have no claim history yet.
    """
    pulls = list(pulls)
    if not pulls:
        return NEUTRAL_RELIABILITY
    merged = sum(1 for pr in pulls if pr.is_merged)
    return float(round(merged / len(pulls) * 100))


def average_merge_days(pulls: Iterable[PullRequestSummary], default: float = 7.0) -> float:
    """Mean days from opening to merge over merged pull requests."""
    durations = [
        int(days_between(pr.created_at, pr.merged_at))
        for pr in pulls
        if pr.merged_at is not None
    ]
    if not durations:
        return default
    return float(round(sum(durations) / len(durations)))


def score_candidate(
    reliability_score: float,
    total_pulls: int,
    days_since_claim: int,
    average_completion_days: float,
) -> float:
    """Weighted predictive score (0-100) for a prospective claimant."""
    score = 50.0
    score += (reliability_score - 50) * 0.4
    score += min(total_pulls * 2, 20) * 0.2
    score -= min(days_since_claim * 2, 20) * 0.2
    if average_completion_days < 7:
        speed_bonus = 10
    elif average_completion_days < 14:
        speed_bonus = 5
    else:
        speed_bonus = 0
    score += speed_bonus * 0.2
    return float(max(0, min(100, round(score))))


class ContributorRegistry:
    """Per-pass map of contributors keyed by username.

    Built fresh for each analysis pass from the claim histories observed in
    that pass; nothing carries over between runs.
    """

    def __init__(self) -> None:
        self._stats: dict[str, ContributorStats] = {}
        self._resolution_days: dict[str, list[float]] = {}

    def observe(self, claims: Iterable[IssueClaim]) -> None:
        """Tally claim outcomes.

        Auto-released claims count toward neither completed nor abandoned.
        """
        for claim in claims:
            username = claim.contributor.username
            stats = self._stats.setdefault(username, ContributorStats(username=username))
            if claim.status == ClaimStatus.COMPLETED:
                stats.completed += 1
                self._resolution_days.setdefault(username, []).append(
                    days_between(claim.claimed_at, claim.last_activity_date)
                )
            elif claim.status == ClaimStatus.ABANDONED:
                stats.abandoned += 1
            elif claim.status == ClaimStatus.ACTIVE:
                stats.active += 1

    def stats_for(self, username: str) -> ContributorStats:
        return self._stats.get(username, ContributorStats(username=username))

    def all_stats(self) -> list[ContributorStats]:
        return list(self._stats.values())

    def resolve(self, contributor: Contributor) -> Contributor:
        """Return *contributor* updated with counts and reliability."""
        stats = self.stats_for(contributor.username)
        durations = self._resolution_days.get(contributor.username, [])
        average = sum(durations) / len(durations) if durations else 0.0
        return contributor.model_copy(
            update={
                "completed_issues": stats.completed,
                "abandoned_issues": stats.abandoned,
                "total_contributions": max(
                    contributor.total_contributions,
                    stats.completed + stats.abandoned + stats.active,
                ),
                "average_completion_time": average,
                "reliability_score": calculate_reliability_score(
                    stats.completed, stats.abandoned
                ),
            }
        )
