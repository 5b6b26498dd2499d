"""Risk and completion probability scoring for issue claims."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from cookie_jar.models import Complexity, IssueAnalysis, IssueClaim

Clock = Callable[[], datetime]

_COMPLEXITY_RISK = {Complexity.LOW: 0, Complexity.MEDIUM: 15, Complexity.HIGH: 30}
_COMPLEXITY_PENALTY = {Complexity.LOW: 0.0, Complexity.MEDIUM: -0.1, Complexity.HIGH: -0.2}


def utcnow() -> datetime:
    return datetime.now(UTC)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class RiskScorer:
    """Score how likely a claim is to be abandoned.

    All time-dependent terms are measured against the injected *clock* so
    scoring is deterministic under test.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or utcnow

    def _base_risk(self, claim: IssueClaim, now: datetime) -> float:
        contributor = claim.contributor
        risk = min(40.0, max(0.0, claim.days_since_claim(now)) * 5)
        risk += (100 - contributor.reliability_score) * 0.3
        risk += (100 - claim.progress_score) * 0.2
        if contributor.abandoned_issues > 0:
            risk += contributor.abandonment_rate * 25
        return risk

    def calculate_risk_score(self, claim: IssueClaim, analysis: IssueAnalysis) -> float:
        """Risk of abandonment (0-100), including issue complexity."""
        risk = self._base_risk(claim, self._clock())
        risk += _COMPLEXITY_RISK[analysis.complexity]
        return _clamp(risk, 0.0, 100.0)

    def calculate_claim_risk_score(self, claim: IssueClaim) -> float:
        """Lighter risk variant: no issue data, but counts unanswered nudges."""
        risk = self._base_risk(claim, self._clock())
        risk += claim.nudges_sent * 5
        return _clamp(risk, 0.0, 100.0)

    def predict_completion_probability(
        self, claim: IssueClaim, analysis: IssueAnalysis
    ) -> float:
        """Probability (0-1) that the claimant delivers.

        Rewards experience and issue appeal; staleness and repeated nudges
        pull it down sharply.
        """
        contributor = claim.contributor
        probability = contributor.reliability_score / 100

        experience = min(100.0, contributor.total_contributions / 10)
        probability += (experience / 100) * 0.3 + _COMPLEXITY_PENALTY[analysis.complexity]
        probability += (analysis.appeal_score / 100) * 0.1

        age = claim.days_since_claim(self._clock())
        if age > 7:
            probability -= 0.2
        elif age > 3:
            probability -= 0.1

        if claim.nudges_sent > 2:
            probability -= 0.15

        return _clamp(probability, 0.0, 1.0)

    def calculate_progress_score(self, claim: IssueClaim, analysis: IssueAnalysis) -> float:
        """Activity-recency progress estimate, never below the comment-based score."""
        now = self._clock()
        age = claim.days_since_claim(now)
        idle = claim.days_since_activity(now)

        score = 0.0
        if age > 7 and idle < 3:
            score += 30
        elif idle < 1:
            score += 50

        if analysis.complexity == Complexity.HIGH and age > 14:
            score += 20

        return min(100.0, max(score, claim.progress_score))
