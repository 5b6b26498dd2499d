"""Auto-release of stale claims back to the contributor pool."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import datetime

from cookie_jar.config import RepositoryConfig
from cookie_jar.formatter import mark_comment
from cookie_jar.github_client import UPSTREAM_ERRORS
from cookie_jar.interfaces import RepositoryDataSource
from cookie_jar.models import (
    AutoReleaseReport,
    ClaimStatus,
    Intervention,
    InterventionType,
    IssueClaim,
    days_between,
)
from cookie_jar.scorer import Clock, utcnow

logger = logging.getLogger(__name__)

STALE_ACTIVITY_DAYS = 10
STALE_CLAIM_DAYS = 21

LABELS_TO_ADD = ["available", "help wanted"]
LABELS_TO_REMOVE = ["claimed", "assigned"]

_RELEASE_MESSAGES = (
    "## \U0001f504 Issue Auto-Released\n\n"
    "This issue has been automatically released for new contributors.\n\n"
    "**Previous claim:** @{username} ({days} days ago)\n"
    "**Reason:** No progress detected after multiple check-ins\n\n"
    "The issue is now available for anyone to work on. Please comment below "
    "if you'd like to take it on! \U0001f680\n\n"
    "---\n*This action was taken by Cookie Jar to keep issues moving.*",

    "## ⏰ Issue Available Again\n\n"
    "This issue is now available for new contributors to work on.\n\n"
    "**Previous claim:** @{username} claimed this {days} days ago\n"
    "**Status:** No recent activity detected\n\n"
    "Feel free to comment if you'd like to work on this issue!\n\n"
    "---\n*Auto-released by Cookie Jar*",

    "## \U0001f193 Issue Released\n\n"
    "This issue has been released and is available for contributors.\n\n"
    "**Previous claim:** @{username} ({days} days ago)\n"
    "**Action:** Auto-released due to inactivity\n\n"
    "If you're interested in working on this issue, please comment below!\n\n"
    "---\n*Managed by Cookie Jar*",
)


def calculate_grace_period(claim: IssueClaim, config: RepositoryConfig) -> int:
    """Grace period in days, scaled by the claimant's reliability.

    Reliable contributors (above 80) get 1.5x the configured base, unreliable
    ones (below 40) get 0.7x.
    """
    grace = float(config.grace_period_days)
    reliability = claim.contributor.reliability_score
    if reliability > 80:
        grace *= 1.5
    elif reliability < 40:
        grace *= 0.7
    return int(grace + 0.5)


def release_reasons(
    claim: IssueClaim, config: RepositoryConfig, now: datetime
) -> list[str]:
    """The release conditions that currently hold for *claim*."""
    reasons = []
    if now > claim.grace_period_ends_at:
        reasons.append("No progress after grace period")
    if claim.nudges_sent >= config.max_nudges:
        reasons.append("No response to nudges")
    if is_claim_stale(claim, now):
        reasons.append("Stale claim detected")
    return reasons


def is_claim_stale(claim: IssueClaim, now: datetime) -> bool:
    """Stale: idle for over 10 days, or claimed over 21 days ago with no progress."""
    if claim.days_since_activity(now) > STALE_ACTIVITY_DAYS:
        return True
    return claim.days_since_claim(now) > STALE_CLAIM_DAYS and claim.progress_score == 0


def generate_auto_release_report(
    interventions: Iterable[Intervention],
    start: datetime,
    end: datetime,
    claims: Sequence[IssueClaim] = (),
) -> AutoReleaseReport:
    """Summarize auto-release interventions triggered within ``[start, end]``.

    Average time to release is measured claim-to-release over the released
    *claims* that match an intervention.
    """
    released = [
        i for i in interventions
        if i.type == InterventionType.AUTO_RELEASE and start <= i.triggered_at <= end
    ]
    total = len(released)
    successful = sum(1 for i in released if i.success)

    by_id = {claim.id: claim for claim in claims}
    durations = [
        days_between(by_id[i.issue_claim_id].claimed_at, i.auto_released_at or i.triggered_at)
        for i in released
        if i.issue_claim_id in by_id
    ]
    reasons: Counter[str] = Counter()
    for i in released:
        claim = by_id.get(i.issue_claim_id)
        if claim is None:
            continue
        if claim.nudges_sent > 0:
            reasons["No response to nudges"] += 1
        if claim.progress_score == 0:
            reasons["No progress detected"] += 1
        if claim.risk_score > 80:
            reasons["High risk score"] += 1

    return AutoReleaseReport(
        start=start,
        end=end,
        total_auto_released=total,
        successful_releases=successful,
        success_rate=successful / total if total else 0.0,
        average_time_to_release=sum(durations) / len(durations) if durations else 0.0,
        top_reasons=[reason for reason, _ in reasons.most_common()],
    )


class AutoReleasePolicy:
    """Decide whether a claim should be released and carry out the release."""

    def __init__(self, github: RepositoryDataSource, clock: Clock | None = None) -> None:
        self._github = github
        self._clock = clock or utcnow

    def is_claim_stale(self, claim: IssueClaim) -> bool:
        return is_claim_stale(claim, self._clock())

    def should_auto_release(self, claim: IssueClaim, config: RepositoryConfig) -> bool:
        """Release needs risk above ``risk_thresholds.high`` and a release condition.

        Always false when the repository has auto-release disabled.
        """
        if not config.auto_release_enabled:
            return False
        if claim.risk_score <= config.risk_thresholds.high:
            return False
        return bool(release_reasons(claim, config, self._clock()))

    def calculate_grace_period(self, claim: IssueClaim, config: RepositoryConfig) -> int:
        return calculate_grace_period(claim, config)

    def generate_release_message(self, claim: IssueClaim) -> str:
        index = 0
        if claim.nudges_sent >= 2:
            index = 1
        if claim.risk_score > 80:
            index = 2
        days = int(claim.days_since_claim(self._clock()))
        return _RELEASE_MESSAGES[index].format(username=claim.contributor.username, days=days)

    async def auto_release_claim(
        self,
        claim: IssueClaim,
        owner: str,
        repo: str,
        config: RepositoryConfig,
    ) -> Intervention:
        """Post the release comment, unassign the claimant and relabel the issue.

        Only the comment post can fail the release; assignee and label
        updates are best effort.
        """
        message = self.generate_release_message(claim)
        await self._github.post_issue_comment(
            owner, repo, claim.issue_number, mark_comment(message, "auto_release")
        )

        await self._remove_assignment(owner, repo, claim.issue_number, claim.contributor.username)
        await self._update_labels(owner, repo, claim.issue_number)

        now = self._clock()
        claim.status = ClaimStatus.AUTO_RELEASED
        claim.auto_release_date = now
        logger.info(
            "Auto-released #%d in %s/%s from @%s",
            claim.issue_number, owner, repo, claim.contributor.username,
        )

        return Intervention(
            id=f"{claim.id}-auto-release-{int(now.timestamp() * 1000)}",
            issue_claim_id=claim.id,
            type=InterventionType.AUTO_RELEASE,
            triggered_at=now,
            message=message,
            success=True,
            auto_released_at=now,
        )

    async def _remove_assignment(
        self, owner: str, repo: str, issue_number: int, username: str
    ) -> None:
        try:
            issue = await self._github.get_issue(owner, repo, issue_number)
            remaining = [login for login in issue.assignees if login != username]
            await self._github.patch_assignees(owner, repo, issue_number, remaining)
        except UPSTREAM_ERRORS as e:
            logger.warning("Failed to remove @%s from #%d: %s", username, issue_number, e)

    async def _update_labels(self, owner: str, repo: str, issue_number: int) -> None:
        try:
            await self._github.add_labels(owner, repo, issue_number, LABELS_TO_ADD)
            await self._github.remove_labels(owner, repo, issue_number, LABELS_TO_REMOVE)
        except UPSTREAM_ERRORS as e:
            logger.warning("Failed to update labels on #%d: %s", issue_number, e)
