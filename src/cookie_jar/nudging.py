"""Escalating reminder policy for open claims."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from datetime import datetime
from enum import StrEnum

from cookie_jar.exceptions import NoTemplateError
from cookie_jar.formatter import mark_comment
from cookie_jar.interfaces import RepositoryDataSource
from cookie_jar.models import (
    Contributor,
    Intervention,
    InterventionType,
    IssueClaim,
    IssueComment,
    NudgeTemplate,
    NudgeTemplateType,
    days_between,
)
from cookie_jar.scorer import Clock, utcnow

logger = logging.getLogger(__name__)

MAX_NUDGES = 3
MIN_DAYS_BETWEEN_NUDGES = 3

POSITIVE_RESPONSES = (
    "still working",
    "almost done",
    "making progress",
    "will finish",
    "committing",
    "pull request",
    "pr ready",
    "working on it",
    "yes, still",
    "yes still",
)

NEGATIVE_RESPONSES = (
    "can't work",
    "cannot work",
    "unable to",
    "no longer",
    "passing",
    "someone else",
    "not working",
    "stopping",
    "giving up",
    "abandoning",
)

_COMMUNITY_MESSAGES = (
    "Hey @{username}! \U0001f44b The community is wondering about the progress on "
    "#{issueNumber}. Any updates you can share?",
    "@{username}, how's it going with #{issueNumber}? We'd love to hear how it's going!",
    "Quick check-in: @{username}, are you still working on #{issueNumber}?",
    "@{username}, hope #{issueNumber} is going well! Feel free to share any "
    "challenges you're facing.",
)


class NudgeResponse(StrEnum):
    """How a contributor reacted to a nudge."""
    NO_RESPONSE = "no_response"
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


def default_templates() -> list[NudgeTemplate]:
    """The built-in template catalog, one or more per escalation level."""
    return [
        NudgeTemplate(
            id="friendly_reminder_1",
            name="Friendly First Reminder",
            type=NudgeTemplateType.FRIENDLY_REMINDER,
            subject="Just checking in on your issue! \U0001f60a",
            message=(
                "Hi @{username}! \U0001f44b\n\n"
                "I noticed you mentioned you'd work on #{issueNumber} a few days ago. "
                "Just wanted to check in and see how it's going!\n\n"
                "If you've run into any challenges or need help, feel free to reach "
                "out to the maintainers.\n\n"
                "If you're no longer able to work on this issue, no worries at all - "
                "just let us know so we can free it up for others.\n\n"
                "Thanks for contributing to {repoName}! \U0001f680"
            ),
            timing=3,
            escalation_level=1,
            success_rate=0.65,
        ),
        NudgeTemplate(
            id="progress_check_1",
            name="Progress Check",
            type=NudgeTemplateType.PROGRESS_CHECK,
            subject="How is #{issueNumber} coming along?",
            message=(
                "Hey @{username}! \U0001f44b\n\n"
                "I'm checking in on #{issueNumber} that you claimed.\n\n"
                "Are you still working on this? Even a quick note helps the "
                "community know what's happening.\n\n"
                "If you've hit a blocker, don't hesitate to ask here or reach out "
                "to maintainers. If you can't continue, that's totally fine - just "
                "give us a heads up so we can make it available for others.\n\n"
                "Thanks! \U0001f64f"
            ),
            timing=7,
            escalation_level=2,
            success_rate=0.55,
        ),
        NudgeTemplate(
            id="community_nudge_1",
            name="Community Nudge",
            type=NudgeTemplateType.COMMUNITY_NUDGE,
            subject="Community check-in on #{issueNumber}",
            message=(
                "Hello @{username} and the {repoName} community! \U0001f465\n\n"
                "We're doing a quick community check-in on #{issueNumber} that was "
                "claimed by @{username}.\n\n"
                "@{username}, if you're still on it, we'd love to hear how it's going!\n\n"
                "Community members: if anyone has experience with this kind of issue, "
                "feel free to chime in.\n\n"
                "Thanks everyone! \U0001f31f"
            ),
            timing=10,
            escalation_level=2,
            success_rate=0.70,
        ),
        NudgeTemplate(
            id="final_warning_1",
            name="Final Warning",
            type=NudgeTemplateType.FINAL_WARNING,
            subject="Final check: Still working on #{issueNumber}?",
            message=(
                "Hi @{username},\n\n"
                "This is a final check-in regarding #{issueNumber} that you claimed. "
                "We haven't seen any activity in a while.\n\n"
                "If you're still on it, please let us know with a quick comment.\n\n"
                "If we don't hear back, the issue will be released so other "
                "contributors can pick it up.\n\n"
                "Thanks for understanding! \U0001f91d"
            ),
            timing=14,
            escalation_level=3,
            success_rate=0.45,
        ),
    ]


def personalize(message: str, variables: dict[str, str]) -> str:
    """Substitute ``{name}`` placeholders."""
    for key, value in variables.items():
        message = message.replace(f"{{{key}}}", value)
    return message


def classify_response(text: str) -> NudgeResponse:
    lowered = text.lower()
    positive = any(phrase in lowered for phrase in POSITIVE_RESPONSES)
    negative = any(phrase in lowered for phrase in NEGATIVE_RESPONSES)
    if negative:
        return NudgeResponse.NEGATIVE
    if positive:
        return NudgeResponse.POSITIVE
    return NudgeResponse.NEUTRAL


class NudgingPolicy:
    """Decide when to remind a claimant and post the reminder.

    Claims move through ``active -> nudged(1..3)``; each nudge uses the best
    template of the next escalation level.
    """

    def __init__(
        self,
        github: RepositoryDataSource,
        templates: Sequence[NudgeTemplate] | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._github = github
        self.templates = list(templates) if templates is not None else default_templates()
        self._clock = clock or utcnow

    def next_template(self, claim: IssueClaim) -> NudgeTemplate | None:
        """Highest success-rate template for escalation level ``nudges_sent + 1``."""
        level = claim.nudges_sent + 1
        candidates = [t for t in self.templates if t.escalation_level == level]
        if not candidates:
            return None
        return max(candidates, key=lambda t: t.success_rate)

    def should_send_nudge(self, claim: IssueClaim) -> bool:
        if claim.nudges_sent >= MAX_NUDGES:
            return False

        now = self._clock()
        if claim.last_nudge_date is not None:
            if days_between(claim.last_nudge_date, now) < MIN_DAYS_BETWEEN_NUDGES:
                return False

        template = self.next_template(claim)
        if template is None:
            return False
        return claim.days_since_claim(now) >= template.timing

    async def send_nudge(self, claim: IssueClaim, owner: str, repo: str) -> Intervention:
        """Post the next reminder and record it on the claim.

        Raises:
            NoTemplateError: If no template exists for the next level.
        """
        template = self.next_template(claim)
        if template is None:
            raise NoTemplateError(claim.nudges_sent + 1)

        variables = {
            "username": claim.contributor.username,
            "issueNumber": str(claim.issue_number),
            "repoName": repo,
        }
        subject = personalize(template.subject, variables)
        message = personalize(template.message, variables)

        await self._github.post_issue_comment(
            owner, repo, claim.issue_number, mark_comment(f"**{subject}**\n\n{message}", "nudge")
        )

        now = self._clock()
        template.usage_count += 1
        claim.nudges_sent += 1
        claim.last_nudge_date = now
        logger.info(
            "Sent %s nudge to @%s on #%d (level %d)",
            template.id, claim.contributor.username, claim.issue_number,
            template.escalation_level,
        )

        return Intervention(
            id=f"{claim.id}-nudge-{int(now.timestamp() * 1000)}",
            issue_claim_id=claim.id,
            type=InterventionType.NUDGE,
            triggered_at=now,
            template_id=template.id,
            message=message,
            success=False,
        )

    @staticmethod
    def _latest_reply(
        since: datetime, comments: Sequence[IssueComment], username: str
    ) -> IssueComment | None:
        replies = [
            c for c in comments
            if c.created_at > since and c.user.login == username
        ]
        if not replies:
            return None
        return max(replies, key=lambda c: c.created_at)

    def analyze_nudge_response(
        self,
        intervention: Intervention,
        comments: Sequence[IssueComment],
        username: str,
    ) -> NudgeResponse:
        """Classify the claimant's latest reply after the nudge.

        No reply at all is ``NO_RESPONSE``, which is distinct from an
        explicit negative answer.
        """
        reply = self._latest_reply(intervention.triggered_at, comments, username)
        if reply is None:
            return NudgeResponse.NO_RESPONSE
        return classify_response(reply.body)

    def record_nudge_response(
        self,
        intervention: Intervention,
        comments: Sequence[IssueComment],
        username: str,
    ) -> NudgeResponse:
        """Mark *intervention* successful when the claimant answered positively."""
        response = self.analyze_nudge_response(intervention, comments, username)
        reply = self._latest_reply(intervention.triggered_at, comments, username)
        if reply is not None:
            intervention.contributor_response = reply.body
            intervention.response_time = (
                reply.created_at - intervention.triggered_at
            ).total_seconds() / 3600
        intervention.success = response == NudgeResponse.POSITIVE
        return response

    @staticmethod
    def get_optimal_nudge_timing(contributor: Contributor) -> list[int]:
        """Nudge days adjusted for reliability: patient with reliable people."""
        if contributor.reliability_score > 80:
            return [7, 14, 21]
        if contributor.reliability_score < 40:
            return [2, 5, 10]
        return [3, 7, 14]

    @staticmethod
    def generate_community_nudge(
        claim: IssueClaim, repo: str, rng: random.Random | None = None
    ) -> str:
        chooser = rng or random.Random()
        message = chooser.choice(_COMMUNITY_MESSAGES)
        return personalize(message, {
            "username": claim.contributor.username,
            "issueNumber": str(claim.issue_number),
            "repoName": repo,
        })

    @staticmethod
    def create_escalation_strategy(claim: IssueClaim) -> list[str]:
        if claim.risk_score > 70:
            return ["immediate_escalation", "maintainer_notification", "auto_release_candidate"]
        if claim.risk_score > 50:
            return ["accelerated_nudging", "community_intervention"]
        return ["standard_nudging", "patience_approach"]
