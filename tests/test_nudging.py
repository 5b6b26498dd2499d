"""Tests for the nudging policy."""

from __future__ import annotations

import random

import pytest
from conftest import NOW, FakeGitHub, FrozenClock, days_ago, make_claim, make_comment

from cookie_jar.exceptions import GitHubAPIError, NoTemplateError
from cookie_jar.formatter import comment_kind
from cookie_jar.models import Contributor, Intervention, InterventionType
from cookie_jar.nudging import (
    NudgeResponse,
    NudgingPolicy,
    classify_response,
    default_templates,
    personalize,
)


@pytest.fixture
def policy(github: FakeGitHub, clock: FrozenClock) -> NudgingPolicy:
    return NudgingPolicy(github, clock=clock)


def _nudge(triggered_days_ago: float = 2) -> Intervention:
    return Intervention(
        id="owner/repo-1-alice-nudge-1",
        issue_claim_id="owner/repo-1-alice",
        type=InterventionType.NUDGE,
        triggered_at=days_ago(triggered_days_ago),
    )


class TestTemplates:
    def test_catalog_covers_three_levels(self) -> None:
        levels = {t.escalation_level for t in default_templates()}
        assert levels == {1, 2, 3}

    def test_personalize(self) -> None:
        text = personalize(
            "@{username} on #{issueNumber} in {repoName}",
            {"username": "alice", "issueNumber": "7", "repoName": "repo"},
        )
        assert text == "@alice on #7 in repo"

    @pytest.mark.parametrize(
        "nudges_sent,expected",
        [(0, "friendly_reminder_1"), (1, "community_nudge_1"), (2, "final_warning_1")],
    )
    def test_next_template_prefers_highest_success_rate(
        self, policy: NudgingPolicy, nudges_sent: int, expected: str
    ) -> None:
        template = policy.next_template(make_claim(nudges_sent=nudges_sent))
        assert template is not None
        assert template.id == expected

    def test_no_template_past_last_level(self, policy: NudgingPolicy) -> None:
        assert policy.next_template(make_claim(nudges_sent=3)) is None


class TestShouldSendNudge:
    def test_too_early(self, policy: NudgingPolicy) -> None:
        assert not policy.should_send_nudge(make_claim(claimed_days_ago=2))

    def test_first_nudge_due(self, policy: NudgingPolicy) -> None:
        assert policy.should_send_nudge(make_claim(claimed_days_ago=3))

    def test_second_nudge_waits_for_template_timing(self, policy: NudgingPolicy) -> None:
        claim = make_claim(claimed_days_ago=9, nudges_sent=1)
        claim.last_nudge_date = days_ago(5)
        assert not policy.should_send_nudge(claim)
        claim.claimed_at = days_ago(10)
        assert policy.should_send_nudge(claim)

    def test_minimum_gap_between_nudges(self, policy: NudgingPolicy) -> None:
        claim = make_claim(claimed_days_ago=20, nudges_sent=1)
        claim.last_nudge_date = days_ago(1)
        assert not policy.should_send_nudge(claim)

    def test_cap_reached(self, policy: NudgingPolicy) -> None:
        assert not policy.should_send_nudge(make_claim(claimed_days_ago=60, nudges_sent=3))


class TestSendNudge:
    async def test_posts_marked_comment(
        self, policy: NudgingPolicy, github: FakeGitHub
    ) -> None:
        claim = make_claim(claimed_days_ago=4)
        intervention = await policy.send_nudge(claim, "owner", "repo")

        [(issue_number, body)] = github.posted
        assert issue_number == 1
        assert comment_kind(body) == "nudge"
        assert "@alice" in body
        assert "#1" in body
        assert "Thanks for contributing to repo!" in body

        assert claim.nudges_sent == 1
        assert claim.last_nudge_date == NOW
        assert intervention.type == InterventionType.NUDGE
        assert intervention.template_id == "friendly_reminder_1"
        assert intervention.id == f"{claim.id}-nudge-{int(NOW.timestamp() * 1000)}"
        assert not intervention.success

    async def test_counts_template_usage(self, policy: NudgingPolicy) -> None:
        await policy.send_nudge(make_claim(claimed_days_ago=4), "owner", "repo")
        template = next(t for t in policy.templates if t.id == "friendly_reminder_1")
        assert template.usage_count == 1

    async def test_no_template_raises(
        self, policy: NudgingPolicy, github: FakeGitHub
    ) -> None:
        with pytest.raises(NoTemplateError) as exc_info:
            await policy.send_nudge(make_claim(nudges_sent=3), "owner", "repo")
        assert exc_info.value.escalation_level == 4
        assert github.posted == []

    async def test_failed_post_leaves_claim_untouched(
        self, policy: NudgingPolicy, github: FakeGitHub
    ) -> None:
        github.fail_posts = True
        claim = make_claim(claimed_days_ago=4)
        with pytest.raises(GitHubAPIError, match="comment failed"):
            await policy.send_nudge(claim, "owner", "repo")
        assert claim.nudges_sent == 0


class TestNudgeResponse:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Yes, still working on it!", NudgeResponse.POSITIVE),
            ("PR ready soon", NudgeResponse.POSITIVE),
            ("Sorry, giving up on this", NudgeResponse.NEGATIVE),
            ("I'm no longer able to, still working elsewhere", NudgeResponse.NEGATIVE),
            ("Hmm, let me think", NudgeResponse.NEUTRAL),
        ],
    )
    def test_classify(self, text: str, expected: NudgeResponse) -> None:
        assert classify_response(text) == expected

    def test_no_reply(self, policy: NudgingPolicy) -> None:
        comments = [
            make_comment(1, "still working", created_at=days_ago(3)),
            make_comment(2, "still working", login="bob", created_at=days_ago(1)),
        ]
        assert policy.analyze_nudge_response(_nudge(), comments, "alice") == (
            NudgeResponse.NO_RESPONSE
        )

    def test_latest_reply_wins(self, policy: NudgingPolicy) -> None:
        comments = [
            make_comment(1, "still working", created_at=days_ago(1.5)),
            make_comment(2, "actually, giving up", created_at=days_ago(1)),
        ]
        assert policy.analyze_nudge_response(_nudge(), comments, "alice") == (
            NudgeResponse.NEGATIVE
        )

    def test_record_positive_response(self, policy: NudgingPolicy) -> None:
        intervention = _nudge()
        comments = [make_comment(1, "Almost done, PR ready tomorrow", created_at=days_ago(1))]
        response = policy.record_nudge_response(intervention, comments, "alice")

        assert response == NudgeResponse.POSITIVE
        assert intervention.success
        assert intervention.response_time == pytest.approx(24.0)
        assert intervention.contributor_response == "Almost done, PR ready tomorrow"

    def test_record_silence(self, policy: NudgingPolicy) -> None:
        intervention = _nudge()
        assert policy.record_nudge_response(intervention, [], "alice") == (
            NudgeResponse.NO_RESPONSE
        )
        assert not intervention.success
        assert intervention.response_time is None


class TestStrategies:
    @pytest.mark.parametrize(
        "reliability,expected",
        [(90, [7, 14, 21]), (50, [3, 7, 14]), (30, [2, 5, 10])],
    )
    def test_optimal_timing(self, reliability: float, expected: list[int]) -> None:
        contributor = Contributor(id="1", username="alice", reliability_score=reliability)
        assert NudgingPolicy.get_optimal_nudge_timing(contributor) == expected

    def test_community_nudge(self) -> None:
        message = NudgingPolicy.generate_community_nudge(
            make_claim(), "repo", rng=random.Random(7)
        )
        assert "@alice" in message
        assert "#1" in message
        assert "{" not in message

    @pytest.mark.parametrize(
        "risk,first",
        [(75, "immediate_escalation"), (60, "accelerated_nudging"), (20, "standard_nudging")],
    )
    def test_escalation_strategy(self, risk: float, first: str) -> None:
        strategy = NudgingPolicy.create_escalation_strategy(make_claim(risk=risk))
        assert strategy[0] == first
