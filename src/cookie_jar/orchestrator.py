"""Repository passes: analysis, scoring and interventions for open claims."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from datetime import timedelta
from typing import Any

from cookie_jar.analysis import IssueAnalyzer, is_bot_comment
from cookie_jar.auto_release import AutoReleasePolicy, calculate_grace_period
from cookie_jar.classifier import RuleCategory, matches
from cookie_jar.config import CookieJarConfig, RepositoryConfig, validate_benchmark
from cookie_jar.github_client import UPSTREAM_ERRORS
from cookie_jar.interfaces import ConfigStore, NotificationSink, RepositoryDataSource
from cookie_jar.models import (
    Analytics,
    CandidateAssessment,
    ClaimStatus,
    ClaimType,
    Complexity,
    Contributor,
    GitHubIssue,
    Intervention,
    InterventionType,
    IssueAnalysis,
    IssueClaim,
    IssueComment,
    NotificationLog,
    days_between,
)
from cookie_jar.nudging import NudgingPolicy
from cookie_jar.reliability import (
    ContributorRegistry,
    average_merge_days,
    estimate_reliability_from_pulls,
    score_candidate,
)
from cookie_jar.scorer import Clock, RiskScorer, utcnow

logger = logging.getLogger(__name__)

WEBHOOK_ACTIONS = frozenset(
    {"opened", "edited", "closed", "created", "assigned", "unassigned"}
)
TOP_CONTRIBUTORS = 10


class CookieJarDetector:
    """Drive analysis passes over a repository's open issues.

    One instance per process or request scope. All collaborators are
    injected; nothing is shared through module state.
    """

    def __init__(
        self,
        github: RepositoryDataSource,
        config_store: ConfigStore,
        notifier: NotificationSink | None = None,
        config: CookieJarConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._github = github
        self._store = config_store
        self._notifier = notifier
        self.config = config if config is not None else CookieJarConfig()
        self._clock = clock or utcnow

        self.scorer = RiskScorer(self._clock)
        self.nudging = NudgingPolicy(github, clock=self._clock)
        self.auto_release = AutoReleasePolicy(github, clock=self._clock)

        self._benchmark = self.config.notifications.probability_benchmark
        self._notification_logs: list[NotificationLog] = []
        self._locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def probability_benchmark(self) -> float:
        """Completion probability (percent) below which claimants are alerted."""
        return self._benchmark

    def set_probability_benchmark(self, value: float) -> None:
        """Raises :class:`ConfigError` when *value* is outside ``[0, 100]``."""
        self._benchmark = validate_benchmark(value)

    @property
    def notification_logs(self) -> list[NotificationLog]:
        return list(self._notification_logs)

    def clear_notification_logs(self) -> None:
        self._notification_logs.clear()

    def get_repository_config(
        self, owner: str, repo: str, overrides: dict[str, Any] | None = None
    ) -> RepositoryConfig:
        """Stored config for ``owner/repo``, created from defaults on first use.

        *overrides* are applied on top and persisted.
        """
        repository_id = f"{owner}/{repo}"
        config = self._store.get(repository_id)
        if config is None:
            config = self.config.defaults.for_repository(owner, repo, **(overrides or {}))
            self._store.set(config)
        elif overrides:
            config = RepositoryConfig.model_validate(
                {**config.model_dump(), **overrides}
            )
            self._store.set(config)
        return config

    def _lock_for(self, repository_id: str) -> asyncio.Lock:
        return self._locks.setdefault(repository_id, asyncio.Lock())

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def process_repository(
        self, owner: str, repo: str, overrides: dict[str, Any] | None = None
    ) -> Analytics:
        """Run one full pass over the open issues of ``owner/repo``.

        Overlapping passes for the same repository wait for each other.
        """
        repository_id = f"{owner}/{repo}"
        async with self._lock_for(repository_id):
            return await self._process_repository(owner, repo, overrides)

    async def _process_repository(
        self, owner: str, repo: str, overrides: dict[str, Any] | None
    ) -> Analytics:
        config = self.get_repository_config(owner, repo, overrides)
        repository_id = config.repository_id
        if not config.is_active:
            logger.info("Skipping inactive repository %s", repository_id)
            return Analytics(repository_id=repository_id)

        logger.info("Processing repository %s", repository_id)
        issues = await self._github.list_open_issues(owner, repo)
        logger.info("Found %d open issues in %s", len(issues), repository_id)

        analyzer = IssueAnalyzer(config.grace_period_days)
        analyses: list[IssueAnalysis] = []
        failed: list[int] = []

        for issue in issues:
            try:
                comments = await self._fetch_comments(owner, repo, issue, failed)
                analyses.append(analyzer.analyze_issue(issue, comments, repository_id))
            except Exception:
                logger.exception("Error analyzing issue #%d", issue.number)
                if issue.number not in failed:
                    failed.append(issue.number)

        claims = [claim for analysis in analyses for claim in analysis.claim_history]
        registry = ContributorRegistry()
        registry.observe(claims)

        interventions: list[Intervention] = []
        for analysis in analyses:
            claim = analysis.current_claim
            if claim is None:
                continue
            try:
                claim.contributor = await self._resolve_contributor(registry, claim.contributor)
                interventions.extend(
                    await self.process_claim(claim, analysis, config, owner, repo)
                )
            except Exception:
                logger.exception("Error processing claim %s", claim.id)
                if analysis.issue_number not in failed:
                    failed.append(analysis.issue_number)

        analytics = self.generate_analytics(
            analyses, claims, interventions,
            repository_id=repository_id, failed_issues=failed,
        )
        logger.info(
            "Finished %s: %d claims, %d interventions",
            repository_id, len(claims), len(interventions),
        )
        return analytics

    async def _fetch_comments(
        self, owner: str, repo: str, issue: GitHubIssue, failed: list[int]
    ) -> list[IssueComment]:
        try:
            return await self._github.list_issue_comments(owner, repo, issue.number)
        except UPSTREAM_ERRORS as e:
            logger.warning("Could not fetch comments for #%d: %s", issue.number, e)
            failed.append(issue.number)
            return []

    async def _resolve_contributor(
        self, registry: ContributorRegistry, contributor: Contributor
    ) -> Contributor:
        """Attach pass-local history, plus the email address when alerts are on."""
        resolved = registry.resolve(contributor)
        if self._notifier is None or resolved.email:
            return resolved
        try:
            user = await self._github.get_user(contributor.username)
        except UPSTREAM_ERRORS as e:
            logger.warning("Could not fetch user %s: %s", contributor.username, e)
            return resolved
        return resolved.model_copy(update={"email": user.email})

    async def process_claim(
        self,
        claim: IssueClaim,
        analysis: IssueAnalysis,
        config: RepositoryConfig,
        owner: str,
        repo: str,
    ) -> list[Intervention]:
        """Rescore *claim*, then nudge, release and alert as warranted.

        Nudging is evaluated before auto-release, so one pass may do both.
        Failed side effects are logged and skipped.
        """
        claim.grace_period_ends_at = claim.claimed_at + timedelta(
            days=calculate_grace_period(claim, config)
        )
        claim.progress_score = self.scorer.calculate_progress_score(claim, analysis)
        claim.risk_score = self.scorer.calculate_risk_score(claim, analysis)
        claim.predicted_completion_probability = self.scorer.predict_completion_probability(
            claim, analysis
        )

        interventions: list[Intervention] = []

        if claim.nudges_sent < config.max_nudges and self.nudging.should_send_nudge(claim):
            try:
                interventions.append(await self.nudging.send_nudge(claim, owner, repo))
            except UPSTREAM_ERRORS as e:
                logger.error("Failed to send nudge for claim %s: %s", claim.id, e)

        if self.auto_release.should_auto_release(claim, config):
            try:
                interventions.append(
                    await self.auto_release.auto_release_claim(claim, owner, repo, config)
                )
            except UPSTREAM_ERRORS as e:
                logger.error("Failed to auto-release claim %s: %s", claim.id, e)

        if claim.is_open:
            await self._check_probability(claim, analysis, owner, repo)

        return interventions

    async def _check_probability(
        self, claim: IssueClaim, analysis: IssueAnalysis, owner: str, repo: str
    ) -> None:
        if self._notifier is None:
            return
        probability = claim.predicted_completion_probability * 100
        email = claim.contributor.email
        if probability >= self._benchmark or not email:
            return

        repository = f"{owner}/{repo}"
        try:
            result = await self._notifier.send_low_probability_alert(
                contributor_email=email,
                contributor_name=claim.contributor.username,
                issue_title=analysis.title,
                issue_number=claim.issue_number,
                repo_name=repository,
                current_probability=probability,
                benchmark=self._benchmark,
                issue_url=analysis.html_url,
            )
        except Exception as exc:
            logger.error("Alert for claim %s failed: %s", claim.id, exc)
            self._log_notification(claim, repository, email, probability, False, "", str(exc))
            return
        self._log_notification(
            claim, repository, email, probability,
            result.success, result.message_id, result.error,
        )

    def _log_notification(
        self,
        claim: IssueClaim,
        repository: str,
        email: str,
        probability: float,
        sent: bool,
        message_id: str,
        error: str | None,
    ) -> None:
        self._notification_logs.append(
            NotificationLog(
                id=uuid.uuid4().hex,
                timestamp=self._clock(),
                repository=repository,
                issue=f"#{claim.issue_number}",
                contributor=claim.contributor.username,
                contributor_email=email,
                current_probability=probability,
                benchmark=self._benchmark,
                email_sent=sent,
                message_id=message_id,
                error=error,
            )
        )

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def generate_analytics(
        self,
        analyses: Sequence[IssueAnalysis],
        claims: Sequence[IssueClaim],
        interventions: Sequence[Intervention],
        repository_id: str = "",
        failed_issues: Sequence[int] = (),
    ) -> Analytics:
        resolved = [
            c for c in claims
            if c.status in (ClaimStatus.COMPLETED, ClaimStatus.AUTO_RELEASED)
        ]
        durations = []
        for claim in resolved:
            if claim.status == ClaimStatus.AUTO_RELEASED and claim.auto_release_date:
                end = claim.auto_release_date
            else:
                end = claim.last_activity_date
            durations.append(days_between(claim.claimed_at, end))

        successful = sum(1 for i in interventions if i.success)

        distribution = {tier.value: 0 for tier in Complexity}
        for analysis in analyses:
            distribution[analysis.complexity.value] += 1

        totals: dict[str, list[int]] = {}
        for intervention in interventions:
            counts = totals.setdefault(intervention.type.value, [0, 0])
            counts[0] += 1
            counts[1] += int(intervention.success)
        effectiveness = {kind: ok / total for kind, (total, ok) in totals.items()}

        registry = ContributorRegistry()
        registry.observe(claims)
        top = sorted(registry.all_stats(), key=lambda s: s.net_score, reverse=True)

        return Analytics(
            repository_id=repository_id,
            total_issues_analyzed=len(analyses),
            total_claims_detected=len(claims),
            total_claims_resolved=len(resolved),
            total_auto_released=sum(
                1 for i in interventions if i.type == InterventionType.AUTO_RELEASE
            ),
            total_nudges_sent=sum(1 for i in interventions if i.type == InterventionType.NUDGE),
            average_resolution_time=sum(durations) / len(durations) if durations else 0.0,
            success_rate=successful / len(interventions) if interventions else 0.0,
            issue_complexity_distribution=distribution,
            intervention_effectiveness=effectiveness,
            top_contributors=top[:TOP_CONTRIBUTORS],
            failed_issues=list(failed_issues),
        )

    # ------------------------------------------------------------------
    # Webhooks, assignees and candidates
    # ------------------------------------------------------------------

    async def handle_webhook(self, payload: dict[str, Any]) -> list[Intervention]:
        """Re-analyze the issue named in a GitHub ``issues``/``issue_comment`` event."""
        action = payload.get("action")
        if action not in WEBHOOK_ACTIONS:
            logger.debug("Ignoring webhook action %r", action)
            return []

        repository = payload.get("repository") or {}
        issue_data = payload.get("issue")
        owner = (repository.get("owner") or {}).get("login")
        repo = repository.get("name")
        if not owner or not repo or not issue_data:
            logger.debug("Ignoring webhook without repository or issue")
            return []

        try:
            issue = GitHubIssue.from_api(issue_data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring webhook with malformed issue: %s", e)
            return []
        if issue.is_pull_request:
            return []
        logger.info("Webhook %s for %s/%s#%d", action, owner, repo, issue.number)

        async with self._lock_for(f"{owner}/{repo}"):
            try:
                config = self.get_repository_config(owner, repo)
                comments = await self._github.list_issue_comments(owner, repo, issue.number)
                analysis = IssueAnalyzer(config.grace_period_days).analyze_issue(
                    issue, comments, config.repository_id
                )
                claim = analysis.current_claim
                if claim is None:
                    return []
                registry = ContributorRegistry()
                registry.observe(analysis.claim_history)
                claim.contributor = await self._resolve_contributor(registry, claim.contributor)
                return await self.process_claim(claim, analysis, config, owner, repo)
            except Exception:
                logger.exception("Error processing webhook for issue #%d", issue.number)
                return []

    async def monitor_assigned_contributors(self, owner: str, repo: str) -> list[Intervention]:
        """Treat assignees of otherwise unclaimed open issues as claimants.

        The claim starts at the issue's last update, since the REST issue
        payload carries no assignment timestamp.
        """
        config = self.get_repository_config(owner, repo)
        repository_id = config.repository_id
        interventions: list[Intervention] = []

        async with self._lock_for(repository_id):
            issues = await self._github.list_open_issues(owner, repo)
            analyzer = IssueAnalyzer(config.grace_period_days)
            for issue in issues:
                if not issue.assignees:
                    continue
                try:
                    comments = await self._github.list_issue_comments(owner, repo, issue.number)
                    analysis = analyzer.analyze_issue(issue, comments, repository_id)
                    if analysis.current_claim is not None:
                        continue
                    claim = self._assignment_claim(issue, repository_id, config)
                    analysis = analysis.model_copy(update={"current_claim": claim})
                    claim.contributor = await self._resolve_contributor(
                        ContributorRegistry(), claim.contributor
                    )
                    interventions.extend(
                        await self.process_claim(claim, analysis, config, owner, repo)
                    )
                except Exception:
                    logger.exception("Error monitoring assignee of #%d", issue.number)

        return interventions

    @staticmethod
    def _assignment_claim(
        issue: GitHubIssue, repository_id: str, config: RepositoryConfig
    ) -> IssueClaim:
        username = issue.assignees[0]
        return IssueClaim(
            id=f"{repository_id}-{issue.number}-assignment-{username}",
            issue_number=issue.number,
            repository_id=repository_id,
            contributor=Contributor(id=username, username=username),
            claimed_at=issue.updated_at,
            claim_type=ClaimType.ASSIGNMENT,
            status=ClaimStatus.ACTIVE,
            last_activity_date=issue.updated_at,
            grace_period_ends_at=issue.updated_at + timedelta(days=config.grace_period_days),
        )

    async def rank_candidates(
        self, owner: str, repo: str, issue_number: int
    ) -> list[CandidateAssessment]:
        """Rank users asking to work on an issue by predicted follow-through.

        Each user is assessed once, on their first claim-like comment.
        """
        comments = await self._github.list_issue_comments(owner, repo, issue_number)
        now = self._clock()
        seen: set[str] = set()
        candidates: list[CandidateAssessment] = []

        for comment in sorted(comments, key=lambda c: (c.created_at, c.id)):
            username = comment.user.login
            if username in seen or is_bot_comment(comment):
                continue
            if not matches(RuleCategory.CLAIM, comment.body):
                continue
            seen.add(username)

            try:
                pulls = await self._github.list_user_pulls(owner, repo, username)
            except UPSTREAM_ERRORS as e:
                logger.warning("Could not fetch pull requests for %s: %s", username, e)
                pulls = []

            reliability = estimate_reliability_from_pulls(pulls)
            average_days = average_merge_days(pulls)
            days = max(0, int(days_between(comment.created_at, now)))
            candidates.append(
                CandidateAssessment(
                    username=username,
                    avatar_url=comment.user.avatar_url,
                    claim_text=comment.body[:150],
                    claimed_at=comment.created_at,
                    days_since_claim=days,
                    reliability_score=reliability,
                    predictive_score=score_candidate(reliability, len(pulls), days, average_days),
                    previous_contributions=len(pulls),
                    successful_contributions=sum(1 for pr in pulls if pr.is_merged),
                    average_completion_time=average_days,
                )
            )

        candidates.sort(key=lambda c: c.predictive_score, reverse=True)
        return candidates
