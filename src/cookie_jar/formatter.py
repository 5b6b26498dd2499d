"""Output formatting for Cookie Jar."""

from __future__ import annotations

import re

import click
from pydantic import BaseModel

from cookie_jar.models import (
    Analytics,
    CandidateAssessment,
    ClaimDetectionResult,
    SuggestedAction,
)

COMMENT_MARKER = "<!-- cookie-jar -->"

_ACTION_MARKER_RE = re.compile(r"<!-- cookie-jar:(?P<kind>[a-z_]+) -->")

_ACTION_COLORS: dict[SuggestedAction, str] = {
    SuggestedAction.MONITOR: "green",
    SuggestedAction.NUDGE: "yellow",
    SuggestedAction.ESCALATE: "magenta",
    SuggestedAction.AUTO_RELEASE: "red",
}


def mark_comment(body: str, kind: str) -> str:
    """Append the bot markers so later passes recognise this comment."""
    return f"{body}\n\n{COMMENT_MARKER}\n<!-- cookie-jar:{kind} -->"


def comment_kind(body: str) -> str | None:
    """Return the action kind of a bot comment (``nudge``, ``auto_release``)."""
    if COMMENT_MARKER not in body:
        return None
    match = _ACTION_MARKER_RE.search(body)
    return match.group("kind") if match else None


def format_analytics_cli(analytics: Analytics, verbose: bool = False) -> str:
    """Format a repository pass summary for terminal display."""
    header = click.style(analytics.repository_id or "repository", bold=True)
    released = click.style(
        str(analytics.total_auto_released),
        fg="red" if analytics.total_auto_released else "green",
        bold=True,
    )
    lines: list[str] = [
        f"Cookie Jar: {header}",
        f"Issues analyzed: {analytics.total_issues_analyzed}",
        f"Claims detected: {analytics.total_claims_detected}"
        f" (resolved: {analytics.total_claims_resolved})",
        f"Nudges sent: {analytics.total_nudges_sent} | Auto-released: {released}",
        f"Intervention success rate: {analytics.success_rate * 100:.0f}%",
    ]

    if analytics.failed_issues:
        failed = ", ".join(f"#{n}" for n in analytics.failed_issues)
        lines.append(click.style(f"Failed issues: {failed}", fg="yellow"))

    if verbose:
        lines.append("")
        lines.append(
            f"Average resolution time: {analytics.average_resolution_time:.1f} days"
        )
        if analytics.issue_complexity_distribution:
            lines.append("Complexity distribution:")
            for tier, count in analytics.issue_complexity_distribution.items():
                lines.append(f"  {tier}: {count}")
        if analytics.intervention_effectiveness:
            lines.append("Intervention effectiveness:")
            for kind, rate in analytics.intervention_effectiveness.items():
                lines.append(f"  {kind}: {rate * 100:.0f}%")
        if analytics.top_contributors:
            lines.append("Top contributors:")
            for stats in analytics.top_contributors:
                lines.append(
                    f"  {stats.username}: {stats.completed} completed,"
                    f" {stats.abandoned} abandoned"
                )

    return "\n".join(lines)


def format_classification(text: str, is_claim: bool, is_progress: bool,
                          is_abandonment: bool, result: ClaimDetectionResult) -> str:
    """Format text classification results for terminal display."""
    color = _ACTION_COLORS.get(result.suggested_action, "white")
    action = click.style(result.suggested_action.value, fg=color, bold=True)
    lines = [
        f"Claim: {'yes' if is_claim else 'no'} ({result.claim_type.value})",
        f"Progress: {'yes' if is_progress else 'no'}",
        f"Abandonment: {'yes' if is_abandonment else 'no'}",
        f"Confidence: {result.confidence:.2f}",
        f"Suggested action: {action}",
    ]
    for factor in result.risk_factors:
        lines.append(f"  - {factor}")
    return "\n".join(lines)


def format_candidates(candidates: list[CandidateAssessment]) -> str:
    """Format ranked claim candidates as a table."""
    if not candidates:
        return "No candidates found."
    lines = [
        f"{'User':<24} {'Score':>5} {'Reliability':>11} {'PRs':>4} {'Days':>4}",
    ]
    for c in candidates:
        lines.append(
            f"{c.username:<24} {c.predictive_score:>5.0f} {c.reliability_score:>11.0f}"
            f" {c.previous_contributions:>4} {c.days_since_claim:>4}"
        )
    return "\n".join(lines)


def format_json(model: BaseModel) -> str:
    """Format any result model as JSON."""
    return model.model_dump_json(indent=2)
