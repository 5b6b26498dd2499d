"""Rule-based classification of issue comments.

Comments are matched against an ordered list of tagged regular expressions.
Each rule belongs to one :class:`RuleCategory`; a category matches a text when
*any* of its rules match.  Text is lower-cased and typographic apostrophes
are normalized before matching.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from cookie_jar.models import (
    ClaimDetectionResult,
    ClaimType,
    Contributor,
    IssueClaim,
    SuggestedAction,
)


class RuleCategory(StrEnum):
    CLAIM = "claim"
    PROGRESS = "progress"
    ABANDONMENT = "abandonment"
    LOW_CONFIDENCE = "low_confidence"
    HIGH_CONFIDENCE = "high_confidence"


@dataclass(frozen=True)
class PatternRule:
    """A single regex tagged with the category it signals."""

    category: RuleCategory
    pattern: re.Pattern[str]
    name: str = ""

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rule(category: RuleCategory, name: str, pattern: str) -> PatternRule:
    return PatternRule(category, re.compile(pattern, re.IGNORECASE), name)


_TARGET = r"(?:this(?:\s+(?:issue|one|task))?|it)"
_VERBS = r"(?:work\s+on|take|handle|tackle|fix|solve|pick\s+up)"

RULES: tuple[PatternRule, ...] = (
    # Volunteering
    _rule(RuleCategory.CLAIM, "will-do", rf"\bi(?:'ll|ll|\s+will)\s+{_VERBS}\b"),
    _rule(
        RuleCategory.CLAIM,
        "doing-now",
        rf"\bi(?:'m|m|\s+am)\s+(?:working\s+on|taking|handling|tackling|fixing|solving)"
        rf"\s+{_TARGET}",
    ),
    _rule(RuleCategory.CLAIM, "let-me", rf"\blet\s+me\s+{_VERBS}\b"),
    _rule(
        RuleCategory.CLAIM,
        "want-to",
        rf"\bi(?:\s+want|\s+would\s+like|'d\s+like|d\s+like)\s+to\s+{_VERBS}\b",
    ),
    _rule(RuleCategory.CLAIM, "can-i", rf"\bcan\s+i\s+{_VERBS}\b"),
    _rule(RuleCategory.CLAIM, "count-me-in", r"\bcount\s+me\s+in\b"),
    _rule(RuleCategory.CLAIM, "volunteer", r"\bi\s+(?:volunteer|got\s+this)\b"),
    # Assignment requests
    _rule(
        RuleCategory.CLAIM,
        "assign-me",
        rf"\b(?:assign|give)\s+{_TARGET}\s+to\s+me\b",
    ),
    _rule(RuleCategory.CLAIM, "assign-me-short", r"\bassign\s+me\b"),
    _rule(
        RuleCategory.CLAIM,
        "be-assigned",
        r"\b(?:like|want|love)\s+to\s+be\s+assigned\b",
    ),
    # Self-assignment
    _rule(RuleCategory.CLAIM, "claiming", rf"\b(?:i(?:'m|m|\s+am)\s+)?claiming\s+{_TARGET}"),
    _rule(RuleCategory.CLAIM, "dibs", r"\bdibs\b"),
    # Real work being reported
    _rule(RuleCategory.PROGRESS, "pull-request", r"\bpull\s+request\b|\bpr\s*#\d+"),
    _rule(RuleCategory.PROGRESS, "commit", r"\bcommit(?:s|ted|ting)?\b"),
    _rule(RuleCategory.PROGRESS, "branch", r"\bbranch(?:es|ed|ing)?\b"),
    _rule(RuleCategory.PROGRESS, "pushed", r"\bpushed\b"),
    _rule(
        RuleCategory.PROGRESS,
        "fix-ready",
        r"\bfix\s+(?:is\s+)?(?:ready|done|complete)\b",
    ),
    _rule(
        RuleCategory.PROGRESS,
        "working-on-fix",
        r"\bworking\s+on\s+(?:a\s+)?(?:fix|solution|implementation)\b",
    ),
    _rule(RuleCategory.PROGRESS, "implementing", r"\bimplement(?:ing|ation)\b"),
    _rule(RuleCategory.PROGRESS, "coding", r"\bcoding\b"),
    _rule(RuleCategory.PROGRESS, "debugging", r"\bdebugg(?:ing|ed)\b"),
    _rule(RuleCategory.PROGRESS, "testing", r"\btest(?:ing|ed)\b"),
    _rule(RuleCategory.PROGRESS, "status", r"\b(?:progress|update|status)\b"),
    _rule(
        RuleCategory.PROGRESS,
        "done",
        r"\b(?:almost|nearly|mostly)\s+done\b|\bready\s+for\s+review\b",
    ),
    # Walking away
    _rule(
        RuleCategory.ABANDONMENT,
        "cannot-continue",
        r"\bi\s+(?:can't|cant|cannot|can\s+not)\s+(?:work\s+on|continue|finish)",
    ),
    _rule(
        RuleCategory.ABANDONMENT,
        "sorry-cannot",
        r"\bsorry,?\s+(?:i\s+)?(?:can't|cant|cannot)\s+(?:work\s+on|continue|finish)",
    ),
    _rule(
        RuleCategory.ABANDONMENT,
        "unable",
        r"\bunable\s+to\s+(?:work\s+on|continue|finish)",
    ),
    _rule(
        RuleCategory.ABANDONMENT,
        "no-longer",
        r"\bno\s+longer\s+(?:working\s+on|interested|able)",
    ),
    _rule(RuleCategory.ABANDONMENT, "passing", r"\bpassing\s+(?:on|this)\b"),
    _rule(
        RuleCategory.ABANDONMENT,
        "someone-else",
        r"\bsomeone\s+else\s+can\s+(?:take|handle|pick)",
    ),
    _rule(
        RuleCategory.ABANDONMENT,
        "no-time",
        r"\bi\s+(?:don't|dont|do\s+not)\s+(?:have\s+(?:the\s+)?time|want)",
    ),
    _rule(RuleCategory.ABANDONMENT, "give-up", r"\bi\s+(?:quit|give\s+up)\b|\bgiving\s+up\b"),
    _rule(RuleCategory.ABANDONMENT, "not-available", r"\bnot\s+(?:interested|available)\b"),
    _rule(RuleCategory.ABANDONMENT, "too-busy", r"\btoo\s+busy\b"),
    # Hedging
    _rule(RuleCategory.LOW_CONFIDENCE, "maybe", r"\b(?:maybe|might|probably|perhaps)\b"),
    _rule(RuleCategory.LOW_CONFIDENCE, "i-think", r"\bi\s+(?:think|guess|suppose)\b"),
    _rule(RuleCategory.LOW_CONFIDENCE, "not-sure", r"\bnot\s+sure\b|\bunsure\b"),
    _rule(
        RuleCategory.LOW_CONFIDENCE,
        "if-time",
        r"\bif\s+i\s+(?:have|find|get)\s+(?:the\s+)?time\b"
        r"|\bwhen\s+i\s+(?:get|have)\s+(?:the\s+)?(?:time|chance)\b",
    ),
    # Commitment
    _rule(
        RuleCategory.HIGH_CONFIDENCE,
        "definitely",
        r"\b(?:definitely|absolutely|certainly|surely)\b",
    ),
    _rule(RuleCategory.HIGH_CONFIDENCE, "i-will", r"\bi\s+(?:will|can|am\s+going\s+to)\b"),
    _rule(RuleCategory.HIGH_CONFIDENCE, "count-me-in", r"\bcount\s+me\s+in\b"),
    _rule(RuleCategory.HIGH_CONFIDENCE, "on-it", r"\bi'm\s+on\s+it\b"),
    _rule(RuleCategory.HIGH_CONFIDENCE, "lets-do", r"\blet's\s+do\s+this\b"),
    _rule(RuleCategory.HIGH_CONFIDENCE, "got-this", r"\bi\s+got\s+this\b"),
)

_ASSIGNMENT_RE = re.compile(r"\bassign|\bplease\s+give\b")
_SELF_ASSIGNED_RE = re.compile(r"\bclaiming\b|\bdibs\b|\btaking\b")
_BEGINNER_MARKERS = ("newbie", "beginner", "first time", "first-time")


def normalize(text: str | None) -> str:
    """Lower-case *text* and fold typographic apostrophes."""
    if not text:
        return ""
    return text.replace("’", "'").replace("‘", "'").lower().strip()


def rules_for(category: RuleCategory) -> list[PatternRule]:
    return [rule for rule in RULES if rule.category == category]


def matches(category: RuleCategory, text: str) -> bool:
    """True when any rule of *category* matches *text*."""
    clean = normalize(text)
    return any(rule.matches(clean) for rule in RULES if rule.category == category)


def matching_rules(text: str) -> list[PatternRule]:
    """Return every rule that matches *text*, in rule order."""
    clean = normalize(text)
    return [rule for rule in RULES if rule.matches(clean)]


def detect_progress(text: str) -> bool:
    return matches(RuleCategory.PROGRESS, text)


def detect_abandonment(text: str) -> bool:
    return matches(RuleCategory.ABANDONMENT, text)


def detect_claim(text: str) -> bool:
    """A claim pattern matched and no progress pattern did.

    Progress takes precedence: a comment reporting real work is not a claim.
    """
    return matches(RuleCategory.CLAIM, text) and not detect_progress(text)


def extract_claim_type(text: str) -> ClaimType:
    clean = normalize(text)
    if _ASSIGNMENT_RE.search(clean):
        return ClaimType.ASSIGNMENT
    if _SELF_ASSIGNED_RE.search(clean):
        return ClaimType.SELF_ASSIGNED
    return ClaimType.COMMENT


class AdvancedClaimDetector:
    """Claim detection with a confidence estimate and risk factors."""

    def detect_claim(
        self, text: str, contributor: Contributor | None = None
    ) -> ClaimDetectionResult:
        clean = normalize(text)
        if (
            not matches(RuleCategory.CLAIM, clean)
            or matches(RuleCategory.PROGRESS, clean)
            or matches(RuleCategory.ABANDONMENT, clean)
        ):
            return ClaimDetectionResult(is_claim=False)

        risk_factors: list[str] = []
        confidence = 0.5

        if matches(RuleCategory.HIGH_CONFIDENCE, clean):
            confidence += 0.3
        elif matches(RuleCategory.LOW_CONFIDENCE, clean):
            confidence -= 0.2
            risk_factors.append("Uncertain language detected")

        if contributor is not None:
            if contributor.reliability_score > 80:
                confidence += 0.2
            elif contributor.reliability_score < 40:
                confidence -= 0.3
                risk_factors.append("Low contributor reliability score")

        if len(clean) < 20:
            confidence -= 0.1
            risk_factors.append("Very short claim message")

        if any(marker in clean for marker in _BEGINNER_MARKERS):
            confidence -= 0.1
            risk_factors.append("New contributor")

        confidence = round(max(0.0, min(1.0, confidence)), 4)
        if confidence < 0.3:
            action = SuggestedAction.AUTO_RELEASE
        elif confidence < 0.5:
            action = SuggestedAction.NUDGE
        elif len(risk_factors) > 2:
            action = SuggestedAction.ESCALATE
        else:
            action = SuggestedAction.MONITOR

        return ClaimDetectionResult(
            is_claim=True,
            confidence=confidence,
            claim_type=extract_claim_type(clean),
            risk_factors=risk_factors,
            suggested_action=action,
        )

    def detect_progress(self, text: str) -> bool:
        return detect_progress(text)

    def detect_abandonment(self, text: str) -> bool:
        return detect_abandonment(text)

    def generate_smart_nudge(
        self,
        claim: IssueClaim,
        strategy: str,
        now: datetime | None = None,
    ) -> str:
        """Render a context-aware nudge for one of four strategies.

        ``strategy`` is one of ``friendly``, ``community``, ``challenge`` or
        ``escalate``.
        """
        now = now or datetime.now(UTC)
        days = int(claim.days_since_claim(now))
        user = claim.contributor.username
        number = claim.issue_number

        templates = {
            "friendly": (
                f"Hey @{user}! \U0001f44b\n\n"
                f"Just checking in on issue #{number} that you claimed {days} days ago.\n\n"
                "How's it going? If you've run into any challenges or need help, feel "
                "free to reach out to the maintainers.\n\n"
                "If you're no longer able to work on this issue, no worries at all - "
                "just let us know so we can free it up for others."
            ),
            "community": (
                f"\U0001f31f **Community Spotlight**: Issue #{number} needs attention!\n\n"
                f"**{user}** claimed this {days} days ago, but we haven't seen any "
                "activity since. This could be a great opportunity for someone else "
                "to contribute!\n\n"
                "**Interested in helping?** Comment below or open a pull request!"
            ),
            "challenge": (
                f"\U0001f3af **Challenge Mode Activated!**\n\n"
                f"Issue #{number} is now open for a community challenge.\n\n"
                f"@{user} claimed this {days} days ago but hasn't shared anything yet.\n\n"
                "First to submit a working solution gets the community's thanks!"
            ),
            "escalate": (
                f"⚠️ **Issue Escalation Notice**\n\n"
                f"Issue #{number} has been escalated due to inactivity.\n\n"
                f"**Previous claim:** @{user} ({days} days ago)\n\n"
                "This issue is now available for immediate assignment to other "
                "contributors."
            ),
        }
        if strategy not in templates:
            msg = f"Unknown nudge strategy: {strategy!r}"
            raise ValueError(msg)
        return templates[strategy]
