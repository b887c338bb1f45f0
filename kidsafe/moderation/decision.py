"""Severity to action mapping.

Pure and table-driven. Content-type policies (always auditing chat, say) are
applied around ``decide``, never inside it.
"""

from __future__ import annotations

from kidsafe.moderation.models import ModerationAction, ModerationDecision, Severity

DECISION_TABLE: dict[Severity, ModerationDecision] = {
    Severity.NONE: ModerationDecision(ModerationAction.ALLOW, notify_guardian=False, notify_admin=False),
    Severity.MILD: ModerationDecision(ModerationAction.WARN, notify_guardian=False, notify_admin=False),
    Severity.MODERATE: ModerationDecision(ModerationAction.FILTER, notify_guardian=True, notify_admin=False),
    Severity.SEVERE: ModerationDecision(ModerationAction.BLOCK, notify_guardian=True, notify_admin=True),
    Severity.CRITICAL: ModerationDecision(ModerationAction.FLAG, notify_guardian=True, notify_admin=True),
}

# Actions whose records must be persisted before the write is answered
RECORDED_ACTIONS = frozenset({ModerationAction.BLOCK, ModerationAction.FLAG})


def decide(severity: Severity) -> ModerationDecision:
    return DECISION_TABLE[severity]


def combine_severities(*severities: Severity) -> Severity:
    """Monotonic max; ``NONE`` for no input."""
    return max(severities, default=Severity.NONE)


def requires_record(action: ModerationAction) -> bool:
    return action in RECORDED_ACTIONS
