"""Tests for the severity to action decision table."""

from kidsafe.moderation.decision import (
    DECISION_TABLE,
    combine_severities,
    decide,
    requires_record,
)
from kidsafe.moderation.models import ModerationAction, Severity


def test_table_is_total():
    assert set(DECISION_TABLE) == set(Severity)


def test_actions_strictly_increase_with_severity():
    actions = [decide(s).action for s in sorted(Severity)]
    assert actions == sorted(actions)
    assert len(set(actions)) == len(actions)


def test_exact_mapping():
    expected = {
        Severity.NONE: (ModerationAction.ALLOW, False, False),
        Severity.MILD: (ModerationAction.WARN, False, False),
        Severity.MODERATE: (ModerationAction.FILTER, True, False),
        Severity.SEVERE: (ModerationAction.BLOCK, True, True),
        Severity.CRITICAL: (ModerationAction.FLAG, True, True),
    }
    for severity, (action, guardian, admin) in expected.items():
        d = decide(severity)
        assert (d.action, d.notify_guardian, d.notify_admin) == (action, guardian, admin)


def test_combine_severities_is_max():
    assert combine_severities() == Severity.NONE
    assert combine_severities(Severity.MILD, Severity.CRITICAL, Severity.MODERATE) == Severity.CRITICAL
    assert combine_severities(Severity.MODERATE, Severity.NONE) == Severity.MODERATE


def test_only_block_and_flag_require_a_record():
    recorded = {a for a in ModerationAction if requires_record(a)}
    assert recorded == {ModerationAction.BLOCK, ModerationAction.FLAG}


def test_severity_ordering():
    assert Severity.NONE < Severity.MILD < Severity.MODERATE < Severity.SEVERE < Severity.CRITICAL
    assert ModerationAction.FILTER < ModerationAction.BLOCK
