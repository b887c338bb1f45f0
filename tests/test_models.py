"""Tests for moderation data models."""

from datetime import datetime, timezone

from kidsafe.moderation.decision import decide
from kidsafe.moderation.models import (
    Evaluation,
    ModerationAction,
    ModerationRecord,
    RecordFilter,
    RecordPage,
    ReviewerRole,
    ReviewStatus,
    Severity,
)


def _record(**overrides) -> ModerationRecord:
    fields = dict(
        id="rec-1",
        content_type="message",
        content_ref="msg-1",
        author_id="student-1",
        severity=Severity.CRITICAL,
        action=ModerationAction.FLAG,
        flagged=True,
        created_at=datetime(2024, 9, 1, 8, 30, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return ModerationRecord(**fields)


def test_record_dict_round_trip():
    record = _record(
        status=ReviewStatus.REJECTED,
        reviewer_id="mod-1",
        reviewer_role=ReviewerRole.ADMIN,
        reviewed_at=datetime(2024, 9, 1, 9, 0, tzinfo=timezone.utc),
        flagged_terms=["nož"],
        pii_types=["phone"],
    )
    data = record.to_dict()
    assert data["severity"] == "critical"
    assert data["status"] == "REJECTED"
    assert ModerationRecord.from_dict(data) == record


def test_record_from_minimal_dict():
    data = _record().to_dict()
    for key in ("status", "flagged_terms", "pii_types", "reviewer_role", "superseded_at"):
        data.pop(key)
    record = ModerationRecord.from_dict(data)
    assert record.status == ReviewStatus.PENDING
    assert record.flagged_terms == []
    assert not record.is_superseded


def test_only_pending_is_non_terminal():
    assert [s for s in ReviewStatus if not s.is_terminal] == [ReviewStatus.PENDING]


def test_reviewer_roles_are_ordered():
    assert ReviewerRole.ADMIN > ReviewerRole.MODERATOR


def test_evaluation_allowed_below_block():
    for severity in Severity:
        decision = decide(severity)
        ev = Evaluation(severity=severity, action=decision.action, masked_text="", decision=decision)
        assert ev.allowed == (severity < Severity.SEVERE)
        assert ev.notify_admin == decision.notify_admin


def test_record_filter():
    record = _record()
    assert RecordFilter().matches(record)
    assert RecordFilter(status=ReviewStatus.PENDING, flagged=True).matches(record)
    assert not RecordFilter(author_id="student-2").matches(record)
    assert not RecordFilter(flagged=False).matches(record)


def test_record_page_count():
    assert RecordPage(total=0, size=10).pages == 0
    assert RecordPage(total=21, size=10).pages == 3
