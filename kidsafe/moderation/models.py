"""Data models for the content moderation pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import total_ordering
from typing import Any, Optional


@total_ordering
class _RankedEnum(Enum):
    """Enum whose members compare by declaration order."""

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return self.rank < other.rank


class Severity(_RankedEnum):
    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    CRITICAL = "critical"


class ModerationAction(_RankedEnum):
    ALLOW = "allow"
    WARN = "warn"
    FILTER = "filter"
    BLOCK = "block"
    FLAG = "flag"  # Always implies human review


class ReviewerRole(_RankedEnum):
    MODERATOR = "moderator"
    ADMIN = "admin"


class PIIKind(Enum):
    EMAIL = "email"
    PHONE = "phone"
    NATIONAL_ID = "jmbg"


class ReviewStatus(Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FLAGGED = "FLAGGED"

    @property
    def is_terminal(self) -> bool:
        return self is not ReviewStatus.PENDING


# ---------------------------------------------------------------------------
# Per-call results
# ---------------------------------------------------------------------------


@dataclass
class ClassificationResult:
    """Outcome of the lexical classifier for one piece of text."""

    safe: bool
    flagged_terms: list[str] = field(default_factory=list)  # one entry per occurrence
    filtered_text: str = ""
    severity: Severity = Severity.NONE
    matched_patterns: list[str] = field(default_factory=list)  # Tier 3 labels


@dataclass(frozen=True)
class PIIFinding:
    kind: PIIKind
    start: int
    end: int


@dataclass
class PIIResult:
    detected: bool
    types: list[PIIKind] = field(default_factory=list)  # unique, first-seen order
    masked: str = ""
    findings: list[PIIFinding] = field(default_factory=list)


@dataclass
class AgeAppropriateness:
    appropriate: bool
    suggested_age: Optional[int] = None
    reason: str = ""


@dataclass(frozen=True)
class ModerationDecision:
    """Action plus notification flags, derived from severity alone."""

    action: ModerationAction
    notify_guardian: bool
    notify_admin: bool


@dataclass
class Evaluation:
    """What a write path gets back from ``ModerationPipeline.evaluate``."""

    severity: Severity
    action: ModerationAction
    masked_text: str
    warnings: list[str] = field(default_factory=list)
    decision: Optional[ModerationDecision] = None
    classification: Optional[ClassificationResult] = None
    pii: Optional[PIIResult] = None
    age_check: Optional[AgeAppropriateness] = None
    record_id: Optional[str] = None

    @property
    def allowed(self) -> bool:
        """True if the write may proceed (possibly with ``masked_text``)."""
        return self.action < ModerationAction.BLOCK

    @property
    def notify_guardian(self) -> bool:
        return bool(self.decision and self.decision.notify_guardian)

    @property
    def notify_admin(self) -> bool:
        return bool(self.decision and self.decision.notify_admin)


@dataclass
class RecordContext:
    """Where the evaluated content came from. The pipeline never owns it."""

    content_type: str
    content_ref: str
    author_id: str


# ---------------------------------------------------------------------------
# Persisted entity
# ---------------------------------------------------------------------------


@dataclass
class ModerationRecord:
    """Audit record for one evaluated content item."""

    id: str
    content_type: str
    content_ref: str
    author_id: str
    severity: Severity
    action: ModerationAction
    flagged: bool  # queued for human review
    created_at: datetime
    status: ReviewStatus = ReviewStatus.PENDING
    reviewer_id: Optional[str] = None
    reviewer_role: Optional[ReviewerRole] = None
    review_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    flagged_terms: list[str] = field(default_factory=list)
    pii_types: list[str] = field(default_factory=list)
    masked_text: Optional[str] = None
    superseded_at: Optional[datetime] = None
    superseded_reason: Optional[str] = None

    @property
    def is_superseded(self) -> bool:
        return self.superseded_at is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content_type": self.content_type,
            "content_ref": self.content_ref,
            "author_id": self.author_id,
            "severity": self.severity.value,
            "action": self.action.value,
            "flagged": self.flagged,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "reviewer_id": self.reviewer_id,
            "reviewer_role": self.reviewer_role.value if self.reviewer_role else None,
            "review_notes": self.review_notes,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "flagged_terms": list(self.flagged_terms),
            "pii_types": list(self.pii_types),
            "masked_text": self.masked_text,
            "superseded_at": self.superseded_at.isoformat() if self.superseded_at else None,
            "superseded_reason": self.superseded_reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModerationRecord:
        role = data.get("reviewer_role")
        reviewed_at = data.get("reviewed_at")
        superseded_at = data.get("superseded_at")
        return cls(
            id=data["id"],
            content_type=data["content_type"],
            content_ref=data["content_ref"],
            author_id=data["author_id"],
            severity=Severity(data["severity"]),
            action=ModerationAction(data["action"]),
            flagged=bool(data.get("flagged", False)),
            created_at=datetime.fromisoformat(data["created_at"]),
            status=ReviewStatus(data.get("status", "PENDING")),
            reviewer_id=data.get("reviewer_id"),
            reviewer_role=ReviewerRole(role) if role else None,
            review_notes=data.get("review_notes"),
            reviewed_at=datetime.fromisoformat(reviewed_at) if reviewed_at else None,
            flagged_terms=list(data.get("flagged_terms", [])),
            pii_types=list(data.get("pii_types", [])),
            masked_text=data.get("masked_text"),
            superseded_at=datetime.fromisoformat(superseded_at) if superseded_at else None,
            superseded_reason=data.get("superseded_reason"),
        )


# ---------------------------------------------------------------------------
# Administrative listing
# ---------------------------------------------------------------------------


@dataclass
class RecordFilter:
    status: Optional[ReviewStatus] = None
    content_type: Optional[str] = None
    author_id: Optional[str] = None
    flagged: Optional[bool] = None

    def matches(self, record: ModerationRecord) -> bool:
        if self.status is not None and record.status is not self.status:
            return False
        if self.content_type and record.content_type != self.content_type:
            return False
        if self.author_id and record.author_id != self.author_id:
            return False
        if self.flagged is not None and record.flagged != self.flagged:
            return False
        return True


@dataclass
class Page:
    number: int = 1
    size: int = 50

    def __post_init__(self) -> None:
        if self.number < 1:
            raise ValueError(f"page number must be >= 1, got {self.number}")
        if self.size < 1:
            raise ValueError(f"page size must be >= 1, got {self.size}")

    @property
    def offset(self) -> int:
        return (self.number - 1) * self.size


@dataclass
class RecordPage:
    items: list[ModerationRecord] = field(default_factory=list)
    total: int = 0
    number: int = 1
    size: int = 50

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0


@dataclass
class ModerationStats:
    """Per-author moderation summary for guardians and administrators."""

    author_id: str
    total: int = 0
    flagged: int = 0
    rejected: int = 0
    pending: int = 0  # flagged records awaiting review
    approved: int = 0
    recent: list[ModerationRecord] = field(default_factory=list)

    @property
    def flag_rate(self) -> float:
        return (self.flagged / self.total) * 100 if self.total else 0.0
