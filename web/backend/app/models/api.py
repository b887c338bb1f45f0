"""Pydantic models for API request/response serialization.

These models mirror the kidsafe dataclasses and provide proper JSON
serialization for the FastAPI endpoints.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from kidsafe.moderation.models import Evaluation, ModerationRecord, ModerationStats, RecordPage

# Keeps classification time bounded per request
MAX_TEXT_LENGTH = 10_000


# ---------------------------------------------------------------------------
# Evaluation models
# ---------------------------------------------------------------------------


class EvaluateRequest(BaseModel):
    """Request body for evaluating one content item on a write path."""

    text: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    content_type: str = Field(min_length=1, max_length=64)
    content_id: str = Field(min_length=1, max_length=256)
    author_id: str = Field(min_length=1, max_length=128)
    author_age: Optional[int] = Field(default=None, ge=0, le=120)
    audit: Optional[bool] = None


class CheckRequest(BaseModel):
    """Request body for a preview check that records nothing."""

    text: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    author_age: Optional[int] = Field(default=None, ge=0, le=120)


class ClassificationResponse(BaseModel):
    """Mirrors kidsafe.moderation.models.ClassificationResult."""

    safe: bool
    severity: str
    flagged_terms: list[str] = Field(default_factory=list)
    matched_patterns: list[str] = Field(default_factory=list)
    filtered_text: str = ""


class AgeCheckResponse(BaseModel):
    appropriate: bool
    suggested_age: Optional[int] = None
    reason: str = ""


class EvaluationResponse(BaseModel):
    """The caller contract: severity, action, masked text, warnings."""

    severity: str
    action: str
    allowed: bool
    masked_text: str
    warnings: list[str] = Field(default_factory=list)
    notify_guardian: bool = False
    notify_admin: bool = False
    pii_types: list[str] = Field(default_factory=list)
    classification: Optional[ClassificationResponse] = None
    age_check: Optional[AgeCheckResponse] = None
    record_id: Optional[str] = None

    @classmethod
    def from_evaluation(cls, ev: Evaluation) -> EvaluationResponse:
        classification = None
        if ev.classification is not None:
            c = ev.classification
            classification = ClassificationResponse(
                safe=c.safe,
                severity=c.severity.value,
                flagged_terms=c.flagged_terms,
                matched_patterns=c.matched_patterns,
                filtered_text=c.filtered_text,
            )
        age_check = None
        if ev.age_check is not None:
            age_check = AgeCheckResponse(
                appropriate=ev.age_check.appropriate,
                suggested_age=ev.age_check.suggested_age,
                reason=ev.age_check.reason,
            )
        return cls(
            severity=ev.severity.value,
            action=ev.action.value,
            allowed=ev.allowed,
            masked_text=ev.masked_text,
            warnings=ev.warnings,
            notify_guardian=ev.notify_guardian,
            notify_admin=ev.notify_admin,
            pii_types=[t.value for t in ev.pii.types] if ev.pii else [],
            classification=classification,
            age_check=age_check,
            record_id=ev.record_id,
        )


# ---------------------------------------------------------------------------
# Record models
# ---------------------------------------------------------------------------


class RecordResponse(BaseModel):
    """Mirrors kidsafe.moderation.models.ModerationRecord."""

    id: str
    content_type: str
    content_ref: str
    author_id: str
    severity: str
    action: str
    flagged: bool
    status: str
    created_at: str
    reviewer_id: Optional[str] = None
    reviewer_role: Optional[str] = None
    review_notes: Optional[str] = None
    reviewed_at: Optional[str] = None
    flagged_terms: list[str] = Field(default_factory=list)
    pii_types: list[str] = Field(default_factory=list)
    masked_text: Optional[str] = None
    superseded_at: Optional[str] = None
    superseded_reason: Optional[str] = None

    @classmethod
    def from_record(cls, record: ModerationRecord) -> RecordResponse:
        return cls(**record.to_dict())


class RecordPageResponse(BaseModel):
    items: list[RecordResponse] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 50
    pages: int = 0

    @classmethod
    def from_page(cls, page: RecordPage) -> RecordPageResponse:
        return cls(
            items=[RecordResponse.from_record(r) for r in page.items],
            total=page.total,
            page=page.number,
            limit=page.size,
            pages=page.pages,
        )


class ReviewRequest(BaseModel):
    """Request body for a reviewer decision on a pending record."""

    status: Literal["APPROVED", "REJECTED", "FLAGGED"]
    reviewer_id: str = Field(min_length=1)
    reviewer_role: Literal["moderator", "admin"] = "moderator"
    notes: Optional[str] = None


class AmendNotesRequest(BaseModel):
    reviewer_id: str = Field(min_length=1)
    reviewer_role: Literal["moderator", "admin"] = "moderator"
    notes: Optional[str] = None


class SupersedeRequest(BaseModel):
    reason: str = Field(min_length=1)


class StatsResponse(BaseModel):
    """Mirrors kidsafe.moderation.models.ModerationStats."""

    author_id: str
    total: int = 0
    flagged: int = 0
    rejected: int = 0
    pending: int = 0
    approved: int = 0
    flag_rate: float = 0.0
    recent: list[RecordResponse] = Field(default_factory=list)

    @classmethod
    def from_stats(cls, stats: ModerationStats) -> StatsResponse:
        return cls(
            author_id=stats.author_id,
            total=stats.total,
            flagged=stats.flagged,
            rejected=stats.rejected,
            pending=stats.pending,
            approved=stats.approved,
            flag_rate=round(stats.flag_rate, 2),
            recent=[RecordResponse.from_record(r) for r in stats.recent],
        )
