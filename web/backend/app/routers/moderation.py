"""Moderation router -- content evaluation and the reviewer workflow."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from kidsafe.errors import (
    AlreadyReviewedError,
    NotFoundError,
    ReviewPermissionError,
    StoreUnavailableError,
)
from kidsafe.moderation.models import Page, RecordFilter, ReviewerRole, ReviewStatus
from kidsafe.moderation.pipeline import ModerationPipeline
from web.backend.app.models.api import (
    AmendNotesRequest,
    CheckRequest,
    EvaluateRequest,
    EvaluationResponse,
    RecordPageResponse,
    RecordResponse,
    ReviewRequest,
    StatsResponse,
    SupersedeRequest,
)

router = APIRouter(prefix="/api/moderation", tags=["moderation"])


# ---------------------------------------------------------------------------
# Pipeline singleton
# ---------------------------------------------------------------------------

_pipeline: ModerationPipeline | None = None


def _get_pipeline() -> ModerationPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = ModerationPipeline.from_settings()
    return _pipeline


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _not_found(e: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _store_down(e: StoreUnavailableError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Moderation record store unavailable: {e}",
    )


# ---------------------------------------------------------------------------
# Evaluation endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/evaluate",
    response_model=EvaluationResponse,
    summary="Evaluate a content item before it is stored",
)
async def evaluate(body: EvaluateRequest):
    """Classify text and record Block/Flag decisions.

    Returns 503 when a decision that must be recorded cannot be; the caller
    must then reject the write.
    """
    pipeline = _get_pipeline()
    try:
        evaluation = pipeline.evaluate(
            body.text,
            content_type=body.content_type,
            content_id=body.content_id,
            author_id=body.author_id,
            author_age=body.author_age,
            audit=body.audit,
        )
    except StoreUnavailableError as e:
        raise _store_down(e)
    return EvaluationResponse.from_evaluation(evaluation)


@router.post(
    "/check",
    response_model=EvaluationResponse,
    summary="Preview a moderation decision without recording it",
)
async def check(body: CheckRequest):
    return EvaluationResponse.from_evaluation(_get_pipeline().quick_check(body.text, body.author_age))


# ---------------------------------------------------------------------------
# Record endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/records",
    response_model=RecordPageResponse,
    summary="List moderation records",
)
async def list_records(
    record_status: Optional[ReviewStatus] = Query(default=None, alias="status"),
    content_type: Optional[str] = None,
    author_id: Optional[str] = None,
    flagged: Optional[bool] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
):
    """Return records newest first, filtered and paginated."""
    record_filter = RecordFilter(
        status=record_status,
        content_type=content_type,
        author_id=author_id,
        flagged=flagged,
    )
    try:
        result = _get_pipeline().records.list_records(record_filter, Page(number=page, size=limit))
    except StoreUnavailableError as e:
        raise _store_down(e)
    return RecordPageResponse.from_page(result)


@router.get(
    "/records/{record_id}",
    response_model=RecordResponse,
    summary="Get a moderation record",
)
async def get_record(record_id: str):
    try:
        record = _get_pipeline().records.get(record_id)
    except NotFoundError as e:
        raise _not_found(e)
    except StoreUnavailableError as e:
        raise _store_down(e)
    return RecordResponse.from_record(record)


@router.post(
    "/records/{record_id}/review",
    response_model=RecordResponse,
    summary="Submit a review decision",
)
async def review_record(record_id: str, body: ReviewRequest):
    """Move a pending record to APPROVED, REJECTED or FLAGGED.

    A record that was already reviewed yields 409 with its current status.
    """
    try:
        record = _get_pipeline().records.review(
            record_id,
            reviewer_id=body.reviewer_id,
            new_status=ReviewStatus(body.status),
            notes=body.notes,
            role=ReviewerRole(body.reviewer_role),
        )
    except NotFoundError as e:
        raise _not_found(e)
    except AlreadyReviewedError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "status": e.record.status.value},
        )
    except StoreUnavailableError as e:
        raise _store_down(e)
    return RecordResponse.from_record(record)


@router.put(
    "/records/{record_id}/notes",
    response_model=RecordResponse,
    summary="Amend review notes",
)
async def amend_notes(record_id: str, body: AmendNotesRequest):
    try:
        record = _get_pipeline().records.amend_notes(
            record_id,
            reviewer_id=body.reviewer_id,
            notes=body.notes,
            role=ReviewerRole(body.reviewer_role),
        )
    except NotFoundError as e:
        raise _not_found(e)
    except ReviewPermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except StoreUnavailableError as e:
        raise _store_down(e)
    return RecordResponse.from_record(record)


@router.post(
    "/records/{record_id}/supersede",
    response_model=RecordResponse,
    summary="Soft-supersede a record after its content was retracted",
)
async def supersede_record(record_id: str, body: SupersedeRequest):
    try:
        record = _get_pipeline().records.supersede(record_id, body.reason)
    except NotFoundError as e:
        raise _not_found(e)
    except StoreUnavailableError as e:
        raise _store_down(e)
    return RecordResponse.from_record(record)


@router.get(
    "/stats/{author_id}",
    response_model=StatsResponse,
    summary="Moderation statistics for one author",
)
async def author_stats(author_id: str):
    try:
        stats = _get_pipeline().records.stats(author_id)
    except StoreUnavailableError as e:
        raise _store_down(e)
    return StatsResponse.from_stats(stats)
