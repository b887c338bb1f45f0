"""Moderation record lifecycle: creation, review, amendment, listing.

State machine::

    PENDING --review(APPROVED | REJECTED | FLAGGED)--> terminal

A terminal record never changes status again. Only its review notes may be
amended, by the original reviewer or by a reviewer of strictly higher role.
Records are never deleted; retracted content soft-supersedes its record.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from kidsafe.errors import AlreadyReviewedError, NotFoundError, ReviewPermissionError
from kidsafe.moderation.models import (
    Evaluation,
    ModerationRecord,
    ModerationStats,
    Page,
    RecordContext,
    RecordFilter,
    RecordPage,
    ReviewerRole,
    ReviewStatus,
)
from kidsafe.moderation.store import RecordStore

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ModerationRecordManager:
    """Creates records and drives the reviewer workflow over a ``RecordStore``."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_record(self, evaluation: Evaluation, context: RecordContext) -> ModerationRecord:
        """Persist a PENDING record for *evaluation*.

        ``flagged`` marks records queued for human review, i.e. decisions
        that notify an administrator.
        """
        record = ModerationRecord(
            id=str(uuid.uuid4()),
            content_type=context.content_type,
            content_ref=context.content_ref,
            author_id=context.author_id,
            severity=evaluation.severity,
            action=evaluation.action,
            flagged=evaluation.notify_admin,
            created_at=_now(),
            flagged_terms=list(evaluation.classification.flagged_terms) if evaluation.classification else [],
            pii_types=[t.value for t in evaluation.pii.types] if evaluation.pii else [],
            masked_text=evaluation.masked_text,
        )
        self.store.put(record)
        logger.info(
            "Created moderation record %s (%s, %s, flagged=%s)",
            record.id,
            record.content_type,
            record.action.value,
            record.flagged,
        )
        return record

    # ------------------------------------------------------------------
    # Review workflow
    # ------------------------------------------------------------------

    def get(self, record_id: str) -> ModerationRecord:
        record = self.store.get_by_id(record_id)
        if record is None:
            raise NotFoundError(record_id)
        return record

    def review(
        self,
        record_id: str,
        reviewer_id: str,
        new_status: ReviewStatus,
        notes: Optional[str] = None,
        role: ReviewerRole = ReviewerRole.MODERATOR,
    ) -> ModerationRecord:
        """Move a PENDING record to a terminal status.

        Exactly one of several concurrent reviews succeeds; the others get
        ``AlreadyReviewedError`` carrying the record as it now stands.
        """
        if not new_status.is_terminal:
            raise ValueError("A review must move the record to APPROVED, REJECTED or FLAGGED")

        swapped = self.store.compare_and_set_status(
            record_id,
            expected=ReviewStatus.PENDING,
            new=new_status,
            reviewer_id=reviewer_id,
            notes=notes,
            reviewer_role=role,
            reviewed_at=_now(),
        )
        record = self.get(record_id)
        if not swapped:
            raise AlreadyReviewedError(record)

        logger.info("Record %s reviewed by %s: %s", record_id, reviewer_id, new_status.value)
        return record

    def amend_notes(
        self,
        record_id: str,
        reviewer_id: str,
        notes: Optional[str],
        role: ReviewerRole = ReviewerRole.MODERATOR,
    ) -> ModerationRecord:
        """Replace the review notes of an already reviewed record."""
        record = self.get(record_id)
        if record.status is ReviewStatus.PENDING:
            raise ReviewPermissionError(f"Record '{record_id}' has not been reviewed yet; use review()")

        same_reviewer = record.reviewer_id == reviewer_id
        original_role = record.reviewer_role or ReviewerRole.MODERATOR
        if not same_reviewer and not role > original_role:
            raise ReviewPermissionError(
                f"Only {record.reviewer_id} or a reviewer above '{original_role.value}' "
                f"may amend notes on record '{record_id}'"
            )

        self.store.set_review_notes(record_id, notes)
        logger.info("Review notes on %s amended by %s", record_id, reviewer_id)
        return self.get(record_id)

    def supersede(self, record_id: str, reason: str) -> ModerationRecord:
        """Mark a record superseded after its content was retracted."""
        record = self.get(record_id)
        if record.is_superseded:
            return record
        self.store.mark_superseded(record_id, reason, _now())
        logger.info("Record %s superseded: %s", record_id, reason)
        return self.get(record_id)

    # ------------------------------------------------------------------
    # Administrative listing
    # ------------------------------------------------------------------

    def list_records(
        self,
        record_filter: Optional[RecordFilter] = None,
        page: Optional[Page] = None,
    ) -> RecordPage:
        return self.store.query(record_filter, page)

    def list_pending(
        self,
        content_type: Optional[str] = None,
        author_id: Optional[str] = None,
        flagged: Optional[bool] = True,
        page: Optional[Page] = None,
    ) -> RecordPage:
        """The review queue: pending records that notified an administrator.

        Audit-only records stay PENDING but are not queued; pass
        ``flagged=None`` to list every pending record.
        """
        record_filter = RecordFilter(
            status=ReviewStatus.PENDING,
            content_type=content_type,
            author_id=author_id,
            flagged=flagged,
        )
        return self.store.query(record_filter, page)

    def stats(self, author_id: str) -> ModerationStats:
        """Summarize moderation history for one author."""
        records = self.store.find(RecordFilter(author_id=author_id))
        stats = ModerationStats(author_id=author_id, total=len(records), recent=records[:RECENT_LIMIT])
        for record in records:
            if record.flagged:
                stats.flagged += 1
            if record.status is ReviewStatus.REJECTED:
                stats.rejected += 1
            elif record.status is ReviewStatus.PENDING and record.flagged:
                stats.pending += 1
            elif record.status is ReviewStatus.APPROVED:
                stats.approved += 1
        return stats
