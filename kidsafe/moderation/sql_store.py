"""Relational record store on SQLAlchemy.

Review compare-and-set is a single conditional UPDATE checked on its row
count, so racing reviewers in different processes still get exactly one
winner without any application-level lock.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text, create_engine, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from kidsafe.errors import StoreUnavailableError
from kidsafe.moderation.models import (
    ModerationAction,
    ModerationRecord,
    Page,
    RecordFilter,
    RecordPage,
    ReviewerRole,
    ReviewStatus,
    Severity,
)
from kidsafe.moderation.store import RecordStore

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class ModerationRecordRow(Base):
    __tablename__ = "moderation_records"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    content_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    content_ref: Mapped[str] = mapped_column(String(256), nullable=False)
    author_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    reviewer_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reviewer_role: Mapped[str | None] = mapped_column(String(16), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    flagged_terms: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    pii_types: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    masked_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    superseded_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_row(record: ModerationRecord) -> ModerationRecordRow:
    return ModerationRecordRow(
        id=record.id,
        content_type=record.content_type,
        content_ref=record.content_ref,
        author_id=record.author_id,
        severity=record.severity.value,
        action=record.action.value,
        flagged=record.flagged,
        status=record.status.value,
        reviewer_id=record.reviewer_id,
        reviewer_role=record.reviewer_role.value if record.reviewer_role else None,
        review_notes=record.review_notes,
        flagged_terms=json.dumps(record.flagged_terms, ensure_ascii=False),
        pii_types=json.dumps(record.pii_types),
        masked_text=record.masked_text,
        created_at=record.created_at,
        reviewed_at=record.reviewed_at,
        superseded_at=record.superseded_at,
        superseded_reason=record.superseded_reason,
    )


def _from_row(row: ModerationRecordRow) -> ModerationRecord:
    return ModerationRecord(
        id=row.id,
        content_type=row.content_type,
        content_ref=row.content_ref,
        author_id=row.author_id,
        severity=Severity(row.severity),
        action=ModerationAction(row.action),
        flagged=row.flagged,
        created_at=_aware(row.created_at),
        status=ReviewStatus(row.status),
        reviewer_id=row.reviewer_id,
        reviewer_role=ReviewerRole(row.reviewer_role) if row.reviewer_role else None,
        review_notes=row.review_notes,
        reviewed_at=_aware(row.reviewed_at),
        flagged_terms=json.loads(row.flagged_terms or "[]"),
        pii_types=json.loads(row.pii_types or "[]"),
        masked_text=row.masked_text,
        superseded_at=_aware(row.superseded_at),
        superseded_reason=row.superseded_reason,
    )


def _apply_filter(stmt, record_filter: RecordFilter):
    if record_filter.status is not None:
        stmt = stmt.where(ModerationRecordRow.status == record_filter.status.value)
    if record_filter.content_type:
        stmt = stmt.where(ModerationRecordRow.content_type == record_filter.content_type)
    if record_filter.author_id:
        stmt = stmt.where(ModerationRecordRow.author_id == record_filter.author_id)
    if record_filter.flagged is not None:
        stmt = stmt.where(ModerationRecordRow.flagged == record_filter.flagged)
    return stmt


class SqlRecordStore(RecordStore):
    """Moderation records in any SQLAlchemy-supported database."""

    def __init__(self, database_url: str, create_tables: bool = True) -> None:
        kwargs: dict = {}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, or every session sees an empty database
                kwargs["poolclass"] = StaticPool
        try:
            self._engine = create_engine(database_url, **kwargs)
            if create_tables:
                Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Cannot open record database: {e}") from e
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)

    def _session(self) -> Session:
        return self._sessions()

    def put(self, record: ModerationRecord) -> None:
        try:
            with self._session() as session, session.begin():
                session.add(_to_row(record))
        except IntegrityError as e:
            raise ValueError(f"Moderation record '{record.id}' already exists") from e
        except SQLAlchemyError as e:
            logger.error("Cannot persist moderation record %s: %s", record.id, e)
            raise StoreUnavailableError(str(e)) from e

    def get_by_id(self, record_id: str) -> Optional[ModerationRecord]:
        try:
            with self._session() as session:
                row = session.get(ModerationRecordRow, record_id)
                return _from_row(row) if row else None
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e)) from e

    def compare_and_set_status(
        self,
        record_id: str,
        expected: ReviewStatus,
        new: ReviewStatus,
        reviewer_id: str,
        notes: Optional[str] = None,
        reviewer_role: Optional[ReviewerRole] = None,
        reviewed_at: Optional[datetime] = None,
    ) -> bool:
        stmt = (
            update(ModerationRecordRow)
            .where(ModerationRecordRow.id == record_id)
            .where(ModerationRecordRow.status == expected.value)
            .values(
                status=new.value,
                reviewer_id=reviewer_id,
                reviewer_role=reviewer_role.value if reviewer_role else None,
                review_notes=notes,
                reviewed_at=reviewed_at,
            )
        )
        return self._execute_update(stmt)

    def set_review_notes(self, record_id: str, notes: Optional[str]) -> bool:
        stmt = (
            update(ModerationRecordRow)
            .where(ModerationRecordRow.id == record_id)
            .values(review_notes=notes)
        )
        return self._execute_update(stmt)

    def mark_superseded(self, record_id: str, reason: str, at: datetime) -> bool:
        stmt = (
            update(ModerationRecordRow)
            .where(ModerationRecordRow.id == record_id)
            .where(ModerationRecordRow.superseded_at.is_(None))
            .values(superseded_at=at, superseded_reason=reason)
        )
        return self._execute_update(stmt)

    def _execute_update(self, stmt) -> bool:
        try:
            with self._session() as session, session.begin():
                result = session.execute(stmt)
                return result.rowcount == 1
        except SQLAlchemyError as e:
            logger.error("Record store update failed: %s", e)
            raise StoreUnavailableError(str(e)) from e

    def find(self, record_filter: Optional[RecordFilter] = None) -> list[ModerationRecord]:
        stmt = _apply_filter(select(ModerationRecordRow), record_filter or RecordFilter())
        stmt = stmt.order_by(ModerationRecordRow.created_at.desc(), ModerationRecordRow.id.desc())
        try:
            with self._session() as session:
                return [_from_row(row) for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e)) from e

    def query(self, record_filter: Optional[RecordFilter] = None, page: Optional[Page] = None) -> RecordPage:
        page = page or Page()
        record_filter = record_filter or RecordFilter()
        count_stmt = _apply_filter(select(func.count()).select_from(ModerationRecordRow), record_filter)
        stmt = (
            _apply_filter(select(ModerationRecordRow), record_filter)
            .order_by(ModerationRecordRow.created_at.desc(), ModerationRecordRow.id.desc())
            .offset(page.offset)
            .limit(page.size)
        )
        try:
            with self._session() as session:
                total = session.scalar(count_stmt) or 0
                items = [_from_row(row) for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e)) from e
        return RecordPage(items=items, total=total, number=page.number, size=page.size)
