"""Moderation record stores.

The store contract is deliberately narrow: insert, fetch, a compare-and-set
on status, and filtered listing. The compare-and-set is the only
synchronization point for reviews; each backend makes it atomic in its own
way (a lock in-process, a conditional UPDATE in SQL).
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from kidsafe.errors import StoreUnavailableError
from kidsafe.moderation.models import (
    ModerationRecord,
    Page,
    RecordFilter,
    RecordPage,
    ReviewerRole,
    ReviewStatus,
)

if TYPE_CHECKING:
    from kidsafe.config import Settings

logger = logging.getLogger(__name__)


def _newest_first(records: list[ModerationRecord]) -> list[ModerationRecord]:
    return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)


class RecordStore(ABC):
    """Persistence contract for moderation records."""

    @abstractmethod
    def put(self, record: ModerationRecord) -> None:
        """Insert a new record. Ids are unique; records are never replaced."""

    @abstractmethod
    def get_by_id(self, record_id: str) -> Optional[ModerationRecord]:
        ...

    @abstractmethod
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
        """Atomically move *record_id* from *expected* to *new*.

        Returns False when the record is missing or not in *expected*.
        """

    @abstractmethod
    def set_review_notes(self, record_id: str, notes: Optional[str]) -> bool:
        ...

    @abstractmethod
    def mark_superseded(self, record_id: str, reason: str, at: datetime) -> bool:
        """Soft-supersede a record. Returns False if missing or already superseded."""

    @abstractmethod
    def find(self, record_filter: Optional[RecordFilter] = None) -> list[ModerationRecord]:
        """All matching records, newest first."""

    def query(self, record_filter: Optional[RecordFilter] = None, page: Optional[Page] = None) -> RecordPage:
        page = page or Page()
        matches = self.find(record_filter)
        return RecordPage(
            items=matches[page.offset : page.offset + page.size],
            total=len(matches),
            number=page.number,
            size=page.size,
        )

    def list_by_status(self, status: ReviewStatus, page: Optional[Page] = None) -> list[ModerationRecord]:
        return self.query(RecordFilter(status=status), page).items


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryRecordStore(RecordStore):
    """Process-local store, for tests and single-process deployments."""

    def __init__(self) -> None:
        self._records: dict[str, ModerationRecord] = {}
        self._lock = threading.Lock()

    def put(self, record: ModerationRecord) -> None:
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"Moderation record '{record.id}' already exists")
            self._records[record.id] = copy.deepcopy(record)

    def get_by_id(self, record_id: str) -> Optional[ModerationRecord]:
        with self._lock:
            record = self._records.get(record_id)
            return copy.deepcopy(record) if record else None

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
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.status is not expected:
                return False
            record.status = new
            record.reviewer_id = reviewer_id
            record.reviewer_role = reviewer_role
            record.review_notes = notes
            record.reviewed_at = reviewed_at
            return True

    def set_review_notes(self, record_id: str, notes: Optional[str]) -> bool:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                return False
            record.review_notes = notes
            return True

    def mark_superseded(self, record_id: str, reason: str, at: datetime) -> bool:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.is_superseded:
                return False
            record.superseded_at = at
            record.superseded_reason = reason
            return True

    def find(self, record_filter: Optional[RecordFilter] = None) -> list[ModerationRecord]:
        record_filter = record_filter or RecordFilter()
        with self._lock:
            matches = [copy.deepcopy(r) for r in self._records.values() if record_filter.matches(r)]
        return _newest_first(matches)


# ---------------------------------------------------------------------------
# JSON file
# ---------------------------------------------------------------------------


class JsonFileRecordStore(RecordStore):
    """File-based storage for moderation records.

    Storage path: ``~/.kidsafe/moderation/`` with:
    - ``records.json`` -- list of record dicts

    Writes are serialized by an in-process lock and land via an atomic
    rename, so a crash never leaves a half-written file. The lock does not
    span processes; use the SQL store for multi-process deployments.
    """

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        if base_dir is None:
            self._base = Path.home() / ".kidsafe" / "moderation"
        else:
            self._base = Path(base_dir)
        self._records_path = self._base / "records.json"
        self._lock = threading.Lock()
        try:
            self._base.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot create record store at {self._base}: {e}") from e

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_json(self) -> list[dict]:
        if not self._records_path.exists():
            return []
        try:
            data = json.loads(self._records_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            # Never fall back to an empty list: the next write would erase the audit trail
            logger.error("Cannot read moderation records from %s: %s", self._records_path, e)
            raise StoreUnavailableError(f"Cannot read {self._records_path}: {e}") from e
        if not isinstance(data, list):
            raise StoreUnavailableError(f"{self._records_path} does not contain a list of records")
        return data

    def _write_json(self, data: list[dict]) -> None:
        tmp = self._records_path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self._records_path)
        except OSError as e:
            logger.error("Cannot write moderation records to %s: %s", self._records_path, e)
            raise StoreUnavailableError(f"Cannot write {self._records_path}: {e}") from e

    def _update(self, record_id: str, apply) -> bool:
        """Run *apply* on the stored dict for *record_id* under the lock.

        *apply* returns False to leave the file untouched.
        """
        with self._lock:
            data = self._read_json()
            for item in data:
                if item.get("id") == record_id:
                    if not apply(item):
                        return False
                    self._write_json(data)
                    return True
            return False

    # ------------------------------------------------------------------
    # RecordStore
    # ------------------------------------------------------------------

    def put(self, record: ModerationRecord) -> None:
        with self._lock:
            data = self._read_json()
            if any(item.get("id") == record.id for item in data):
                raise ValueError(f"Moderation record '{record.id}' already exists")
            data.append(record.to_dict())
            self._write_json(data)

    def get_by_id(self, record_id: str) -> Optional[ModerationRecord]:
        with self._lock:
            data = self._read_json()
        for item in data:
            if item.get("id") == record_id:
                return ModerationRecord.from_dict(item)
        return None

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
        def apply(item: dict) -> bool:
            if item.get("status") != expected.value:
                return False
            item["status"] = new.value
            item["reviewer_id"] = reviewer_id
            item["reviewer_role"] = reviewer_role.value if reviewer_role else None
            item["review_notes"] = notes
            item["reviewed_at"] = reviewed_at.isoformat() if reviewed_at else None
            return True

        return self._update(record_id, apply)

    def set_review_notes(self, record_id: str, notes: Optional[str]) -> bool:
        def apply(item: dict) -> bool:
            item["review_notes"] = notes
            return True

        return self._update(record_id, apply)

    def mark_superseded(self, record_id: str, reason: str, at: datetime) -> bool:
        def apply(item: dict) -> bool:
            if item.get("superseded_at"):
                return False
            item["superseded_at"] = at.isoformat()
            item["superseded_reason"] = reason
            return True

        return self._update(record_id, apply)

    def find(self, record_filter: Optional[RecordFilter] = None) -> list[ModerationRecord]:
        record_filter = record_filter or RecordFilter()
        with self._lock:
            data = self._read_json()
        records = [ModerationRecord.from_dict(item) for item in data]
        return _newest_first([r for r in records if record_filter.matches(r)])


def build_store(settings: Settings) -> RecordStore:
    """Create the record store selected by ``settings.store_backend``."""
    if settings.store_backend == "memory":
        return InMemoryRecordStore()
    if settings.store_backend == "sql":
        from kidsafe.moderation.sql_store import SqlRecordStore

        return SqlRecordStore(settings.database_url)
    return JsonFileRecordStore(settings.data_dir / "moderation")
