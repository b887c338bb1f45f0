"""Error taxonomy for the moderation pipeline.

Classification never raises for string input. Everything here is raised
either at startup (``ConfigurationError``) or by the record lifecycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from kidsafe.moderation.models import ModerationRecord


class ModerationError(Exception):
    """Base class for all kidsafe errors."""


class ConfigurationError(ModerationError):
    """A policy table or pattern is malformed. Fatal at startup."""

    def __init__(self, message: str, issues: Optional[list[Any]] = None) -> None:
        super().__init__(message)
        self.issues = list(issues or [])


class NotFoundError(ModerationError, LookupError):
    """No moderation record exists with the given id."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Moderation record '{record_id}' not found")
        self.record_id = record_id


class AlreadyReviewedError(ModerationError):
    """A review was attempted on a record that is no longer pending."""

    def __init__(self, record: ModerationRecord) -> None:
        super().__init__(
            f"Moderation record '{record.id}' was already reviewed "
            f"(status: {record.status.value})"
        )
        self.record = record


class StoreUnavailableError(ModerationError):
    """The record store backend could not be reached or read.

    ``completed`` holds the evaluations a batch finished (and recorded)
    before the failure.
    """

    def __init__(self, message: str = "", completed: Optional[list[Any]] = None) -> None:
        super().__init__(message)
        self.completed = list(completed or [])


class ReviewPermissionError(ModerationError, PermissionError):
    """The reviewer may not amend notes on this record."""
