"""Moderation pipeline: the single entry point for write paths.

    raw text -> normalize -> PII detector + lexical classifier
             -> optional age check -> severity fold -> decision
             -> masked text -> record (Block/Flag, or audit opt-in)

Classification is pure and safe to call concurrently. The only shared state
is the record store behind the ``ModerationRecordManager``.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from kidsafe.config import Settings, get_settings
from kidsafe.errors import StoreUnavailableError
from kidsafe.lexicon.loader import load_lexicon
from kidsafe.moderation.age import AgeEvaluator
from kidsafe.moderation.classifier import LexicalClassifier, mask_terms
from kidsafe.moderation.decision import combine_severities, decide, requires_record
from kidsafe.moderation.models import Evaluation, RecordContext, Severity
from kidsafe.moderation.normalizer import normalize
from kidsafe.moderation.pii import PIIDetector, generate_warning
from kidsafe.moderation.records import ModerationRecordManager
from kidsafe.moderation.store import InMemoryRecordStore, build_store

logger = logging.getLogger(__name__)

PATTERN_WARNING = "Prepoznat obrazac vršnjačkog nasilja"


class ModerationPipeline:
    """Evaluate user-generated text and keep the audit trail."""

    def __init__(
        self,
        classifier: Optional[LexicalClassifier] = None,
        pii_detector: Optional[PIIDetector] = None,
        age_evaluator: Optional[AgeEvaluator] = None,
        records: Optional[ModerationRecordManager] = None,
        audit_content_types: Iterable[str] = (),
    ) -> None:
        self.classifier = classifier or LexicalClassifier()
        self.pii_detector = pii_detector or PIIDetector()
        self.age_evaluator = age_evaluator or AgeEvaluator(self.classifier)
        self.records = records or ModerationRecordManager(InMemoryRecordStore())
        self.audit_content_types = frozenset(audit_content_types)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> ModerationPipeline:
        """Build the full stack from configuration. Fails fast on a bad lexicon."""
        settings = settings or get_settings()
        classifier = LexicalClassifier(load_lexicon(settings.lexicon_path))
        return cls(
            classifier=classifier,
            pii_detector=PIIDetector(),
            age_evaluator=AgeEvaluator(classifier, floor=settings.age_floor, upper=settings.age_upper),
            records=ModerationRecordManager(build_store(settings)),
            audit_content_types=settings.audit_content_types,
        )

    # ------------------------------------------------------------------
    # Caller contract
    # ------------------------------------------------------------------

    def evaluate(
        self,
        text: str,
        content_type: str,
        content_id: str,
        author_id: str,
        author_age: Optional[int] = None,
        audit: Optional[bool] = None,
    ) -> Evaluation:
        """Evaluate one content item on a write path.

        Block and Flag decisions are always persisted. If the store is down
        for one of those, ``StoreUnavailableError`` propagates and the caller
        must reject the write. Other decisions are persisted only when
        auditing is on (``audit=True``, or the content type is configured for
        it), and a store failure there is logged and tolerated.
        """
        evaluation = self._assess(text, author_age)

        if audit is None:
            audit = content_type in self.audit_content_types
        mandatory = requires_record(evaluation.action)

        if mandatory or audit:
            context = RecordContext(content_type=content_type, content_ref=content_id, author_id=author_id)
            try:
                record = self.records.create_record(evaluation, context)
            except StoreUnavailableError:
                if mandatory:
                    logger.error(
                        "Record store unavailable for %s decision on %s %s; rejecting write",
                        evaluation.action.value,
                        content_type,
                        content_id,
                    )
                    raise
                logger.warning("Audit record for %s %s not written: store unavailable", content_type, content_id)
            else:
                evaluation.record_id = record.id

        logger.info(
            "Moderation decision: action=%s severity=%s content_type=%s author=%s record=%s",
            evaluation.action.value,
            evaluation.severity.value,
            content_type,
            author_id,
            evaluation.record_id,
        )
        return evaluation

    def quick_check(self, text: str, author_age: Optional[int] = None) -> Evaluation:
        """Evaluate without persisting anything. For previews and tooling."""
        return self._assess(text, author_age)

    def evaluate_many(self, items: Iterable[Mapping[str, Any]]) -> list[Evaluation]:
        """Evaluate a batch; each item holds the keyword arguments of ``evaluate``.

        Stops at the first item whose mandatory record cannot be written. The
        raised ``StoreUnavailableError`` carries the evaluations of the items
        before it in ``completed``; their records are already stored.
        """
        results: list[Evaluation] = []
        for item in items:
            try:
                results.append(self.evaluate(**item))
            except StoreUnavailableError as e:
                e.completed = results
                raise
        return results

    def simplify(self, text: str) -> str:
        return self.age_evaluator.simplify(text)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _assess(self, text: str, author_age: Optional[int]) -> Evaluation:
        normalized = normalize(text)
        pii = self.pii_detector.detect(normalized)
        classification = self.classifier.classify(normalized)

        age_check = None
        if author_age is not None:
            age_check = self.age_evaluator.is_appropriate(normalized, author_age, classification)

        severity = combine_severities(
            classification.severity,
            Severity.MODERATE if pii.detected else Severity.NONE,
        )
        decision = decide(severity)
        masked = mask_terms(pii.masked, classification.flagged_terms)
        # The classifier never sees PII placeholders; callers may store this field
        classification.filtered_text = masked

        warnings: list[str] = []
        if classification.flagged_terms:
            unique = list(dict.fromkeys(classification.flagged_terms))
            warnings.append(f"Neprikladne reči: {', '.join(unique)}")
        if classification.matched_patterns:
            warnings.append(PATTERN_WARNING)
        if age_check is not None and not age_check.appropriate:
            warnings.append(age_check.reason or "Sadržaj nije prikladan za uzrast")
        if pii.detected:
            warnings.append(generate_warning(pii.types))

        return Evaluation(
            severity=severity,
            action=decision.action,
            masked_text=masked,
            warnings=warnings,
            decision=decision,
            classification=classification,
            pii=pii,
            age_check=age_check,
        )
