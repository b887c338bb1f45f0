"""Age-appropriateness evaluation and child-friendly simplification."""

from __future__ import annotations

import re
from typing import Optional, Sequence

from kidsafe.errors import ConfigurationError
from kidsafe.moderation.classifier import LexicalClassifier
from kidsafe.moderation.models import AgeAppropriateness, ClassificationResult, Severity
from kidsafe.moderation.normalizer import phrase_pattern

DEFAULT_AGE_FLOOR = 7
DEFAULT_AGE_UPPER = 15


class AgeEvaluator:
    """Decide whether text suits an author's age band.

    Below ``floor`` nothing is appropriate; above ``upper`` everything is.
    In between, content the classifier rates Moderate or worse is not.
    """

    def __init__(
        self,
        classifier: LexicalClassifier,
        floor: int = DEFAULT_AGE_FLOOR,
        upper: int = DEFAULT_AGE_UPPER,
        simplifications: Optional[Sequence[tuple[str, str]]] = None,
    ) -> None:
        if upper < floor:
            raise ConfigurationError(f"Age upper bound {upper} is below the floor {floor}")
        self.classifier = classifier
        self.floor = floor
        self.upper = upper
        if simplifications is None:
            simplifications = classifier.lexicon.simplifications
        self._rules: list[tuple[re.Pattern[str], str]] = [
            (phrase_pattern(phrase), replacement) for phrase, replacement in simplifications
        ]

    def is_appropriate(
        self,
        text: str,
        age: int,
        classification: Optional[ClassificationResult] = None,
    ) -> AgeAppropriateness:
        """Check *text* for an author of *age*.

        Pass *classification* to reuse a result the caller already has.
        """
        if age < self.floor:
            return AgeAppropriateness(
                appropriate=False,
                suggested_age=self.floor,
                reason=f"Sadržaj namenjen deci starije od {self.floor} godina",
            )
        if age > self.upper:
            return AgeAppropriateness(appropriate=True)

        if classification is None:
            classification = self.classifier.classify(text)
        if classification.severity >= Severity.MODERATE:
            return AgeAppropriateness(
                appropriate=False,
                suggested_age=self.upper + 1,
                reason="Sadržaj nije prikladan za uzrast",
            )
        return AgeAppropriateness(appropriate=True)

    def simplify(self, text: str) -> str:
        """Swap complex connectives for simpler synonyms.

        Presentation only; never part of a safety decision.
        """
        for pattern, replacement in self._rules:
            text = pattern.sub(lambda m, r=replacement: _match_first_letter(m.group(0), r), text)
        return text


def _match_first_letter(original: str, replacement: str) -> str:
    if original[:1].isupper() and replacement:
        return replacement[0].upper() + replacement[1:]
    return replacement
