"""Tiered lexical classifier.

Word tiers are case-insensitive substring lists: liberal on purpose, since a
false positive on a borderline word only filters it while a false negative
lets harmful content through. Bullying patterns run on the normalized text
(not lowercased) and lift severity to at least Severe. Severity is a
max-fold over every tier; nothing short-circuits.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from kidsafe.lexicon.loader import Lexicon, load_lexicon
from kidsafe.moderation.models import ClassificationResult, Severity
from kidsafe.moderation.normalizer import normalize, phrase_pattern

# Constant width, so masked text does not leak term length
MASK_TOKEN = "***"


class LexicalClassifier:
    """Classify text against a compiled lexicon."""

    def __init__(self, lexicon: Optional[Lexicon] = None) -> None:
        self.lexicon = lexicon if lexicon is not None else load_lexicon()
        self._exempt_phrases: list[re.Pattern[str]] = [
            phrase_pattern(phrase)
            for phrases in self.lexicon.context_exceptions.values()
            for phrase in phrases
        ]

    def classify(self, text: str) -> ClassificationResult:
        normalized = normalize(text)
        scan = self._blank_exempt(normalized.lower())

        severity = Severity.NONE
        flagged: list[str] = []
        for tier, term in self.lexicon.iter_terms():
            hits = scan.count(term)
            if hits:
                flagged.extend([term] * hits)
                severity = max(severity, tier.severity)

        matched: list[str] = []
        for entry in self.lexicon.patterns:
            if entry.regex.search(normalized):
                matched.append(entry.label)
                severity = max(severity, entry.tier.severity)

        return ClassificationResult(
            safe=severity is Severity.NONE,
            flagged_terms=flagged,
            filtered_text=mask_terms(normalized, flagged),
            severity=severity,
            matched_patterns=matched,
        )

    def _blank_exempt(self, scan: str) -> str:
        """Blank every exempt phrase so no word inside it is counted."""
        for pattern in self._exempt_phrases:
            scan = pattern.sub(lambda m: " " * len(m.group(0)), scan)
        return scan


def mask_terms(text: str, terms: Iterable[str]) -> str:
    """Replace every occurrence of each term with ``MASK_TOKEN``.

    Longer terms go first so "glupo" is masked whole rather than as "***o".
    """
    for term in sorted(set(terms), key=len, reverse=True):
        text = re.sub(re.escape(term), MASK_TOKEN, text, flags=re.IGNORECASE)
    return text
