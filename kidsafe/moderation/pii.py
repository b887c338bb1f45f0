"""Personal information detection and masking.

Detects e-mail addresses, Serbian national ID numbers (JMBG, 13 digits) and
domestic mobile numbers, and replaces each detected span in full with a
fixed placeholder. Rules are tried in priority order and a character span
claimed by one rule is never reported again by a later one, so a phone-shaped
prefix of a JMBG is not double-counted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence, Union

from kidsafe.errors import ConfigurationError
from kidsafe.moderation.models import PIIFinding, PIIKind, PIIResult


@dataclass(frozen=True)
class PIIRule:
    kind: PIIKind
    pattern: str
    placeholder: str


# Priority order: most specific first
DEFAULT_PII_RULES: tuple[PIIRule, ...] = (
    PIIRule(
        kind=PIIKind.EMAIL,
        pattern=r"\b[A-Za-z0-9._%+-]{1,64}@(?:[A-Za-z0-9-]{1,63}\.){1,8}[A-Za-z]{2,24}\b",
        placeholder="[EMAIL ADRESA]",
    ),
    PIIRule(
        kind=PIIKind.NATIONAL_ID,
        pattern=r"(?<!\d)\d{13}(?!\d)",
        placeholder="[JMBG]",
    ),
    PIIRule(
        # 06x followed by 6-7 digits, or +3816x...; single separators allowed
        kind=PIIKind.PHONE,
        pattern=r"(?<![\d+])(?:\+381|0)6\d(?:[ /-]?\d){6,7}(?!\d)",
        placeholder="[TELEFON]",
    ),
)

WARNING_PREFIX = "⚠️ UPOZORENJE"


class PIIDetector:
    """Find and mask personal information in text."""

    def __init__(self, rules: Sequence[PIIRule] = DEFAULT_PII_RULES) -> None:
        self._rules: list[tuple[PIIRule, re.Pattern[str]]] = []
        for rule in rules:
            try:
                compiled = re.compile(rule.pattern)
            except re.error as e:
                raise ConfigurationError(
                    f"PII rule for '{rule.kind.value}' does not compile: {e}"
                ) from e
            self._rules.append((rule, compiled))
        self._placeholders = {rule.kind: rule.placeholder for rule in rules}

    def detect(self, text: str) -> PIIResult:
        """Scan *text* and return findings plus a fully masked copy."""
        if not text:
            return PIIResult(detected=False, masked=text or "")

        findings: list[PIIFinding] = []
        for rule, regex in self._rules:
            for m in regex.finditer(text):
                start, end = m.span()
                if any(start < f.end and f.start < end for f in findings):
                    continue
                findings.append(PIIFinding(kind=rule.kind, start=start, end=end))

        findings.sort(key=lambda f: f.start)

        types: list[PIIKind] = []
        for f in findings:
            if f.kind not in types:
                types.append(f.kind)

        masked = text
        for f in reversed(findings):
            masked = masked[: f.start] + self._placeholders[f.kind] + masked[f.end :]

        return PIIResult(detected=bool(findings), types=types, masked=masked, findings=findings)

    def mask(self, text: str) -> str:
        return self.detect(text).masked


def generate_warning(types: Iterable[Union[PIIKind, str]]) -> str:
    """Return the guardian banner for *types*, or "" when nothing was found.

    Callers treat the empty string as "no banner needed".
    """
    names = [t.value if isinstance(t, PIIKind) else str(t) for t in types]
    if not names:
        return ""
    return (
        f"{WARNING_PREFIX}: Detektovane lične informacije ({', '.join(names)}). "
        "Roditelji će biti obavešteni."
    )
