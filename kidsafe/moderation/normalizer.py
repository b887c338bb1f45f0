"""Text normalization run before every classifier.

Collapses trivial obfuscation ("heeeeej", "Šta!!!!!") so lexical matching is
not defeated by it. Digits and whitespace are left alone: long digit runs are
legitimate (numbers, phone numbers, national IDs) and the PII detector needs
them intact.
"""

from __future__ import annotations

import re

# Same non-space, non-digit character three or more times in a row
_REPEATED_CHAR = re.compile(r"([^\s\d])\1{2,}")

# Three or more of ! ? . in any mix
_PUNCT_RUN = re.compile(r"[!?.]{3,}")


def normalize(text: str) -> str:
    """Return *text* with repeated characters and punctuation capped at two.

    Pure and total; ``normalize(normalize(x)) == normalize(x)``.
    """
    if not text:
        return ""
    collapsed = _REPEATED_CHAR.sub(r"\1\1", text)
    capped = _PUNCT_RUN.sub(lambda m: m.group(0)[:2], collapsed)
    return capped.strip()


def phrase_pattern(phrase: str) -> re.Pattern[str]:
    """Compile a case-insensitive, word-boundary-aware matcher for *phrase*.

    Internal whitespace in the phrase matches one to three whitespace
    characters, so multi-word phrases survive ordinary spacing differences.
    """
    words = [re.escape(w) for w in phrase.split()]
    body = r"\s{1,3}".join(words)
    return re.compile(rf"(?<!\w){body}(?!\w)", re.IGNORECASE)
