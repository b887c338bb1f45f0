"""Lexicon validator.

Checks a parsed lexicon document before it is allowed to drive moderation:
- Required keys and types are present
- Every entry names a known tier
- Patterns belong to tiers of severity Severe or higher
- Patterns compile and are safe to run inline (linear-time)
- Context exceptions actually contain the term they exempt
- Duplicate or non-lowercase terms are reported as warnings

Any ERROR makes the lexicon unusable; the loader turns that into a
``ConfigurationError`` at startup.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from kidsafe.lexicon import LEXICON_FORMAT_VERSION
from kidsafe.moderation.models import Severity

# Upper bound for any {m,n} repetition in a pattern
MAX_REPEAT = 64


class Tier(Enum):
    INSULT = "insult"
    PROFANITY = "profanity"
    BULLYING = "bullying"
    DISCRIMINATORY = "discriminatory"
    VIOLENCE = "violence"
    SEXUAL = "sexual"

    @property
    def severity(self) -> Severity:
        return _TIER_SEVERITY[self]


_TIER_SEVERITY = {
    Tier.INSULT: Severity.MILD,
    Tier.PROFANITY: Severity.MODERATE,
    Tier.BULLYING: Severity.SEVERE,
    Tier.DISCRIMINATORY: Severity.CRITICAL,
    Tier.VIOLENCE: Severity.CRITICAL,
    Tier.SEXUAL: Severity.CRITICAL,
}

TIER_NAMES = {t.value for t in Tier}


class IssueLevel(Enum):
    ERROR = "error"  # Lexicon cannot be loaded
    WARNING = "warning"  # Loaded, but should be fixed
    INFO = "info"


@dataclass
class LexiconIssue:
    """A single problem found in a lexicon document."""

    level: IssueLevel
    code: str
    message: str
    path: str = ""  # e.g. "patterns[3].pattern"

    def __str__(self) -> str:
        where = f" at {self.path}" if self.path else ""
        return f"[{self.level.value}] {self.code}{where}: {self.message}"


@dataclass
class LexiconValidationResult:
    issues: list[LexiconIssue] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not any(i.level == IssueLevel.ERROR for i in self.issues)

    @property
    def errors(self) -> list[LexiconIssue]:
        return [i for i in self.issues if i.level == IssueLevel.ERROR]

    @property
    def warnings(self) -> list[LexiconIssue]:
        return [i for i in self.issues if i.level == IssueLevel.WARNING]

    def summary(self) -> str:
        e = len(self.errors)
        w = len(self.warnings)
        status = "PASS" if self.passed else "FAIL"
        return f"[{status}] {e} error(s), {w} warning(s)"

    def _add(self, level: IssueLevel, code: str, message: str, path: str = "") -> None:
        self.issues.append(LexiconIssue(level=level, code=code, message=message, path=path))


def validate_lexicon(data: object) -> LexiconValidationResult:
    """Validate a parsed lexicon document (top-level ``lexicon`` key)."""
    result = LexiconValidationResult()

    if not isinstance(data, dict) or not isinstance(data.get("lexicon"), dict):
        result._add(IssueLevel.ERROR, "LEXICON_MISSING", "Missing top-level 'lexicon' mapping")
        return result

    lex = data["lexicon"]
    _check_header(lex, result)
    _check_terms(lex, result)
    _check_patterns(lex, result)
    _check_context_exceptions(lex, result)
    _check_simplifications(lex, result)
    return result


def _check_header(lex: dict, result: LexiconValidationResult) -> None:
    for key in ("name", "version"):
        if not isinstance(lex.get(key), str) or not lex.get(key):
            result._add(IssueLevel.ERROR, "HEADER_MISSING", f"'{key}' must be a non-empty string", key)

    fmt = str(lex.get("format_version", ""))
    if fmt != LEXICON_FORMAT_VERSION:
        result._add(
            IssueLevel.ERROR,
            "FORMAT_VERSION",
            f"Unsupported format_version '{fmt}', expected '{LEXICON_FORMAT_VERSION}'",
            "format_version",
        )


def _entry_list(lex: dict, key: str, result: LexiconValidationResult) -> list:
    entries = lex.get(key, [])
    if entries is None:
        return []
    if not isinstance(entries, list):
        result._add(IssueLevel.ERROR, "NOT_A_LIST", f"'{key}' must be a list", key)
        return []
    return entries


def _check_tier(entry: dict, path: str, result: LexiconValidationResult, default: str = "") -> Optional[Tier]:
    name = entry.get("tier", default)
    if name not in TIER_NAMES:
        result._add(
            IssueLevel.ERROR,
            "UNKNOWN_TIER",
            f"Unknown tier '{name}'. Must be one of: {sorted(TIER_NAMES)}",
            f"{path}.tier",
        )
        return None
    return Tier(name)


def _check_terms(lex: dict, result: LexiconValidationResult) -> None:
    seen: dict[str, str] = {}
    for i, entry in enumerate(_entry_list(lex, "terms", result)):
        path = f"terms[{i}]"
        if not isinstance(entry, dict):
            result._add(IssueLevel.ERROR, "BAD_ENTRY", "Term entry must be a mapping", path)
            continue
        term = entry.get("term")
        if not isinstance(term, str) or not term.strip():
            result._add(IssueLevel.ERROR, "TERM_EMPTY", "'term' must be a non-empty string", f"{path}.term")
            continue
        tier = _check_tier(entry, path, result)
        if tier is Tier.BULLYING:
            result._add(
                IssueLevel.ERROR,
                "TERM_IN_PATTERN_TIER",
                "The bullying tier is pattern-only; move this term to a word tier or write a pattern",
                f"{path}.tier",
            )
        if term != term.lower():
            result._add(IssueLevel.WARNING, "TERM_NOT_LOWERCASE", f"Term '{term}' will be lowercased", f"{path}.term")
        key = term.lower().strip()
        if key in seen:
            result._add(
                IssueLevel.WARNING,
                "DUPLICATE_TERM",
                f"Term '{key}' already listed at {seen[key]}",
                path,
            )
        else:
            seen[key] = path


def _check_patterns(lex: dict, result: LexiconValidationResult) -> None:
    for i, entry in enumerate(_entry_list(lex, "patterns", result)):
        path = f"patterns[{i}]"
        if not isinstance(entry, dict):
            result._add(IssueLevel.ERROR, "BAD_ENTRY", "Pattern entry must be a mapping", path)
            continue
        pattern = entry.get("pattern")
        if not isinstance(pattern, str) or not pattern:
            result._add(IssueLevel.ERROR, "PATTERN_EMPTY", "'pattern' must be a non-empty string", f"{path}.pattern")
            continue
        tier = _check_tier(entry, path, result, default=Tier.BULLYING.value)
        if tier is not None and tier.severity < Severity.SEVERE:
            result._add(
                IssueLevel.ERROR,
                "PATTERN_TIER_TOO_LOW",
                f"Patterns must sit in a tier of severity 'severe' or higher, not '{tier.value}'",
                f"{path}.tier",
            )
        try:
            re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            result._add(IssueLevel.ERROR, "PATTERN_INVALID", f"Pattern does not compile: {e}", f"{path}.pattern")
            continue
        problem = check_linear_time(pattern)
        if problem:
            result._add(IssueLevel.ERROR, "PATTERN_BACKTRACKING", problem, f"{path}.pattern")


def _check_context_exceptions(lex: dict, result: LexiconValidationResult) -> None:
    for i, entry in enumerate(_entry_list(lex, "context_exceptions", result)):
        path = f"context_exceptions[{i}]"
        if not isinstance(entry, dict):
            result._add(IssueLevel.ERROR, "BAD_ENTRY", "Context exception must be a mapping", path)
            continue
        term = entry.get("term")
        phrases = entry.get("allowed_in")
        if not isinstance(term, str) or not term.strip():
            result._add(IssueLevel.ERROR, "TERM_EMPTY", "'term' must be a non-empty string", f"{path}.term")
            continue
        if not isinstance(phrases, list) or not phrases:
            result._add(IssueLevel.ERROR, "PHRASES_EMPTY", "'allowed_in' must be a non-empty list", f"{path}.allowed_in")
            continue
        for j, phrase in enumerate(phrases):
            if not isinstance(phrase, str) or term.lower() not in phrase.lower():
                result._add(
                    IssueLevel.ERROR,
                    "PHRASE_WITHOUT_TERM",
                    f"Exempt phrase {phrase!r} does not contain the term '{term}'",
                    f"{path}.allowed_in[{j}]",
                )


def _check_simplifications(lex: dict, result: LexiconValidationResult) -> None:
    for i, entry in enumerate(_entry_list(lex, "simplifications", result)):
        path = f"simplifications[{i}]"
        if not isinstance(entry, dict):
            result._add(IssueLevel.ERROR, "BAD_ENTRY", "Simplification must be a mapping", path)
            continue
        if not isinstance(entry.get("phrase"), str) or not entry["phrase"].strip():
            result._add(IssueLevel.ERROR, "PHRASE_EMPTY", "'phrase' must be a non-empty string", f"{path}.phrase")
        if not isinstance(entry.get("replacement"), str):
            result._add(IssueLevel.ERROR, "REPLACEMENT_MISSING", "'replacement' must be a string", f"{path}.replacement")


# ---------------------------------------------------------------------------
# Linear-time pattern check
# ---------------------------------------------------------------------------


_LOOKAROUND_PREFIXES = ("(?=", "(?!", "(?<=", "(?<!")
_FLAG_GROUP = re.compile(r"\?[aiLmsux-]*([:)])")
_BRACES = re.compile(r"\{(\d*)(?:(,)(\d*))?\}")
_TOO_MANY_VARIABLE = "At most one variable-width repetition (? or {m,n}) is allowed per pattern"


def check_linear_time(pattern: str) -> Optional[str]:
    """Return a reason if *pattern* could backtrack badly, else None.

    Patterns run inline on every submitted message with Python's backtracking
    engine, so only a restricted subset is accepted: no backreferences, no
    lookaround, no unbounded repetition, bounds of at most ``MAX_REPEAT``, no
    repeated group (other than ``?``) that contains a quantifier or an
    alternation, and at most one variable-width repetition (``?`` or
    ``{m,n}`` with m < n) in the whole pattern. With a single variable
    repetition the engine tries at most ``MAX_REPEAT + 1`` widths per start
    position, so matching stays linear in the input length.
    """
    n = len(pattern)
    i = 0
    # Per open group: [has_quantifier, has_alternation]
    stack: list[list[bool]] = [[False, False]]
    variable = 0

    while i < n:
        c = pattern[i]

        if c == "\\":
            nxt = pattern[i + 1 : i + 2]
            if nxt.isdigit() and nxt != "0":
                return f"Backreference '\\{nxt}' is not allowed"
            i += 2
        elif c == "[":
            i = _skip_class(pattern, i)
        elif c == "(":
            if pattern.startswith(_LOOKAROUND_PREFIXES, i):
                return "Lookaround assertions are not allowed"
            if pattern.startswith("(?P=", i):
                return "Named backreferences are not allowed"
            if pattern.startswith("(?P<", i):
                i = pattern.find(">", i) + 1
            elif pattern.startswith("(?", i):
                flags = _FLAG_GROUP.match(pattern, i + 1)
                if not flags:
                    return "Unsupported group syntax"
                i = flags.end()
                if flags.group(1) == ")":
                    # Inline flags like (?i) open no group
                    continue
            else:
                i += 1
            stack.append([False, False])
            continue
        elif c == ")":
            if len(stack) < 2:
                return "Unbalanced parenthesis"
            group = stack.pop()
            reason, i, widens = _consume_quantifier(pattern, i + 1, stack, group)
            if reason:
                return reason
            variable += widens
            if variable > 1:
                return _TOO_MANY_VARIABLE
            continue
        elif c == "|":
            stack[-1][1] = True
            i += 1
            continue
        elif c in "*+":
            return f"Unbounded repetition '{c}' is not allowed; use a bounded {{m,n}}"
        else:
            i += 1

        reason, i, widens = _consume_quantifier(pattern, i, stack, None)
        if reason:
            return reason
        variable += widens
        if variable > 1:
            return _TOO_MANY_VARIABLE

    return None


def _skip_class(pattern: str, i: int) -> int:
    """Return the index just past the character class opening at *i*."""
    n = len(pattern)
    j = i + 1
    if j < n and pattern[j] == "^":
        j += 1
    if j < n and pattern[j] == "]":
        j += 1
    while j < n:
        if pattern[j] == "\\":
            j += 2
            continue
        if pattern[j] == "]":
            return j + 1
        j += 1
    return n


def _consume_quantifier(
    pattern: str, i: int, stack: list[list[bool]], group: Optional[list[bool]]
) -> tuple[Optional[str], int, bool]:
    """Check the quantifier (if any) at *i* applied to the preceding atom.

    Returns ``(reason, next_index, is_variable_width)``.
    """
    c = pattern[i : i + 1]

    if c in ("*", "+"):
        return f"Unbounded repetition '{c}' is not allowed; use a bounded {{m,n}}", i, False

    if c == "?":
        _propagate(stack, group)
        stack[-1][0] = True
        i += 1
        if pattern[i : i + 1] == "?":
            i += 1
        return None, i, True

    braces = _BRACES.match(pattern, i) if c == "{" else None
    if braces is None or not (braces.group(1) or braces.group(2)):
        # No quantifier (or a literal brace)
        _propagate(stack, group)
        return None, i, False

    low, comma, high = braces.groups()
    if comma and not high:
        return f"Unbounded repetition '{braces.group(0)}' is not allowed", i, False
    upper = int(high) if comma else int(low)
    if upper > MAX_REPEAT:
        return f"Repetition bound {upper} exceeds {MAX_REPEAT}", i, False
    if group is not None and (group[0] or group[1]):
        return "Repeated group must not contain quantifiers or alternation", i, False

    stack[-1][0] = True
    i = braces.end()
    if pattern[i : i + 1] == "?":
        i += 1
    lower = int(low) if low else 0
    return None, i, bool(comma) and lower < upper


def _propagate(stack: list[list[bool]], group: Optional[list[bool]]) -> None:
    if group is None:
        return
    stack[-1][0] = stack[-1][0] or group[0]
    stack[-1][1] = stack[-1][1] or group[1]
