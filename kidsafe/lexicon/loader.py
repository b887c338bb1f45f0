"""Load and compile a moderation lexicon from YAML."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union

import yaml

from kidsafe.errors import ConfigurationError
from kidsafe.lexicon.validator import Tier, validate_lexicon

logger = logging.getLogger(__name__)

DEFAULT_LEXICON_PATH = Path(__file__).with_name("default.yaml")


@dataclass
class PatternEntry:
    """A compiled bullying-style pattern."""

    label: str
    regex: re.Pattern[str]
    tier: Tier = Tier.BULLYING

    @property
    def source(self) -> str:
        return self.regex.pattern


@dataclass
class Lexicon:
    """A validated, compiled policy table."""

    name: str
    version: str
    terms: dict[Tier, list[str]] = field(default_factory=dict)
    patterns: list[PatternEntry] = field(default_factory=list)
    context_exceptions: dict[str, list[str]] = field(default_factory=dict)
    simplifications: list[tuple[str, str]] = field(default_factory=list)
    source: Optional[Path] = None

    def iter_terms(self) -> Iterator[tuple[Tier, str]]:
        """Yield ``(tier, term)`` in scan order: tier order, then file order."""
        for tier in Tier:
            for term in self.terms.get(tier, []):
                yield tier, term

    @property
    def term_count(self) -> int:
        return sum(len(terms) for terms in self.terms.values())

    @classmethod
    def from_dict(cls, data: object, source: Optional[Path] = None) -> Lexicon:
        """Validate and compile a parsed lexicon document.

        Raises ``ConfigurationError`` carrying every ERROR-level issue if the
        document is not usable. Warnings are logged and otherwise ignored.
        """
        where = str(source) if source else "<inline lexicon>"
        result = validate_lexicon(data)
        for issue in result.warnings:
            logger.warning("%s: %s", where, issue)
        if not result.passed:
            raise ConfigurationError(
                f"Lexicon {where} is invalid: {result.summary()}",
                issues=result.errors,
            )

        lex = data["lexicon"]  # type: ignore[index]

        terms: dict[Tier, list[str]] = {tier: [] for tier in Tier}
        seen: set[str] = set()
        for entry in lex.get("terms") or []:
            term = entry["term"].strip().lower()
            if term in seen:
                continue
            seen.add(term)
            terms[Tier(entry["tier"])].append(term)

        patterns = []
        for i, entry in enumerate(lex.get("patterns") or []):
            patterns.append(
                PatternEntry(
                    label=entry.get("label") or f"pattern-{i}",
                    regex=re.compile(entry["pattern"], re.IGNORECASE),
                    tier=Tier(entry.get("tier", Tier.BULLYING.value)),
                )
            )

        exceptions: dict[str, list[str]] = {}
        for entry in lex.get("context_exceptions") or []:
            key = entry["term"].strip().lower()
            exceptions.setdefault(key, []).extend(p.lower() for p in entry["allowed_in"])

        simplifications = [
            (entry["phrase"].strip(), entry["replacement"])
            for entry in lex.get("simplifications") or []
        ]

        return cls(
            name=lex["name"],
            version=lex["version"],
            terms=terms,
            patterns=patterns,
            context_exceptions=exceptions,
            simplifications=simplifications,
            source=source,
        )


def read_lexicon_document(path: Union[str, Path]) -> object:
    """Read a lexicon YAML file without validating it."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Lexicon file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Lexicon file {path} is not valid YAML: {e}") from e


def load_lexicon(path: Optional[Union[str, Path]] = None) -> Lexicon:
    """Load the lexicon at *path*, or the packaged default."""
    resolved = Path(path) if path is not None else DEFAULT_LEXICON_PATH
    lexicon = Lexicon.from_dict(read_lexicon_document(resolved), source=resolved)
    logger.info(
        "Loaded lexicon %s v%s (%d terms, %d patterns)",
        lexicon.name,
        lexicon.version,
        lexicon.term_count,
        len(lexicon.patterns),
    )
    return lexicon
