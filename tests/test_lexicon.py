"""Tests for lexicon validation and loading."""

import tempfile

import pytest
import yaml

from kidsafe.errors import ConfigurationError
from kidsafe.lexicon.loader import DEFAULT_LEXICON_PATH, Lexicon, load_lexicon
from kidsafe.lexicon.validator import IssueLevel, Tier, check_linear_time, validate_lexicon


def _doc(**overrides) -> dict:
    lex = {
        "name": "test",
        "version": "1",
        "format_version": "1",
        "terms": [{"term": "budala", "tier": "insult"}],
        "patterns": [{"pattern": "niko te ne voli", "tier": "bullying", "label": "niko"}],
        "context_exceptions": [],
        "simplifications": [],
    }
    lex.update(overrides)
    return {"lexicon": lex}


def _codes(data) -> set:
    return {i.code for i in validate_lexicon(data).issues}


def _write_yaml(data) -> str:
    """Write data to a temporary YAML file and return the path."""
    f = tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False, encoding="utf-8")
    yaml.safe_dump(data, f, allow_unicode=True)
    f.close()
    return f.name


# --- Validation ---


def test_default_lexicon_is_valid():
    with open(DEFAULT_LEXICON_PATH, encoding="utf-8") as f:
        result = validate_lexicon(yaml.safe_load(f))
    assert result.passed, [str(i) for i in result.errors]
    assert result.warnings == []


def test_minimal_document_passes():
    result = validate_lexicon(_doc())
    assert result.passed
    assert result.summary() == "[PASS] 0 error(s), 0 warning(s)"


def test_missing_lexicon_key():
    assert _codes({"terms": []}) == {"LEXICON_MISSING"}
    assert _codes(None) == {"LEXICON_MISSING"}


def test_header_checks():
    assert "HEADER_MISSING" in _codes(_doc(name=""))
    assert "FORMAT_VERSION" in _codes(_doc(format_version="2"))


def test_unknown_tier():
    result = validate_lexicon(_doc(terms=[{"term": "x", "tier": "rude"}]))
    assert not result.passed
    assert result.errors[0].code == "UNKNOWN_TIER"
    assert result.errors[0].path == "terms[0].tier"


def test_bullying_tier_is_pattern_only():
    assert "TERM_IN_PATTERN_TIER" in _codes(_doc(terms=[{"term": "x", "tier": "bullying"}]))


def test_pattern_tier_too_low():
    data = _doc(patterns=[{"pattern": "ti si", "tier": "insult"}])
    assert "PATTERN_TIER_TOO_LOW" in _codes(data)


def test_pattern_in_critical_tier_is_allowed():
    data = _doc(patterns=[{"pattern": "donesi (nož|pištolj)", "tier": "violence"}])
    assert validate_lexicon(data).passed


def test_pattern_must_compile():
    assert "PATTERN_INVALID" in _codes(_doc(patterns=[{"pattern": "ti si (glup"}]))


def test_backtracking_pattern_rejected():
    data = _doc(patterns=[{"pattern": "bolje.*umri", "tier": "bullying"}])
    result = validate_lexicon(data)
    assert not result.passed
    assert result.errors[0].code == "PATTERN_BACKTRACKING"
    assert result.errors[0].path == "patterns[0].pattern"


def test_exception_phrase_must_contain_term():
    data = _doc(context_exceptions=[{"term": "glupo", "allowed_in": ["pametno pitanje"]}])
    assert "PHRASE_WITHOUT_TERM" in _codes(data)


def test_duplicates_and_case_are_warnings():
    data = _doc(terms=[
        {"term": "budala", "tier": "insult"},
        {"term": "Budala", "tier": "insult"},
    ])
    result = validate_lexicon(data)
    assert result.passed
    codes = {w.code for w in result.warnings}
    assert codes == {"DUPLICATE_TERM", "TERM_NOT_LOWERCASE"}
    assert all(w.level == IssueLevel.WARNING for w in result.warnings)


def test_simplification_entries():
    data = _doc(simplifications=[{"phrase": "", "replacement": "ali"}, {"phrase": "stoga"}])
    assert {"PHRASE_EMPTY", "REPLACEMENT_MISSING"} <= _codes(data)


# --- Linear-time check ---


def test_linear_time_accepts_bounded_patterns():
    for pattern in [
        "ti si (glup|loš)",
        "bolje.{0,40}umr(i|eš|eti)",
        "x{2,5}",
        "a{,5}",
        "[*+]",
        r"\+381",
        "(?i)niko",
        "(?:ab){2}",
        "(?P<who>ti|vi) ste",
        "colou?r",
        r"\d{13}",
        "{}",
        "a{3}b{0,5}",
        "(?:ab){2}c?",
    ]:
        assert check_linear_time(pattern) is None, pattern


def test_linear_time_rejects_unsafe_patterns():
    for pattern in [
        "a*",
        "a+",
        "(a+)+",
        "a{1,}",
        "a{100}",
        "(a|b){1,5}",
        r"(\w{1,3}){1,5}",
        r"(a)\1",
        "(?=a)b",
        "(?<!a)b",
        "(?P<x>a)(?P=x)",
        "a{0,64}a{0,64}a{0,64}a{0,64}z",
        r"\w{0,64}\w{0,64}\w{0,64}\w{0,64}z",
        ".{0,64}.{0,64}.{0,64}.{0,64}.{0,64}z",
        "colou?r ?",
        "(a{0,3})?",
    ]:
        assert check_linear_time(pattern) is not None, pattern


def test_stacked_bounded_repeats_rejected():
    data = _doc(patterns=[{"pattern": "a{0,64}a{0,64}a{0,64}a{0,64}z", "tier": "bullying"}])
    result = validate_lexicon(data)
    assert not result.passed
    assert [i.code for i in result.errors] == ["PATTERN_BACKTRACKING"]
    assert "variable-width" in result.errors[0].message


# --- Loading ---


def test_load_default_lexicon():
    lexicon = load_lexicon()
    assert lexicon.name == "kidsafe-default-sr"
    assert len(lexicon.patterns) == 13
    assert lexicon.terms[Tier.BULLYING] == []
    assert "nož" in lexicon.terms[Tier.VIOLENCE]
    assert ("međutim", "ali") in lexicon.simplifications
    assert lexicon.context_exceptions["glupo"] == ["glupo pitanje"]


def test_iter_terms_follows_tier_order():
    tiers = [tier for tier, _ in load_lexicon().iter_terms()]
    assert tiers == sorted(tiers, key=list(Tier).index)


def test_from_dict_lowercases_and_dedups():
    data = _doc(terms=[
        {"term": "Budala", "tier": "insult"},
        {"term": "budala", "tier": "profanity"},
    ])
    lexicon = Lexicon.from_dict(data)
    assert lexicon.terms[Tier.INSULT] == ["budala"]
    assert lexicon.terms[Tier.PROFANITY] == []


def test_load_from_file():
    path = _write_yaml(_doc())
    lexicon = load_lexicon(path)
    assert lexicon.name == "test"
    assert lexicon.patterns[0].label == "niko"


def test_load_missing_file():
    with pytest.raises(ConfigurationError, match="not found"):
        load_lexicon("/nonexistent/lexicon.yaml")


def test_load_invalid_yaml():
    f = tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False)
    f.write("lexicon: [unclosed\n")
    f.close()
    with pytest.raises(ConfigurationError, match="not valid YAML"):
        load_lexicon(f.name)


def test_load_invalid_lexicon_carries_issues():
    path = _write_yaml(_doc(patterns=[{"pattern": "(a+)+"}]))
    with pytest.raises(ConfigurationError) as excinfo:
        load_lexicon(path)
    assert [i.code for i in excinfo.value.issues] == ["PATTERN_BACKTRACKING"]
