"""Tests for the tiered lexical classifier."""

from kidsafe.lexicon.loader import Lexicon
from kidsafe.moderation.classifier import MASK_TOKEN, LexicalClassifier, mask_terms
from kidsafe.moderation.models import Severity

_classifier = LexicalClassifier()


def _lexicon(terms=(), patterns=(), exceptions=()) -> Lexicon:
    return Lexicon.from_dict(
        {
            "lexicon": {
                "name": "test",
                "version": "1",
                "format_version": "1",
                "terms": [{"term": t, "tier": tier} for t, tier in terms],
                "patterns": [{"pattern": p, "tier": "bullying", "label": label} for label, p in patterns],
                "context_exceptions": [{"term": t, "allowed_in": list(phrases)} for t, phrases in exceptions],
            }
        }
    )


# --- Default lexicon ---


def test_safe_text():
    result = _classifier.classify("Danas sam uradio domaći zadatak")
    assert result.safe
    assert result.severity == Severity.NONE
    assert result.flagged_terms == []
    assert result.matched_patterns == []
    assert result.filtered_text == "Danas sam uradio domaći zadatak"


def test_mild_insult():
    result = _classifier.classify("Ti si budala")
    assert not result.safe
    assert result.severity == Severity.MILD
    assert result.flagged_terms == ["budala"]
    assert result.filtered_text == f"Ti si {MASK_TOKEN}"


def test_moderate_profanity():
    result = _classifier.classify("To je đubre")
    assert result.severity == Severity.MODERATE
    assert result.flagged_terms == ["đubre"]


def test_bullying_pattern_without_word_hits():
    result = _classifier.classify("Niko te ne voli")
    assert result.severity == Severity.SEVERE
    assert result.flagged_terms == []
    assert result.matched_patterns == ["niko-te-ne-voli"]
    # Pattern matches are reported, not masked
    assert result.filtered_text == "Niko te ne voli"


def test_patterns_ignore_case():
    assert _classifier.classify("NIKO TE NE VOLI").severity == Severity.SEVERE


def test_bounded_gap_pattern():
    result = _classifier.classify("Bolje bi bilo da umreš")
    assert "bolje-umri" in result.matched_patterns


def test_critical_tiers():
    for text in ("Imam nož", "Donesi alkohol", "Ti si peder"):
        assert _classifier.classify(text).severity == Severity.CRITICAL, text


def test_critical_wins_over_lower_tiers():
    result = _classifier.classify("Ti si budala i imam nož")
    assert result.severity == Severity.CRITICAL
    assert "budala" in result.flagged_terms
    assert "nož" in result.flagged_terms


def test_one_entry_per_occurrence():
    result = _classifier.classify("budala, prava budala")
    assert result.flagged_terms == ["budala", "budala"]


def test_case_insensitive_terms():
    result = _classifier.classify("BUDALA")
    assert result.flagged_terms == ["budala"]
    assert result.filtered_text == MASK_TOKEN


def test_normalization_runs_first():
    result = _classifier.classify("Mrzim teeeee!!!!!")
    assert result.severity == Severity.SEVERE
    assert "mrzim-te" in result.matched_patterns
    assert result.filtered_text.endswith("!!")


def test_filtered_text_never_contains_flagged_terms():
    texts = [
        "Ti si budala",
        "Glupo je sve, glupane",
        "Ubiću te, kretenu jedan",
        "Seljačina i seljak",
        "budala budaletina budale",
    ]
    for text in texts:
        result = _classifier.classify(text)
        assert result.flagged_terms, text
        for term in result.flagged_terms:
            assert term not in result.filtered_text.lower(), (text, term)


# --- Context exceptions ---


def test_exempt_phrase_is_not_flagged():
    result = _classifier.classify("To je glupo pitanje")
    assert result.safe
    assert result.flagged_terms == []


def test_exempt_phrase_does_not_hide_other_occurrences():
    result = _classifier.classify("Glupo pitanje, ti si glup")
    assert result.flagged_terms == ["glup"]
    assert result.severity == Severity.SEVERE
    assert "glup" not in result.filtered_text.lower()


def test_exempt_words_containing_term():
    assert _classifier.classify("Ovo je ludnica").safe
    assert not _classifier.classify("Ti si lud").safe


# --- Custom lexicons ---


def test_severity_is_max_regardless_of_order():
    classifier = LexicalClassifier(_lexicon(terms=[("zmaj", "profanity"), ("mačka", "insult")]))
    result = classifier.classify("mačka i zmaj")
    assert result.severity == Severity.MODERATE
    assert result.flagged_terms == ["mačka", "zmaj"]


def test_custom_pattern_and_exception():
    classifier = LexicalClassifier(
        _lexicon(
            terms=[("kiša", "insult")],
            patterns=[("svi-bezite", "svi (beže|bežite)")],
            exceptions=[("kiša", ["kiša pada"])],
        )
    )
    assert classifier.classify("kiša pada").safe
    result = classifier.classify("Svi bežite")
    assert result.severity == Severity.SEVERE
    assert result.matched_patterns == ["svi-bezite"]


# --- Masking ---


def test_mask_longest_first():
    assert mask_terms("Glupo i glup", ["glup", "glupo"]) == "*** i ***"


def test_mask_is_constant_width():
    assert mask_terms("budaletina", ["budaletina"]) == mask_terms("glup", ["glup"]) == MASK_TOKEN
