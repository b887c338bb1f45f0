"""Tests for PII detection and masking."""

import pytest

from kidsafe.errors import ConfigurationError
from kidsafe.moderation.models import PIIKind
from kidsafe.moderation.pii import PIIDetector, PIIRule, generate_warning

_detector = PIIDetector()


# --- Detection ---


def test_email_detected_and_fully_masked():
    result = _detector.detect("Moj email je test@example.com")
    assert result.detected
    assert PIIKind.EMAIL in result.types
    assert "test@example.com" not in result.masked
    assert "example" not in result.masked
    assert result.masked == "Moj email je [EMAIL ADRESA]"


def test_email_needs_dot_in_domain():
    result = _detector.detect("piši na ana@skola")
    assert not result.detected


def test_mobile_phone_detected():
    result = _detector.detect("Pozovi me na 0612345678")
    assert result.types == [PIIKind.PHONE]
    assert result.masked == "Pozovi me na [TELEFON]"


def test_phone_with_country_code_and_separators():
    assert _detector.detect("Broj: +381641234567").types == [PIIKind.PHONE]
    assert _detector.detect("Broj: 064 123 4567").types == [PIIKind.PHONE]
    assert _detector.detect("Broj: 064/123-456").types == [PIIKind.PHONE]


def test_national_id_only():
    result = _detector.detect("Moj JMBG je 1234567890123")
    assert result.types == [PIIKind.NATIONAL_ID]
    assert result.masked == "Moj JMBG je [JMBG]"


def test_national_id_with_mobile_prefix_is_not_a_phone():
    result = _detector.detect("JMBG: 0612345678901")
    assert result.types == [PIIKind.NATIONAL_ID]
    assert len(result.findings) == 1


def test_longer_digit_runs_are_ignored():
    result = _detector.detect("Broj porudžbine 12345678901234567890")
    assert not result.detected
    assert result.masked == "Broj porudžbine 12345678901234567890"


def test_types_in_first_seen_order():
    result = _detector.detect("Zovi 0641234567 ili piši na ana@skola.rs, zovi opet 0641234567")
    assert result.types == [PIIKind.PHONE, PIIKind.EMAIL]
    assert result.masked == "Zovi [TELEFON] ili piši na [EMAIL ADRESA], zovi opet [TELEFON]"
    assert len(result.findings) == 3


def test_no_pii():
    result = _detector.detect("Sutra imamo kontrolni iz matematike")
    assert not result.detected
    assert result.types == []
    assert result.masked == "Sutra imamo kontrolni iz matematike"


def test_empty_text():
    result = _detector.detect("")
    assert not result.detected
    assert result.masked == ""


def test_bad_rule_fails_at_construction():
    with pytest.raises(ConfigurationError):
        PIIDetector(rules=[PIIRule(kind=PIIKind.EMAIL, pattern="([a-z", placeholder="[X]")])


# --- Warning banner ---


def test_warning_empty_for_no_types():
    assert generate_warning([]) == ""


def test_warning_names_each_type_in_order():
    banner = generate_warning(["email", "phone"])
    assert banner.startswith("⚠️")
    assert "email" in banner and "phone" in banner
    assert banner.index("email") < banner.index("phone")


def test_warning_accepts_kinds():
    banner = generate_warning([PIIKind.NATIONAL_ID, PIIKind.EMAIL])
    assert "(jmbg, email)" in banner
