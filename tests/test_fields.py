import pytest

from services.normalize.fields import (
    KOREAN_RRN_PARITY,
    ParityGenderRule,
    RrnParts,
    digits_only,
    infer_gender,
    normalize_birth,
    normalize_phone,
    parse_consultation_type,
    split_rrn,
)
from shared.schemas.lead import ConsultationType, Gender


def test_digits_only_strips_separators() -> None:
    assert digits_only(" 010-1234 5678 ") == "01012345678"
    assert digits_only("") == ""
    assert digits_only(None) == ""
    assert digits_only("abc") == ""


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12345678", "01012345678"),
        ("1234-5678", "01012345678"),
        ("010-1234-5678", "01012345678"),
        ("010 1234 5678", "01012345678"),
        ("01012345678999", "01012345678"),
        ("9912345678", "01012345678"),
        ("01234567", "01001234567"),
        ("0212345678", "0212345678"),
        ("1234", "1234"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_phone(raw, expected) -> None:
    assert normalize_phone(raw) == expected


def test_normalize_birth_truncates() -> None:
    assert normalize_birth("90-01-01") == "900101"
    assert normalize_birth("9001011234567") == "900101"


def test_split_rrn_masks_back_segment() -> None:
    parts = split_rrn("900101", "1234567")
    assert parts == RrnParts("900101", "1******", "1")
    assert parts.display == "900101-1******"


def test_split_rrn_without_back() -> None:
    parts = split_rrn("900101", "")
    assert parts.back_masked_display == "*******"
    assert parts.parity_digit is None
    assert parts.display == "900101-*******"


def test_split_rrn_truncates_overlong_input() -> None:
    parts = split_rrn(" 9001019 ", "2-345-67899")
    assert parts.front6 == "900101"
    assert parts.back_masked_display == "2******"


def test_split_rrn_empty() -> None:
    assert split_rrn("", "").display == ""


@pytest.mark.parametrize(
    "digit, expected",
    [
        ("1", Gender.MALE),
        ("2", Gender.FEMALE),
        ("3", Gender.MALE),
        ("4", Gender.FEMALE),
        ("7", Gender.MALE),
        ("8", Gender.FEMALE),
        ("9", Gender.UNKNOWN),
        ("0", Gender.UNKNOWN),
        (None, Gender.UNKNOWN),
    ],
)
def test_parity_rule(digit, expected) -> None:
    assert infer_gender(None, digit) is expected


@pytest.mark.parametrize(
    "explicit, expected",
    [
        ("남", Gender.MALE),
        ("남성", Gender.MALE),
        ("Male", Gender.MALE),
        ("M", Gender.MALE),
        ("여", Gender.FEMALE),
        ("여성", Gender.FEMALE),
        ("female", Gender.FEMALE),
        ("FEMALE", Gender.FEMALE),
        ("f", Gender.FEMALE),
        ("unknown", Gender.UNKNOWN),
        ("", Gender.UNKNOWN),
    ],
)
def test_explicit_gender(explicit, expected) -> None:
    assert infer_gender(explicit, None) is expected


def test_explicit_female_beats_male_parity() -> None:
    assert infer_gender("여", "1") is Gender.FEMALE
    assert infer_gender("선택: 여", "3") is Gender.FEMALE


def test_parity_rule_is_swappable() -> None:
    reversed_rule = ParityGenderRule(male_digits="2468", female_digits="1357", name="test")
    assert infer_gender(None, "1", rule=reversed_rule) is Gender.FEMALE
    assert KOREAN_RRN_PARITY("1") is Gender.MALE


@pytest.mark.parametrize(
    "value, expected",
    [
        ("phone", ConsultationType.PHONE),
        ("PHONE", ConsultationType.PHONE),
        ("전화상담", ConsultationType.PHONE),
        ("online", ConsultationType.ONLINE),
        ("온라인분석", ConsultationType.ONLINE),
        (" 전화 상담 ", ConsultationType.PHONE),
        ("phonebook", None),
        ("online-ish", None),
        ("unknown", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_consultation_type(value, expected) -> None:
    assert parse_consultation_type(value) is expected
