from services.normalize.redactor import RrnRedactor, redact_rrn


def test_masks_hyphenated_rrn() -> None:
    assert redact_rrn("주민번호 900101-1234567 입니다") == "주민번호 900101-1****** 입니다"


def test_masks_space_separated_and_bare_rrn() -> None:
    assert redact_rrn("900101 2234567") == "900101-2******"
    assert redact_rrn("9001012234567") == "900101-2******"


def test_leaves_phone_numbers_and_masked_values_alone() -> None:
    text = "phone 01012345678, rrn 900101-1******"
    assert redact_rrn(text) == text


def test_non_strict_ignores_bare_digit_runs() -> None:
    assert RrnRedactor(strict=False).redact("9001011234567") == "9001011234567"


def test_redact_with_stats() -> None:
    redacted, stats = RrnRedactor().redact_with_stats("a 900101-1234567 b 8001012345678")
    assert "1234567" not in redacted
    assert "2345678" not in redacted
    assert stats == {"RRN": 1, "RRN_BARE": 1}


def test_empty_text() -> None:
    assert redact_rrn("") == ""
    assert RrnRedactor().redact_with_stats("") == ("", {})
