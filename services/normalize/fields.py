"""
Field Normalizer
Scrubs and canonicalizes the raw values a lead form captures
"""

import re
from typing import NamedTuple, Optional

from shared.schemas.lead import ConsultationType, Gender

NON_DIGIT = re.compile(r"\D+")

MOBILE_PREFIX = "010"
SUBSCRIBER_DIGITS = 8
NATIONAL_DIGITS = 11

RRN_FRONT_DIGITS = 6
RRN_BACK_DIGITS = 7
RRN_MASK = "*" * (RRN_BACK_DIGITS - 1)

# Female family is matched first: "female" contains "male"
FEMALE_PATTERN = re.compile(r"female|woman|여|^\s*f\s*$", re.I)
MALE_PATTERN = re.compile(r"male|\bman\b|남|^\s*m\s*$", re.I)

# Whole-value match: "phonebook" is not a consultation type
TYPE_PATTERNS = {
    ConsultationType.PHONE: re.compile(r"^\s*(?:phone|tel|call|전화(?:\s*상담)?)\s*$", re.I),
    ConsultationType.ONLINE: re.compile(r"^\s*(?:online|web|온라인(?:\s*(?:상담|분석))?)\s*$", re.I),
}


def digits_only(value: Optional[str]) -> str:
    """Strip every non-digit character"""
    if not value:
        return ""
    return NON_DIGIT.sub("", str(value))


def normalize_phone(raw: Optional[str]) -> str:
    """
    Normalize a phone number to national digits.

    A number that already carries the 010 prefix, or a 0-leading number of
    at least 10 digits (area code included), is kept as-is (up to 11
    digits). Anything else is treated as the subscriber number and gets the 010
    mobile prefix in front of its last 8 digits. Fragments shorter than a
    subscriber number are returned as digits, never rejected.
    """
    digits = digits_only(raw)
    if not digits:
        return ""
    if digits.startswith(MOBILE_PREFIX) or (digits.startswith("0") and len(digits) >= NATIONAL_DIGITS - 1):
        return digits[:NATIONAL_DIGITS]
    if len(digits) >= SUBSCRIBER_DIGITS:
        return MOBILE_PREFIX + digits[-SUBSCRIBER_DIGITS:]
    return digits


def normalize_birth(raw: Optional[str]) -> str:
    """YYMMDD birth date, truncated to 6 digits"""
    return digits_only(raw)[:RRN_FRONT_DIGITS]


class RrnParts(NamedTuple):
    """Resident registration number reduced to what may be stored"""
    front6: str
    back_masked_display: str
    parity_digit: Optional[str]

    @property
    def display(self) -> str:
        if not self.front6 and not self.parity_digit:
            return ""
        return f"{self.front6}-{self.back_masked_display}"


def split_rrn(front: Optional[str], back: Optional[str]) -> RrnParts:
    """
    Split an RRN into its front six digits and a masked back segment.

    Only the first back digit survives; the other six are replaced by
    a fixed mask and never returned.
    """
    front6 = digits_only(front)[:RRN_FRONT_DIGITS]
    back7 = digits_only(back)[:RRN_BACK_DIGITS]
    if back7:
        return RrnParts(front6, back7[0] + RRN_MASK, back7[0])
    return RrnParts(front6, "*" * RRN_BACK_DIGITS, None)


class ParityGenderRule:
    """
    Maps the first RRN back digit to a gender.

    The default instance encodes the Korean convention (odd digits for men,
    even digits for women, 1900s to 2000s births); other schemes can be
    plugged in by constructing a rule with different digit sets.
    """

    def __init__(self, male_digits: str, female_digits: str, name: str = "custom"):
        self.male_digits = frozenset(male_digits)
        self.female_digits = frozenset(female_digits)
        self.name = name

    def __call__(self, parity_digit: Optional[str]) -> Gender:
        if not parity_digit:
            return Gender.UNKNOWN
        if parity_digit in self.male_digits:
            return Gender.MALE
        if parity_digit in self.female_digits:
            return Gender.FEMALE
        return Gender.UNKNOWN

    def __repr__(self) -> str:
        return f"ParityGenderRule({self.name!r})"


KOREAN_RRN_PARITY = ParityGenderRule("1357", "2468", name="kr-rrn")


def parse_gender(explicit: Optional[str]) -> Gender:
    """Gender from free text (남/여, male/female, m/f)"""
    if not explicit:
        return Gender.UNKNOWN
    text = str(explicit)
    if FEMALE_PATTERN.search(text):
        return Gender.FEMALE
    if MALE_PATTERN.search(text):
        return Gender.MALE
    return Gender.UNKNOWN


def infer_gender(
    explicit: Optional[str],
    parity_digit: Optional[str] = None,
    rule: ParityGenderRule = KOREAN_RRN_PARITY,
) -> Gender:
    """Explicit text wins; otherwise fall back to the RRN parity rule"""
    gender = parse_gender(explicit)
    if gender is not Gender.UNKNOWN:
        return gender
    return rule(parity_digit)


def parse_consultation_type(value: Optional[str]) -> Optional[ConsultationType]:
    """phone/online in English or Korean, None when unrecognized"""
    if not value:
        return None
    text = str(value).strip()
    for ctype, pattern in TYPE_PATTERNS.items():
        if pattern.match(text):
            return ctype
    return None


def normalize_site(value: Optional[str]) -> str:
    """Site identifiers are lowercase, trimmed storefront subdomains"""
    if not value:
        return ""
    return str(value).strip().lower()
