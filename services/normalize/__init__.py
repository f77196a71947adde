"""
Lead Inbox Normalize Service
Scrubs raw form values before they are encoded into an issue

Components:
- fields.py: digit scrubbing, phone/birth/RRN canonicalization, gender inference
- redactor.py: RrnRedactor for masking full RRNs in free text
"""

from .fields import (
    KOREAN_RRN_PARITY,
    ParityGenderRule,
    RrnParts,
    digits_only,
    infer_gender,
    normalize_phone,
    split_rrn,
)
from .redactor import RrnRedactor, redact_rrn

__all__ = [
    "KOREAN_RRN_PARITY",
    "ParityGenderRule",
    "RrnParts",
    "digits_only",
    "infer_gender",
    "normalize_phone",
    "split_rrn",
    "RrnRedactor",
    "redact_rrn",
]
