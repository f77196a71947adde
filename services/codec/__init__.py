"""
Lead Inbox Codec
Converts between LeadRecord and the text of a GitHub issue

Components:
- encoder.py: LeadRecord / form submission -> issue title, body and labels
- decoder.py: issue -> LeadRecord, tolerant of every historical body format
"""

from .decoder import coerce_issue, decode_issue, parse_body
from .encoder import LeadValidationError, build_record, encode_record, encode_submission

__all__ = [
    "coerce_issue",
    "decode_issue",
    "parse_body",
    "build_record",
    "encode_record",
    "encode_submission",
    "LeadValidationError",
]
