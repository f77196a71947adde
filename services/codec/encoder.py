"""
Lead Encoder
Turns a lead into the title, body and labels of a GitHub issue
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from services.normalize.fields import (
    infer_gender,
    normalize_birth,
    normalize_phone,
    normalize_site,
    parse_consultation_type,
    split_rrn,
)
from services.normalize.redactor import RrnRedactor
from shared.schemas.lead import (
    GENDER_LABELS,
    TYPE_TITLE_LABELS,
    ConsultationType,
    EncodedIssue,
    LeadRecord,
    LeadSubmission,
)

logger = structlog.get_logger()

NAME_PLACEHOLDER = "이름 미입력"
GENDER_PLACEHOLDER = "성별 미선택"

DIAGNOSTIC_FIELDS = ("userAgent", "ip", "host", "referer")
DIAGNOSTIC_MAX_CHARS = 300


class LeadValidationError(ValueError):
    """Submission cannot be encoded (rejected before any GitHub call)"""


def _parse_requested_at(value: Optional[str]) -> datetime:
    if value:
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
        except ValueError:
            logger.debug("Ignoring unparseable requestedAt", value=value[:40])
    return datetime.now(timezone.utc)


def build_record(
    submission: LeadSubmission,
    site: str = "",
    default_site: str = "unknown",
) -> LeadRecord:
    """
    Normalize a raw form submission into a LeadRecord.

    The RRN back segment is reduced to its parity digit here and does not
    survive past this function.

    Raises:
        LeadValidationError: unsupported consultation type or missing phone
    """
    ctype = parse_consultation_type(submission.type)
    if ctype is None:
        raise LeadValidationError(
            f"Unsupported consultation type: {submission.type!r} (expected 'phone' or 'online')"
        )

    phone_digits = normalize_phone(submission.phone)
    if not phone_digits:
        raise LeadValidationError("Missing required field: phone")

    if ctype is ConsultationType.ONLINE:
        rrn = split_rrn(submission.rrn_front or submission.birth, submission.rrn_back)
        birth_or_rrn = rrn.display
        parity = rrn.parity_digit
    else:
        birth_or_rrn = normalize_birth(submission.birth or submission.rrn_front)
        parity = None

    return LeadRecord(
        site=normalize_site(site) or normalize_site(submission.site) or default_site,
        consultation_type=ctype,
        name=(submission.name or "").strip(),
        phone_digits=phone_digits,
        birth_or_rrn=birth_or_rrn,
        gender=infer_gender(submission.gender, parity),
        requested_at=_parse_requested_at(submission.requested_at),
    )


def encode_title(record: LeadRecord) -> str:
    type_label = TYPE_TITLE_LABELS.get(record.consultation_type, "기타")
    gender_label = GENDER_LABELS.get(record.gender) or GENDER_PLACEHOLDER
    name = record.name or NAME_PLACEHOLDER
    return f"[{type_label}] {name} / {gender_label} / {record.birth_or_rrn}"


def encode_payload(
    record: LeadRecord,
    diagnostics: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """JSON object stored in the issue body"""
    ctype = record.consultation_type.value if record.consultation_type else ""
    payload: dict[str, Any] = {
        "site": record.site,
        "type": ctype,
        "name": record.name,
        "phone": record.phone_digits,
        "gender": record.gender.value,
    }

    if record.consultation_type is ConsultationType.ONLINE:
        front, _, back = record.birth_or_rrn.partition("-")
        payload["rrnFront"] = front
        payload["rrnBackMasked"] = back
    else:
        payload["birth"] = record.birth_or_rrn

    if record.requested_at:
        payload["requestedAt"] = record.requested_at.astimezone(timezone.utc).isoformat()

    for key in DIAGNOSTIC_FIELDS:
        value = (diagnostics or {}).get(key)
        if value:
            payload[key] = str(value)[:DIAGNOSTIC_MAX_CHARS]

    return payload


def encode_record(
    record: LeadRecord,
    diagnostics: Optional[dict[str, Any]] = None,
    redactor: Optional[RrnRedactor] = None,
) -> EncodedIssue:
    """
    Encode a LeadRecord into an issue.

    The body is a fenced ```json block; labels carry type and site so the
    listing can be filtered on GitHub's side.
    """
    redactor = redactor or RrnRedactor()
    payload = encode_payload(record, diagnostics)
    body = "```json\n" + json.dumps(payload, ensure_ascii=False, indent=2) + "\n```"
    title = encode_title(record)

    # Last line of defence: nothing resembling a full RRN is written out
    title, title_stats = redactor.redact_with_stats(title)
    body, body_stats = redactor.redact_with_stats(body)
    if title_stats or body_stats:
        logger.warning("Masked RRN-like values in encoded issue", title=title_stats, body=body_stats)

    ctype = record.consultation_type.value if record.consultation_type else "unknown"
    labels = [f"type:{ctype}", f"site:{record.site}"]
    return EncodedIssue(title=title, body=body, labels=labels)


def encode_submission(
    submission: LeadSubmission,
    site: str = "",
    diagnostics: Optional[dict[str, Any]] = None,
) -> EncodedIssue:
    """Convenience function: normalize a form submission and encode it"""
    return encode_record(build_record(submission, site), diagnostics)
