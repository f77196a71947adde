"""
Lead Decoder
Reads a GitHub issue back into a LeadRecord, whatever encoder version wrote it

Issues are append-only, so the listing sees every historical body format at
once. Each format is handled by one strategy; strategies are tried in order
and the first that yields fields wins:

1. fenced ```json block, parsed from its first `{` to its last `}`
2. bare JSON object anywhere in the body
3. `key: value` lines with English or Korean keys

Labels and the title then fill whatever the body did not provide.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

import structlog
from pydantic import ValidationError

from services.normalize.fields import (
    KOREAN_RRN_PARITY,
    ParityGenderRule,
    digits_only,
    infer_gender,
    normalize_birth,
    normalize_phone,
    normalize_site,
    parse_consultation_type,
    parse_gender,
    split_rrn,
)
from shared.schemas.lead import (
    ConsultationType,
    Gender,
    GitHubIssue,
    LeadRecord,
)

logger = structlog.get_logger()

# Info string capped at 20 chars; body runs to the next fence
FENCE_PATTERN = re.compile(r"```[^\n`]{0,20}\n?(.*?)```", re.S)

# "Key: value" with ASCII or full-width colon; keys are short
KEY_VALUE_PATTERN = re.compile(r"^([^:：\n]{1,30}?)\s*[:：]\s*(.*)$")

TITLE_TYPE_PATTERN = re.compile(r"^\s*\[([^\]]{1,20})\]")
TITLE_NAME_PATTERN = re.compile(r"^\s*\[[^\]]{0,20}\]\s*([^/(\n]{1,50})")
TITLE_GENDER_PATTERN = re.compile(r"(?:^|[\s/(,])(남|여)(?:성|자)?(?=$|[\s/),])")
TITLE_RRN_PATTERN = re.compile(r"(\d{6})-(\d)\*{6}")
TITLE_BIRTH_PATTERN = re.compile(r"/\s*(\d{6})\s*$")

# "900101-1******" stored in a single birth field; "90-01-01" is a plain date
BIRTH_RRN_PATTERN = re.compile(r"^\s*(\d{6})\s*-\s*(\d)?(?:\*+|\d*)\s*$")

NAME_PLACEHOLDERS = frozenset({"이름 미입력", "무기명", "미입력", "unknown"})

# Canonical field -> accepted keys (lowercased, spaces removed)
KEY_ALIASES = {
    "name": ("name", "이름", "성명", "고객명"),
    "phone": ("phone", "phonenumber", "tel", "전화", "전화번호", "연락처", "휴대폰", "휴대폰번호"),
    "birth": ("birth", "birthdate", "생년월일", "주민번호", "주민등록번호"),
    "rrn_front": ("rrnfront", "birthdatefirst", "주민번호앞자리"),
    "rrn_back": ("rrnbackmasked", "rrnback", "birthdatesecond", "주민번호뒷자리"),
    "gender": ("gender", "sex", "성별"),
    "type": ("type", "유형", "타입", "상담유형"),
    "site": ("site", "사이트"),
    "requested_at": ("requestedat", "time", "신청일시", "접수시간"),
}

# Markdown decoration and separators ignored when matching keys
KEY_NOISE = re.compile(r"[\s*_`#>-]+")

ALIAS_LOOKUP = {
    alias: field
    for field, aliases in KEY_ALIASES.items()
    for alias in aliases
}


def _canonical_key(key: str) -> Optional[str]:
    cleaned = KEY_NOISE.sub("", key).lower()
    return ALIAS_LOOKUP.get(cleaned)


def _canonical_fields(raw: dict[str, Any]) -> dict[str, str]:
    """Map payload keys onto canonical field names; first occurrence wins"""
    fields: dict[str, str] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or value is None or isinstance(value, (dict, list)):
            continue
        field = _canonical_key(key)
        if field and field not in fields:
            fields[field] = str(value).strip()
    return fields


def _json_object(text: str) -> Optional[dict]:
    """Parse the span from the first `{` to the last `}` as a JSON object"""
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        parsed = json.loads(text[start:end + 1])
    except (json.JSONDecodeError, RecursionError):
        return None
    return parsed if isinstance(parsed, dict) else None


def from_fenced_json(body: str) -> Optional[dict[str, str]]:
    for match in FENCE_PATTERN.finditer(body):
        parsed = _json_object(match.group(1))
        if parsed is not None:
            return _canonical_fields(parsed)
    return None


def from_raw_json(body: str) -> Optional[dict[str, str]]:
    parsed = _json_object(body)
    if parsed is None:
        return None
    return _canonical_fields(parsed)


def from_key_values(body: str) -> Optional[dict[str, str]]:
    pairs: dict[str, str] = {}
    for raw_line in body.splitlines():
        line = raw_line.strip().lstrip("-*•> ").strip()
        match = KEY_VALUE_PATTERN.match(line)
        if not match:
            continue
        field = _canonical_key(match.group(1))
        if field and field not in pairs:
            pairs[field] = match.group(2).strip().strip("*`").strip()
    return pairs or None


DECODE_STRATEGIES: tuple[Callable[[str], Optional[dict[str, str]]], ...] = (
    from_fenced_json,
    from_raw_json,
    from_key_values,
)


def parse_body(body: Optional[str]) -> dict[str, str]:
    """Run the strategies in order; an empty dict when nothing matched"""
    if not body:
        return {}
    for strategy in DECODE_STRATEGIES:
        try:
            fields = strategy(body)
        except Exception as e:
            logger.debug("Decode strategy failed", strategy=strategy.__name__, error=str(e))
            continue
        if fields:
            return fields
    return {}


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _label_values(issue: GitHubIssue) -> dict[str, str]:
    values: dict[str, str] = {}
    for name in issue.label_names:
        prefix, sep, value = name.partition(":")
        prefix = prefix.strip().lower()
        if sep and prefix in ("site", "type") and prefix not in values:
            values[prefix] = value.strip()
    return values


def _identity(
    fields: dict[str, str],
    ctype: Optional[ConsultationType],
) -> tuple[str, Optional[str]]:
    """Birth date or masked RRN display, plus the RRN parity digit if any"""
    front = fields.get("rrn_front", "")
    back = fields.get("rrn_back", "")
    birth = fields.get("birth", "")

    # Older bodies store "Birth: 900101-1******" in a single field
    if birth and not front:
        match = BIRTH_RRN_PATTERN.match(birth)
        if match:
            front = match.group(1)
            back = back or match.group(2) or ""
        else:
            front = birth

    parity = digits_only(back)[:1] or None
    if not front and not parity:
        return "", None

    if ctype is ConsultationType.ONLINE or (ctype is None and parity):
        return split_rrn(front, parity).display, parity
    return normalize_birth(front), parity


def _title_name(title: str) -> str:
    match = TITLE_NAME_PATTERN.match(title)
    if not match:
        return ""
    name = match.group(1).strip()
    return "" if name in NAME_PLACEHOLDERS else name


def _assemble(
    issue: GitHubIssue,
    rule: ParityGenderRule,
) -> LeadRecord:
    fields = parse_body(issue.body)
    labels = _label_values(issue)
    title = issue.title or ""

    # Payload wins over labels; labels only fill what the body lacks
    site = normalize_site(fields.get("site")) or normalize_site(labels.get("site"))
    ctype = parse_consultation_type(fields.get("type")) or parse_consultation_type(labels.get("type"))
    if ctype is None:
        match = TITLE_TYPE_PATTERN.match(title)
        if match:
            ctype = parse_consultation_type(match.group(1))

    name = fields.get("name", "").strip()
    if name in NAME_PLACEHOLDERS:
        name = ""
    name = name or _title_name(title)

    birth_or_rrn, parity = _identity(fields, ctype)
    gender = infer_gender(fields.get("gender"), parity, rule)

    if gender is Gender.UNKNOWN:
        match = TITLE_GENDER_PATTERN.search(title)
        if match:
            gender = parse_gender(match.group(1))

    if not birth_or_rrn or (ctype is ConsultationType.ONLINE and parity is None):
        match = TITLE_RRN_PATTERN.search(title)
        if match:
            front6, parity = match.group(1), match.group(2)
            birth_or_rrn = split_rrn(front6, parity).display
            if gender is Gender.UNKNOWN:
                gender = rule(parity)
        elif not birth_or_rrn and ctype is not ConsultationType.ONLINE:
            match = TITLE_BIRTH_PATTERN.search(title)
            if match:
                birth_or_rrn = match.group(1)

    return LeadRecord(
        site=site,
        consultation_type=ctype,
        name=name,
        phone_digits=normalize_phone(fields.get("phone")),
        birth_or_rrn=birth_or_rrn,
        gender=gender,
        requested_at=_parse_timestamp(fields.get("requested_at")),
        issue_ref=issue.ref,
    )


def coerce_issue(raw: Union[GitHubIssue, dict, Any]) -> GitHubIssue:
    """Best-effort GitHubIssue from a raw API dict; never raises"""
    if isinstance(raw, GitHubIssue):
        return raw
    if not isinstance(raw, dict):
        return GitHubIssue()
    try:
        return GitHubIssue.model_validate(raw)
    except ValidationError as e:
        logger.debug("Issue failed validation, keeping valid fields", error=str(e))

    # Every field has a default, so each one can be checked on its own
    kept = {}
    for field in GitHubIssue.model_fields:
        if field not in raw:
            continue
        try:
            GitHubIssue.model_validate({field: raw[field]})
        except ValidationError:
            continue
        kept[field] = raw[field]
    return GitHubIssue.model_validate(kept)


def decode_issue(
    issue: Union[GitHubIssue, dict],
    rule: ParityGenderRule = KOREAN_RRN_PARITY,
) -> LeadRecord:
    """
    Decode an issue into a LeadRecord.

    Never raises: a listing must not fail because one issue is malformed.
    Fields that cannot be recovered are left empty / unknown.
    """
    coerced = coerce_issue(issue)
    try:
        return _assemble(coerced, rule)
    except Exception as e:
        logger.warning("Failed to decode issue", number=coerced.number, error=str(e))
        return LeadRecord(issue_ref=coerced.ref)
