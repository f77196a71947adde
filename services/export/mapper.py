"""
Record Mapper
Joins decoded lead records with issue metadata into export rows
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional, Union

import structlog

from services.codec.decoder import coerce_issue, decode_issue
from services.normalize.fields import normalize_site, parse_consultation_type
from shared.schemas.lead import (
    GENDER_LABELS,
    TYPE_EXPORT_LABELS,
    ExportRow,
    GitHubIssue,
    LeadRecord,
)

logger = structlog.get_logger()

# Admin staff read timestamps in Korea Standard Time
DISPLAY_TZ = timezone(timedelta(hours=9), name="KST")
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_SITE = "unknown"


def excel_literal(value: str) -> str:
    """Wrap a digit string as ="..." so spreadsheets keep leading zeros"""
    if not value:
        return ""
    return '="' + value.replace('"', "") + '"'


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(DISPLAY_TZ).strftime(DISPLAY_FORMAT)


def _label_site(issue: GitHubIssue) -> str:
    for name in issue.label_names:
        prefix, _, value = name.partition(":")
        if prefix.strip().lower() == "site":
            return normalize_site(value)
    return ""


def to_row(
    issue: GitHubIssue,
    record: LeadRecord,
    default_site: str = DEFAULT_SITE,
) -> ExportRow:
    """
    Build the export row for one issue.

    site falls back decoded -> label -> default; requested_at falls back to
    the issue's own creation time.
    """
    site = record.site or _label_site(issue) or default_site
    requested_at = record.requested_at or issue.created_at

    return ExportRow(
        site=site,
        requested_at=format_timestamp(requested_at),
        request_type=TYPE_EXPORT_LABELS.get(record.consultation_type, ""),
        name=record.name,
        birth_or_rrn=record.birth_or_rrn,
        gender=GENDER_LABELS.get(record.gender, ""),
        phone=excel_literal(record.phone_digits),
        issue_number=issue.number,
        issue_url=issue.html_url,
        consultation_type=record.consultation_type,
    )


def filter_rows(
    rows: Iterable[ExportRow],
    site: Optional[str] = None,
    consultation_type: Optional[str] = None,
) -> list[ExportRow]:
    """
    Exact-match filter on site and consultation type.

    Matching is case-insensitive: sites are stored lowercase and the type
    accepts phone/online in English or Korean.
    """
    wanted_site = normalize_site(site)
    wanted_type = parse_consultation_type(consultation_type) if consultation_type else None

    result = []
    for row in rows:
        if wanted_site and row.site.lower() != wanted_site:
            continue
        if consultation_type and (wanted_type is None or row.consultation_type != wanted_type):
            continue
        result.append(row)
    return result


def parse_day(value: Optional[str]) -> Optional[date]:
    """YYYY-MM-DD query value; None when blank or malformed"""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        logger.debug("Ignoring malformed date filter", value=value[:20])
        return None


def filter_by_date(
    issues: Iterable[GitHubIssue],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> list[GitHubIssue]:
    """Keep issues created within [date_from 00:00, date_to 23:59:59.999] UTC"""
    start = datetime.combine(date_from, time.min, tzinfo=timezone.utc) if date_from else None
    end = datetime.combine(date_to, time.max, tzinfo=timezone.utc) if date_to else None

    result = []
    for issue in issues:
        created = issue.created_at
        if created is not None and created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        if start and (created is None or created < start):
            continue
        if end and (created is None or created > end):
            continue
        result.append(issue)
    return result


def rows_from_issues(
    issues: Iterable[Union[GitHubIssue, dict]],
    default_site: str = DEFAULT_SITE,
) -> list[ExportRow]:
    """Decode every issue and map it to an export row; malformed issues still yield a row"""
    rows = []
    for raw in issues:
        issue = coerce_issue(raw)
        rows.append(to_row(issue, decode_issue(issue), default_site))
    return rows
