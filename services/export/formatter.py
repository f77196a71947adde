"""
Export Formatter
Renders export rows as CSV (Excel friendly) or JSON
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence

from shared.schemas.lead import ExportResponse, ExportRow

EXPORT_COLUMNS = (
    "site",
    "requested_at",
    "request_type",
    "name",
    "birth_or_rrn",
    "gender",
    "phone",
)

# Excel needs the BOM to read UTF-8 (Korean names) correctly
BOM = "\ufeff"
LINE_END = "\r\n"
NEEDS_QUOTING = (",", '"', "\n", "\r")


def csv_escape(value: Any) -> str:
    text = "" if value is None else str(value)
    if any(ch in text for ch in NEEDS_QUOTING):
        return '"' + text.replace('"', '""') + '"'
    return text


def to_csv(
    rows: Iterable[ExportRow],
    header: Sequence[str] = EXPORT_COLUMNS,
) -> str:
    """
    Render rows as CSV text.

    Args:
        rows: Mapped export rows
        header: Column names, also used as the row attribute names

    Returns:
        BOM-prefixed CSV with CRLF line endings
    """
    lines = [",".join(csv_escape(column) for column in header)]
    for row in rows:
        lines.append(",".join(csv_escape(getattr(row, column, "")) for column in header))
    return BOM + LINE_END.join(lines) + LINE_END


def to_json(rows: Iterable[ExportRow]) -> dict[str, Any]:
    items = list(rows)
    return ExportResponse(count=len(items), items=items).model_dump(mode="json")


def export_filename(fmt: str, now: Optional[datetime] = None) -> str:
    """leads_2025-01-31-09-30-00.csv"""
    now = now or datetime.now(timezone.utc)
    return f"leads_{now.strftime('%Y-%m-%d-%H-%M-%S')}.{fmt}"
