"""
Lead Inbox Export
Turns decoded leads into the rows admin tooling downloads

Components:
- mapper.py: issue + LeadRecord -> ExportRow, site/type/date filters
- formatter.py: ExportRow list -> CSV text or JSON envelope
"""

from .formatter import EXPORT_COLUMNS, export_filename, to_csv, to_json
from .mapper import filter_by_date, filter_rows, parse_day, rows_from_issues, to_row

__all__ = [
    "EXPORT_COLUMNS",
    "export_filename",
    "to_csv",
    "to_json",
    "filter_by_date",
    "filter_rows",
    "parse_day",
    "rows_from_issues",
    "to_row",
]
