import csv
import io
from datetime import date, datetime, timezone

from services.codec.decoder import decode_issue
from services.codec.encoder import encode_submission
from services.export.formatter import EXPORT_COLUMNS, export_filename, to_csv, to_json
from services.export.mapper import (
    excel_literal,
    filter_by_date,
    filter_rows,
    format_timestamp,
    parse_day,
    rows_from_issues,
    to_row,
)
from shared.schemas.lead import (
    ConsultationType,
    ExportRow,
    Gender,
    GitHubIssue,
    LeadRecord,
    LeadSubmission,
)


def _parse_csv(text: str) -> list[list[str]]:
    assert text.startswith("\ufeff")
    return list(csv.reader(io.StringIO(text[1:], newline="")))


def _stored_issue(form: dict, number: int = 1) -> GitHubIssue:
    encoded = encode_submission(LeadSubmission.model_validate(form))
    return GitHubIssue(
        number=number,
        html_url=f"https://github.com/acme/leads/issues/{number}",
        created_at="2024-05-01T03:00:00Z",
        title=encoded.title,
        body=encoded.body,
        labels=encoded.labels,
    )


def test_format_timestamp_uses_kst() -> None:
    assert format_timestamp(datetime(2024, 5, 1, 15, 30, tzinfo=timezone.utc)) == "2024-05-02 00:30:00"
    assert format_timestamp(datetime(2024, 5, 1, 3, 0)) == "2024-05-01 12:00:00"
    assert format_timestamp(None) == ""


def test_excel_literal() -> None:
    assert excel_literal("01012345678") == '="01012345678"'
    assert excel_literal("") == ""


def test_to_row_falls_back_to_issue_metadata() -> None:
    issue = GitHubIssue(
        number=9,
        html_url="https://github.com/acme/leads/issues/9",
        created_at="2024-05-01T03:00:00Z",
        labels=["site:eyes"],
    )
    row = to_row(issue, LeadRecord(), default_site="fallback")

    assert row.site == "eyes"
    assert row.requested_at == "2024-05-01 12:00:00"
    assert row.request_type == ""
    assert row.gender == ""
    assert row.phone == ""
    assert row.issue_number == 9


def test_to_row_uses_default_site() -> None:
    row = to_row(GitHubIssue(), LeadRecord(), default_site="fallback")
    assert row.site == "fallback"
    assert row.requested_at == ""


def test_to_row_prefers_decoded_values() -> None:
    record = LeadRecord(
        site="teeth",
        consultation_type=ConsultationType.ONLINE,
        name="김영희",
        phone_digits="01098765432",
        birth_or_rrn="950505-2******",
        gender=Gender.FEMALE,
        requested_at=datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc),
    )
    issue = GitHubIssue(created_at="2024-05-01T03:00:00Z", labels=["site:eyes"])
    row = to_row(issue, record)

    assert row.site == "teeth"
    assert row.requested_at == "2024-01-01 09:00:00"
    assert row.request_type == "온라인분석"
    assert row.gender == "여"
    assert row.phone == '="01098765432"'


def test_phone_lead_end_to_end(phone_form) -> None:
    issue = _stored_issue(phone_form)

    assert "전화" in issue.title
    assert "홍길동" in issue.title
    assert "남" in issue.title
    assert "900101" in issue.title

    row = to_row(issue, decode_issue(issue))
    assert row.request_type == "전화상담"
    assert row.birth_or_rrn == "900101"
    assert row.gender == "남"
    assert row.phone == '="01012345678"'
    assert row.site == "teeth"


def test_online_lead_end_to_end(online_form) -> None:
    issue = _stored_issue(online_form)
    rows = rows_from_issues([issue])
    exported_csv = to_csv(rows)
    exported_json = str(to_json(rows))

    assert rows[0].birth_or_rrn == "900101-1******"
    assert rows[0].request_type == "온라인분석"
    for text in (issue.title, issue.body, exported_csv, exported_json):
        assert "1234567" not in text


def test_filter_rows_is_case_insensitive_exact_match() -> None:
    rows = [
        ExportRow(site="teeth", consultation_type=ConsultationType.PHONE),
        ExportRow(site="teeth", consultation_type=ConsultationType.ONLINE),
        ExportRow(site="teeth-kids", consultation_type=ConsultationType.PHONE),
        ExportRow(site="eyes", consultation_type=None),
    ]

    assert len(filter_rows(rows, site="TEETH")) == 2
    assert len(filter_rows(rows, consultation_type="phone")) == 2
    assert len(filter_rows(rows, site="teeth", consultation_type="온라인")) == 1
    assert filter_rows(rows, consultation_type="phonebook") == []
    assert len(filter_rows(rows)) == 4


def test_filter_by_date_is_inclusive() -> None:
    issues = [
        GitHubIssue(number=1, created_at="2024-04-30T23:59:59Z"),
        GitHubIssue(number=2, created_at="2024-05-01T00:00:00Z"),
        GitHubIssue(number=3, created_at="2024-05-02T23:59:59Z"),
        GitHubIssue(number=4, created_at="2024-05-03T00:00:00Z"),
        GitHubIssue(number=5),
    ]
    kept = filter_by_date(issues, date(2024, 5, 1), date(2024, 5, 2))
    assert [issue.number for issue in kept] == [2, 3]
    assert len(filter_by_date(issues)) == 5


def test_parse_day() -> None:
    assert parse_day("2024-05-01") == date(2024, 5, 1)
    assert parse_day("05/01/2024") is None
    assert parse_day("") is None


def test_csv_header_bom_and_crlf() -> None:
    text = to_csv([ExportRow(site="teeth", name="홍길동", phone='="01012345678"')])

    assert text.startswith("\ufeffsite,requested_at,request_type,name,birth_or_rrn,gender,phone\r\n")
    rows = _parse_csv(text)
    assert rows[0] == list(EXPORT_COLUMNS)
    assert rows[1][3] == "홍길동"
    assert rows[1][6] == '="01012345678"'


def test_csv_quotes_commas_quotes_and_newlines() -> None:
    tricky = 'O\'Brien, "Tom"'
    text = to_csv([ExportRow(name=tricky, site="line\nbreak")])

    assert '"O\'Brien, ""Tom"""' in text
    rows = _parse_csv(text)
    assert rows[1][3] == tricky
    assert rows[1][0] == "line\nbreak"


def test_to_json_envelope() -> None:
    rows = [ExportRow(site="teeth", consultation_type=ConsultationType.PHONE, issue_number=1)]
    payload = to_json(rows)

    assert payload["ok"] is True
    assert payload["count"] == 1
    assert payload["items"][0]["site"] == "teeth"
    assert "consultation_type" not in payload["items"][0]
    assert to_json([]) == {"ok": True, "count": 0, "items": []}


def test_export_filename() -> None:
    now = datetime(2024, 5, 1, 3, 4, 5, tzinfo=timezone.utc)
    assert export_filename("csv", now) == "leads_2024-05-01-03-04-05.csv"
