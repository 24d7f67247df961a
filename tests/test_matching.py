from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from matching import ALERT_HEADER, check_duplicates, find_matches, format_alert_line
from models import MatchCandidate, Record

_POOL = [
    Record(company_name="Acme Inc.", full_name="John Smith", staff_name="Sato", row_index=1),
    Record(company_name="ACME", full_name="Jane Doe", staff_name="Ito", row_index=2),
    Record(company_name="Globex", full_name="jane doe", row_index=3),
    Record(company_name="Initech", full_name="Jane Doerty", row_index=4),
    Record(company_name="", full_name="Someone", row_index=5),
    Record(company_name="Ac", full_name="Short Co", row_index=6),
]


def test_company_match_is_bidirectional_containment_ignoring_case() -> None:
    matches = find_matches("Acme", "", _POOL)
    assert [m.row_index for m in matches] == [1, 2, 6]


def test_person_match_is_exact_ignoring_case() -> None:
    matches = find_matches("", "Jane Doe", _POOL)
    assert [m.row_index for m in matches] == [2, 3]


def test_blank_query_matches_nothing() -> None:
    assert find_matches("  ", "", _POOL) == []


def test_either_field_matching_is_enough() -> None:
    matches = find_matches("Globex", "John Smith", _POOL)
    assert [m.row_index for m in matches] == [1, 3]


def test_alert_line_formats_owner_and_date_in_display_timezone() -> None:
    match = MatchCandidate(
        company_name="Acme Inc.",
        full_name="Jane Doe",
        staff_name="Sato",
        last_contact=datetime(2026, 3, 31, 20, 0, tzinfo=UTC),
    )
    line = format_alert_line(match, ZoneInfo("Asia/Tokyo"))
    assert line == "Acme Inc. の Jane Doe さんは Sato が 2026/04/01 に接触済みです"


def test_alert_line_unknown_owner_and_date() -> None:
    line = format_alert_line(MatchCandidate(company_name="Acme", full_name="Jane"))
    assert line == "Acme の Jane さんは 不明 が 日付不明 に接触済みです"


def test_check_duplicates_builds_multi_line_message() -> None:
    result = check_duplicates("Acme", "", _POOL)
    assert result.found is True
    lines = result.message.splitlines()
    assert lines[0] == ALERT_HEADER
    assert len(lines) == 1 + len(result.matches)


def test_check_duplicates_empty_pool() -> None:
    result = check_duplicates("Acme Inc.", "Jane Doe", [])
    assert result.found is False
    assert result.message == ""
    assert result.matches == ()


def test_alert_line_with_unshowable_date() -> None:
    match = MatchCandidate(company_name="Acme", full_name="Jane", last_contact="9999-12-31T23:00:00+00:00")
    assert format_alert_line(match, ZoneInfo("Asia/Tokyo")).endswith("不明 が 日付不明 に接触済みです")
