"""Duplicate detection against existing contact records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, tzinfo
from typing import Iterable

from models import MatchCandidate, Record
from staleness import format_local

ALERT_HEADER = "【重複検知】"
UNKNOWN_OWNER = "不明"
UNKNOWN_DATE = "日付不明"


@dataclass(frozen=True, slots=True)
class DuplicateCheck:
    found: bool = False
    message: str = ""
    matches: tuple[MatchCandidate, ...] = field(default_factory=tuple)


def find_matches(company_name: str, person_name: str, pool: Iterable[Record]) -> list[MatchCandidate]:
    """Return pool records matching the identity pair, in pool order.

    Company names match by containment in either direction so that an
    abbreviated name finds the full legal name and vice versa. Person names
    must be equal; partial matches on short names are too noisy.
    """
    company_query = _normalize(company_name)
    person_query = _normalize(person_name)
    if not company_query and not person_query:
        return []

    matches: list[MatchCandidate] = []
    for record in pool:
        company = _normalize(record.company_name)
        person = _normalize(record.full_name)

        company_hit = bool(
            company_query and company and (company_query in company or company in company_query)
        )
        person_hit = bool(person_query and person and person == person_query)
        if company_hit or person_hit:
            matches.append(
                MatchCandidate(
                    company_name=record.company_name,
                    full_name=record.full_name,
                    staff_name=record.staff_name,
                    last_contact=record.last_contact,
                    row_index=record.row_index,
                )
            )
    return matches


def format_alert_line(match: MatchCandidate, tz: tzinfo = UTC) -> str:
    owner = match.staff_name.strip() or UNKNOWN_OWNER
    date = format_local(match.last_contact, tz, "%Y/%m/%d") or UNKNOWN_DATE
    return f"{match.company_name} の {match.full_name} さんは {owner} が {date} に接触済みです"


def format_duplicate_alert(matches: Iterable[MatchCandidate], tz: tzinfo = UTC) -> str:
    lines = [format_alert_line(match, tz) for match in matches]
    if not lines:
        return ""
    return "\n".join([ALERT_HEADER, *lines])


def check_duplicates(
    company_name: str, person_name: str, pool: Iterable[Record], tz: tzinfo = UTC
) -> DuplicateCheck:
    matches = find_matches(company_name, person_name, pool)
    if not matches:
        return DuplicateCheck()
    return DuplicateCheck(
        found=True,
        message=format_duplicate_alert(matches, tz),
        matches=tuple(matches),
    )


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()
