"""Staleness classification and dashboard aggregation (pure, no external calls)."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Iterable

from models import Record, StalenessResult, Timestamp

LOGGER = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)
HISTOGRAM_MONTHS = 12
TOP_INDUSTRIES = 10

_DATE_FORMATS = (
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%Y-%m-%d",
)


def parse_timestamp(value: Timestamp) -> datetime | None:
    """Interpret a stored timestamp; naive values are UTC, garbage is None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        parsed = _parse_text(raw)
        if parsed is None:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    try:
        return parsed.astimezone(UTC)
    except (OverflowError, ValueError):
        return None


def _parse_text(raw: str) -> datetime | None:
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    return None


def elapsed_days(since: datetime, now: datetime) -> int:
    return (_as_aware(now) - since) // ONE_DAY


def classify(record: Record, threshold_days: int, now: datetime) -> StalenessResult:
    """Classify a record as active, dormant, or unknown (never contacted / bad date)."""
    last = parse_timestamp(record.last_contact)
    if last is None:
        return StalenessResult(status="unknown")

    days = elapsed_days(last, now)
    status = "dormant" if days >= threshold_days else "active"
    return StalenessResult(status=status, elapsed_days=days)


def select_dormant(
    records: Iterable[Record], threshold_days: int, now: datetime
) -> list[tuple[Record, int]]:
    """Eligibility predicate for revival runs: dormant records with their elapsed days."""
    dormant: list[tuple[Record, int]] = []
    for record in records:
        result = classify(record, threshold_days, now)
        if result.status == "dormant" and result.elapsed_days is not None:
            dormant.append((record, result.elapsed_days))
    return dormant


@dataclass(slots=True)
class DashboardStats:
    total: int = 0
    active: int = 0
    dormant: int = 0
    unknown: int = 0
    monthly: list[tuple[str, int]] = field(default_factory=list)
    industries: list[tuple[str, int]] = field(default_factory=list)
    staff_ranking: list[tuple[str, int]] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "active": self.active,
            "dormant": self.dormant,
            "unknown": self.unknown,
            "monthly": [{"month": month, "count": count} for month, count in self.monthly],
            "industries": [{"name": name, "count": count} for name, count in self.industries],
            "staff_ranking": [{"name": name, "count": count} for name, count in self.staff_ranking],
        }


def dashboard_stats(
    records: Iterable[Record],
    threshold_days: int,
    now: datetime,
    tz: tzinfo = UTC,
) -> DashboardStats:
    """Reduce all records to dashboard counts.

    A record with a malformed date is skipped for that bucket only; the pass
    never aborts.
    """
    stats = DashboardStats()
    monthly_counts: Counter[str] = Counter()
    industry_counts: Counter[str] = Counter()
    staff_counts: Counter[str] = Counter()

    for record in records:
        stats.total += 1

        status = classify(record, threshold_days, now).status
        if status == "dormant":
            stats.dormant += 1
        elif status == "active":
            stats.active += 1
        else:
            stats.unknown += 1

        month = format_local(record.registered_at, tz, "%Y-%m")
        if month is not None:
            monthly_counts[month] += 1
        elif record.registered_at:
            LOGGER.warning(
                "Skipping unparsable registered_at=%r for company=%s",
                record.registered_at,
                record.company_name,
            )

        if record.industry:
            industry_counts[record.industry] += 1
        if record.staff_name:
            staff_counts[record.staff_name] += 1

    stats.monthly = [(key, monthly_counts.get(key, 0)) for key in _recent_months(now, tz)]
    stats.industries = _ranked(industry_counts)[:TOP_INDUSTRIES]
    stats.staff_ranking = _ranked(staff_counts)
    return stats


def _ranked(counts: Counter[str]) -> list[tuple[str, int]]:
    # Ties keep first-seen order (Counter preserves insertion order, sort is stable).
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)


def format_local(value: Timestamp, tz: tzinfo, fmt: str) -> str | None:
    """Render a stored timestamp in the display timezone; None when it cannot be shown."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    try:
        return parsed.astimezone(tz).strftime(fmt)
    except (OverflowError, ValueError):
        return None


def _recent_months(now: datetime, tz: tzinfo) -> list[str]:
    local = _as_aware(now).astimezone(tz)
    year, month = local.year, local.month
    keys: list[str] = []
    for _ in range(HISTOGRAM_MONTHS):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def _as_aware(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value
