"""Scheduled batch jobs: dormant revival, related-entity backfill, contact-date sync."""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Any, Callable
from zoneinfo import ZoneInfo

from api_client import GeminiClient
from batch import run_batch
from config import Settings
from industry_analysis import ANALYSIS_FAILED, UNKNOWN_INDUSTRY, refresh_news
from models import BatchRun, Record
from notifications import Notifier
from outreach import generate_revival_email
from related_entities import NO_CANDIDATES, find_related
from staleness import parse_timestamp, select_dormant
from web_search import WebSearchClient

LOGGER = logging.getLogger(__name__)

DORMANT_TASK_NAME = "休眠顧客チェック"
RELATED_TASK_NAME = "類似企業一括分析"

ContactLookup = Callable[[str], datetime | None]


def run_dormant_revival(
    store: Any,
    client: GeminiClient,
    search: WebSearchClient | None,
    notifier: Notifier,
    settings: Settings,
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchRun:
    """Draft a re-engagement email for each dormant contact, up to the batch cap."""
    now = now or datetime.now(UTC)
    tz = ZoneInfo(settings.display_timezone)
    dormant = select_dormant(store.read_all(), settings.dormant_threshold_days, now)

    def step(item: tuple[Record, int]) -> None:
        record, days = item
        news = refresh_news(client, search, record.company_name, _industry_hint(record))
        draft = generate_revival_email(client, record, days, news, tz)
        store.append_draft(record, days, news, draft.subject, draft.body, generated_at=now)
        notifier.dormant_alert(record, days)

    run = run_batch(
        dormant,
        settings.max_batch_records,
        settings.batch_item_delay,
        step,
        sleep=sleep,
        label="dormant_revival",
        describe=lambda item: f"{item[0].company_name} / {item[0].full_name}",
    )
    notifier.batch_finished(DORMANT_TASK_NAME, run)
    return run


def run_related_backfill(
    store: Any,
    client: GeminiClient,
    notifier: Notifier,
    settings: Settings,
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchRun:
    """Fill the related-entity summary for records that have a company but no summary.

    A failed discovery writes nothing, so the record stays eligible for the next run.
    An empty answer is stored as ``NO_CANDIDATES`` so it is not asked again.
    """
    now = now or datetime.now(UTC)
    eligible = [
        record
        for record in store.read_all()
        if record.company_name.strip() and not record.related_summary.strip()
    ]

    def step(record: Record) -> None:
        related = find_related(
            client, record.company_name.strip(), _industry_hint(record), settings.related_entity_count
        )
        if record.row_index is None:
            raise ValueError(f"Record without row index: {record.company_name}")
        store.update_field(record.row_index, "related_summary", related.summary or NO_CANDIDATES)
        store.append_related(record.company_name, related.entities, now)

    run = run_batch(
        eligible,
        settings.max_batch_records,
        settings.batch_item_delay,
        step,
        sleep=sleep,
        label="related_backfill",
        describe=lambda record: record.company_name,
    )
    notifier.batch_finished(RELATED_TASK_NAME, run)
    return run


def sync_contact_dates(
    store: Any,
    lookup: ContactLookup,
    settings: Settings,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchRun:
    """Move ``last_contact`` forward from the mail provider's most recent exchange."""
    eligible = [record for record in store.read_all() if record.email.strip()]
    updated = 0

    def step(record: Record) -> None:
        nonlocal updated
        found = parse_timestamp(lookup(record.email.strip()))
        if found is None:
            return
        current = parse_timestamp(record.last_contact)
        if current is not None and found <= current:
            return
        if record.row_index is None:
            raise ValueError(f"Record without row index: {record.email}")
        store.update_field(record.row_index, "last_contact", found)
        updated += 1

    run = run_batch(
        eligible,
        len(eligible),
        settings.sync_delay,
        step,
        pace_every=settings.sync_batch_size,
        sleep=sleep,
        label="contact_sync",
        describe=lambda record: record.email,
    )
    LOGGER.info("contact_sync: updated %s of %s records", updated, run.total)
    return run


def _industry_hint(record: Record) -> str:
    industry = record.industry.strip()
    return "" if industry in (ANALYSIS_FAILED, UNKNOWN_INDUSTRY) else industry
