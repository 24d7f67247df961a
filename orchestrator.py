"""Enrichment orchestrator: runs independent stages per record and isolates their failures."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, Callable, Iterable, Sequence
from zoneinfo import ZoneInfo

from api_client import GeminiClient
from config import Settings
from industry_analysis import ANALYSIS_FAILED, UNKNOWN_INDUSTRY, IndustryInsight, analyze_company
from matching import DuplicateCheck, check_duplicates
from models import EnrichedRecord, Record, SocialLinks, StageResult
from notifications import Notifier
from presence import build_social_links, infer_business_keyword, resolve_company_site, search_fallback_url
from related_entities import RelatedEntities, find_related
from web_search import WebSearchClient

LOGGER = logging.getLogger(__name__)

STAGE_DUPLICATE = "duplicate_check"
STAGE_PRESENCE = "social_presence"
STAGE_SITE = "company_site"
STAGE_INDUSTRY = "industry_analysis"
STAGE_RELATED = "related_entities"


class Enricher:
    """Runs every stage for one record; ``enrich`` never raises for a stage failure."""

    def __init__(
        self,
        settings: Settings,
        client: GeminiClient,
        search: WebSearchClient | None,
        notifier: Notifier | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.search = search
        self.notifier = notifier
        self.tz = ZoneInfo(settings.display_timezone)

    def enrich(
        self, record: Record, pool: Iterable[Record] = (), business_keyword: str = ""
    ) -> EnrichedRecord:
        stages: dict[str, StageResult] = {}
        company = record.company_name.strip()

        # Duplicate check first: its alert goes into the same row write.
        stages[STAGE_DUPLICATE] = run_stage(
            STAGE_DUPLICATE, record, lambda: self._check_duplicates(record, pool), DuplicateCheck()
        )
        stages[STAGE_PRESENCE] = run_stage(
            STAGE_PRESENCE, record, lambda: self._social_links(record, business_keyword), SocialLinks()
        )
        stages[STAGE_SITE] = run_stage(
            STAGE_SITE,
            record,
            lambda: resolve_company_site(self.client, company, record.website, record.full_name),
            record.website.strip() or search_fallback_url(company or record.full_name),
        )
        stages[STAGE_INDUSTRY] = run_stage(
            STAGE_INDUSTRY,
            record,
            lambda: analyze_company(self.client, self.search, company, record.title),
            IndustryInsight.failed() if company else IndustryInsight(),
        )

        insight: IndustryInsight = stages[STAGE_INDUSTRY].payload
        industry_hint = insight.industry if insight.industry not in ("", ANALYSIS_FAILED, UNKNOWN_INDUSTRY) else ""
        stages[STAGE_RELATED] = run_stage(
            STAGE_RELATED,
            record,
            lambda: find_related(self.client, company, industry_hint, self.settings.related_entity_count),
            RelatedEntities.failed() if company else RelatedEntities(),
        )

        duplicate: DuplicateCheck = stages[STAGE_DUPLICATE].payload
        links: SocialLinks = stages[STAGE_PRESENCE].payload
        related: RelatedEntities = stages[STAGE_RELATED].payload

        enriched = replace(
            record,
            x_url=links.x_url,
            facebook_url=links.facebook_url,
            instagram_url=links.instagram_url,
            youtube_url=links.youtube_url,
            tiktok_url=links.tiktok_url,
            company_site=stages[STAGE_SITE].payload,
            industry=insight.industry,
            trends=insight.trends,
            challenges=insight.challenges,
            related_summary=related.summary,
            duplicate_alert=duplicate.message,
        )

        result = EnrichedRecord(
            record=enriched,
            stages=stages,
            related_entities=related.entities,
            duplicate_matches=duplicate.matches,
            sales_tip=insight.sales_tip,
        )
        if result.failed_stages:
            LOGGER.info("Enriched company=%s with failed stages: %s", company, ", ".join(result.failed_stages))
        return result

    def _check_duplicates(self, record: Record, pool: Iterable[Record]) -> DuplicateCheck:
        duplicate = check_duplicates(record.company_name, record.full_name, pool, self.tz)
        if duplicate.found and self.notifier is not None:
            self.notifier.duplicate_detected(
                record.company_name, record.full_name, duplicate.message, duplicate.matches
            )
        return duplicate

    def _social_links(self, record: Record, business_keyword: str) -> SocialLinks:
        """The inferred keyword only narrows the Instagram query; failing to infer it drops it."""
        keyword = business_keyword.strip()
        if not keyword and record.company_name.strip():
            try:
                keyword = infer_business_keyword(self.client, record.company_name.strip())
            except Exception as exc:
                LOGGER.warning("Business keyword inference failed for company=%s: %s", record.company_name, exc)
                keyword = ""
        return build_social_links(record.full_name, record.company_name, keyword)


def run_stage(name: str, record: Record, func: Callable[[], Any], fallback: Any) -> StageResult:
    """Run one stage; any failure is logged and replaced by ``fallback``."""
    try:
        return StageResult.success(name, func())
    except Exception as exc:
        LOGGER.warning("Stage %s failed for company=%s: %s", name, record.company_name, exc)
        return StageResult.failed(name, str(exc), fallback)


def card_to_record(card: dict[str, str], staff_name: str, registered_at: datetime) -> Record:
    """Map an extracted card to a new record; first contact is the registration time."""
    return Record(
        company_name=card.get("companyName", ""),
        full_name=card.get("fullName", ""),
        title=card.get("title", ""),
        email=card.get("email", ""),
        phone=card.get("phone", ""),
        address=card.get("address", ""),
        website=card.get("website", ""),
        registered_at=registered_at,
        last_contact=registered_at,
        staff_name=staff_name,
        image_url=card.get("imageUrl", ""),
    )


def register_cards(
    cards: Sequence[dict[str, str]],
    staff_name: str,
    store: Any,
    enricher: Enricher,
    now: datetime | None = None,
) -> list[EnrichedRecord]:
    """Enrich and persist newly read cards.

    The store is read once; each written record joins the in-memory pool so a
    later card in the same upload sees the earlier one as a duplicate. A card
    whose row was written counts as registered even if its related-entity rows
    could not be stored.
    """
    timestamp = now or datetime.now(UTC)
    pool = list(store.read_all())
    results: list[EnrichedRecord] = []

    for card in cards:
        record = card_to_record(card, staff_name, timestamp)
        try:
            enriched = enricher.enrich(record, pool)
            row_index = store.append(enriched.record)
        except Exception as exc:
            LOGGER.exception("Failed registering card company=%s: %s", record.company_name, exc)
            continue

        pool.append(replace(enriched.record, row_index=row_index))
        results.append(enriched)
        LOGGER.info("Registered company=%s person=%s row=%s", record.company_name, record.full_name, row_index)

        try:
            store.append_related(record.company_name, enriched.related_entities, timestamp)
        except Exception as exc:
            LOGGER.warning("Failed writing related entities for company=%s: %s", record.company_name, exc)

    return results
