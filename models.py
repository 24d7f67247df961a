"""Shared typed models for the enrichment pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

Priority = Literal["high", "medium", "low"]
StalenessStatus = Literal["active", "dormant", "unknown"]

# Timestamps are kept as read from the store; staleness.parse_timestamp interprets them.
Timestamp = datetime | str | None


@dataclass(frozen=True, slots=True)
class Record:
    """One contact entity, as registered from a business card."""

    company_name: str = ""
    full_name: str = ""
    title: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    website: str = ""
    registered_at: Timestamp = None
    last_contact: Timestamp = None
    staff_name: str = ""
    image_url: str = ""
    # Enrichment outputs
    x_url: str = ""
    facebook_url: str = ""
    instagram_url: str = ""
    youtube_url: str = ""
    tiktok_url: str = ""
    company_site: str = ""
    industry: str = ""
    trends: str = ""
    challenges: str = ""
    related_summary: str = ""
    duplicate_alert: str = ""
    notes: str = ""
    # 1-based data-row position in the store; None until persisted.
    row_index: int | None = None


@dataclass(frozen=True, slots=True)
class RelatedEntity:
    """A related company suggested as a sales target."""

    name: str
    category: str = ""
    rationale: str = ""
    priority: Priority = "medium"
    estimated_url: str = ""


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    """An existing record considered a duplicate of an incoming identity pair."""

    company_name: str
    full_name: str
    staff_name: str = ""
    last_contact: Timestamp = None
    row_index: int | None = None


@dataclass(frozen=True, slots=True)
class SearchResult:
    title: str
    link: str
    snippet: str


@dataclass(frozen=True, slots=True)
class SocialLinks:
    x_url: str = ""
    facebook_url: str = ""
    instagram_url: str = ""
    youtube_url: str = ""
    tiktok_url: str = ""


@dataclass(frozen=True, slots=True)
class StalenessResult:
    status: StalenessStatus
    elapsed_days: int | None = None


@dataclass(frozen=True, slots=True)
class StageResult:
    """Outcome of one enrichment stage: Success(payload) or Failed(reason)."""

    stage: str
    ok: bool
    payload: Any = None
    reason: str = ""

    @classmethod
    def success(cls, stage: str, payload: Any) -> "StageResult":
        return cls(stage=stage, ok=True, payload=payload)

    @classmethod
    def failed(cls, stage: str, reason: str, fallback: Any = None) -> "StageResult":
        return cls(stage=stage, ok=False, payload=fallback, reason=reason)


@dataclass(frozen=True, slots=True)
class EnrichedRecord:
    """Combined result of one orchestrator pass over a record."""

    record: Record
    stages: dict[str, StageResult]
    related_entities: tuple[RelatedEntity, ...] = ()
    duplicate_matches: tuple[MatchCandidate, ...] = ()
    sales_tip: str = ""

    @property
    def failed_stages(self) -> list[str]:
        return [name for name, result in self.stages.items() if not result.ok]


@dataclass(slots=True)
class BatchRun:
    """Ephemeral counters for one batch invocation."""

    label: str = "batch"
    processed: int = 0
    errors: int = 0
    total: int = 0
    failed_items: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return f"{self.label}: processed={self.processed} errors={self.errors} total={self.total}"
