from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock

from config import Settings
from errors import ConfigurationError, TransientServiceError
from industry_analysis import ANALYSIS_FAILED
from models import Record
from notifications import KIND_DUPLICATE, Notifier
from orchestrator import (
    STAGE_DUPLICATE,
    STAGE_INDUSTRY,
    STAGE_RELATED,
    STAGE_SITE,
    Enricher,
    card_to_record,
    register_cards,
)
from record_store import CsvRecordStore
from related_entities import RELATED_FAILED

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)

_INDUSTRY_REPLY = {
    "industry": "ITサービス",
    "industryTrends": ["生成AI"],
    "estimatedChallenges": ["人材"],
    "salesTip": "DX予算を確認",
}
_RELATED_REPLY = {"companies": [{"name": "Beta", "priority": "高"}], "summary": "Beta など"}


def _json_router(system_prompt: str, user_prompt: str):
    if "公式WebサイトURL" in user_prompt:
        return {"url": "https://acme.example", "confidence": "high"}
    if "類似企業" in user_prompt:
        return _RELATED_REPLY
    return _INDUSTRY_REPLY


def _client() -> MagicMock:
    client = MagicMock()
    client.generate_text.return_value = "SaaS"
    client.generate_json.side_effect = _json_router
    return client


def test_industry_failure_is_isolated() -> None:
    client = _client()

    def failing(system_prompt: str, user_prompt: str):
        if "以下の企業について分析してください" in user_prompt:
            raise TransientServiceError("still busy", status=503)
        return _json_router(system_prompt, user_prompt)

    client.generate_json.side_effect = failing
    enricher = Enricher(Settings(), client, search=None)

    result = enricher.enrich(Record(company_name="Acme Inc.", full_name="Jane Doe"))

    assert result.record.industry == ANALYSIS_FAILED
    assert result.record.x_url
    assert result.record.company_site == "https://acme.example"
    assert result.failed_stages == [STAGE_INDUSTRY]
    assert result.stages[STAGE_INDUSTRY].reason
    assert result.stages[STAGE_RELATED].ok


def test_end_to_end_without_credentials_still_fills_fields() -> None:
    # A real client with no API key raises ConfigurationError for every call.
    client = MagicMock()
    client.generate_text.side_effect = ConfigurationError("GEMINI_API_KEY is required")
    client.generate_json.side_effect = ConfigurationError("GEMINI_API_KEY is required")
    enricher = Enricher(Settings(), client, search=None)

    result = enricher.enrich(Record(company_name="Acme Inc.", full_name="Jane Doe", last_contact=None), pool=[])

    assert result.stages[STAGE_DUPLICATE].ok
    assert result.record.duplicate_alert == ""
    assert result.record.company_site.startswith("https://www.google.com/search?q=")
    assert result.record.industry == ANALYSIS_FAILED
    assert result.record.related_summary == RELATED_FAILED
    assert result.record.x_url
    assert set(result.failed_stages) == {STAGE_SITE, STAGE_INDUSTRY, STAGE_RELATED}


def test_successful_enrichment_populates_every_field() -> None:
    enricher = Enricher(Settings(), _client(), search=None)

    result = enricher.enrich(Record(company_name="Acme Inc.", full_name="Jane Doe"))

    assert result.failed_stages == []
    assert result.record.industry == "ITサービス"
    assert result.record.trends == "1. 生成AI"
    assert result.record.related_summary == "Beta など"
    assert [entity.name for entity in result.related_entities] == ["Beta"]
    assert result.sales_tip == "DX予算を確認"
    assert "SaaS" in result.record.instagram_url


def test_industry_hint_passed_to_related_discovery() -> None:
    client = _client()
    Enricher(Settings(), client, search=None).enrich(Record(company_name="Acme"))
    related_prompt = [c.args[1] for c in client.generate_json.call_args_list if "類似企業" in c.args[1]][0]
    assert "ITサービス" in related_prompt


def test_duplicate_alert_is_written_and_notified() -> None:
    notifier = Notifier(Settings())
    enricher = Enricher(Settings(), _client(), search=None, notifier=notifier)
    pool = [Record(company_name="Acme", full_name="John", staff_name="Sato", last_contact="2026-01-05", row_index=1)]

    result = enricher.enrich(Record(company_name="Acme Inc.", full_name="Jane Doe"), pool=pool)

    assert result.record.duplicate_alert.startswith("【重複検知】")
    assert "Sato が 2026/01/05" in result.record.duplicate_alert
    assert [n.kind for n in notifier.outbox] == [KIND_DUPLICATE]


def test_card_to_record_sets_first_contact() -> None:
    record = card_to_record({"companyName": "Acme", "fullName": "Jane"}, "Sato", NOW)
    assert record.registered_at == NOW
    assert record.last_contact == NOW
    assert record.staff_name == "Sato"


def test_register_cards_sees_earlier_card_as_duplicate(tmp_path: Path) -> None:
    store = CsvRecordStore(tmp_path)
    enricher = Enricher(Settings(), _client(), search=None)
    cards = [
        {"companyName": "Acme Inc.", "fullName": "Jane Doe"},
        {"companyName": "Acme", "fullName": "John Roe"},
    ]

    results = register_cards(cards, "Sato", store, enricher, now=NOW)

    assert len(results) == 2
    assert results[0].record.duplicate_alert == ""
    assert "Jane Doe" in results[1].record.duplicate_alert
    rows = store.read_all()
    assert [r.full_name for r in rows] == ["Jane Doe", "John Roe"]
    assert rows[0].industry == "ITサービス"
    assert len(store.read_related()) == 2


def test_register_cards_continues_after_store_failure() -> None:
    store = MagicMock()
    store.read_all.return_value = []
    store.append.side_effect = [OSError("disk full"), 1]
    enricher = Enricher(Settings(), _client(), search=None)

    results = register_cards([{"companyName": "A"}, {"companyName": "B"}], "Sato", store, enricher, now=NOW)

    assert [r.record.company_name for r in results] == ["B"]


def test_register_cards_keeps_row_when_related_write_fails() -> None:
    store = MagicMock()
    store.read_all.return_value = []
    store.append.side_effect = [1, 2]
    store.append_related.side_effect = [OSError("disk full"), 0]
    enricher = Enricher(Settings(), _client(), search=None)
    cards = [
        {"companyName": "Acme Inc.", "fullName": "Jane"},
        {"companyName": "Acme", "fullName": "John"},
    ]

    results = register_cards(cards, "Sato", store, enricher, now=NOW)

    assert [r.record.company_name for r in results] == ["Acme Inc.", "Acme"]
    assert results[0].record.duplicate_alert == ""
    assert "Acme Inc. の Jane さんは Sato" in results[1].record.duplicate_alert
