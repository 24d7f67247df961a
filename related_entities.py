"""Related-entity discovery: similar companies worth targeting next."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from api_client import GeminiClient
from errors import ParseError
from industry_analysis import API_ERROR_TEXT
from models import Priority, RelatedEntity

LOGGER = logging.getLogger(__name__)

RELATED_FAILED = API_ERROR_TEXT
NO_CANDIDATES = "候補なし"
MIN_ENTITIES = 3
MAX_ENTITIES = 5
RATIONALE_MAX_LEN = 100
SUMMARY_MAX_LEN = 200

_PRIORITY_ALIASES: dict[str, Priority] = {
    "high": "high",
    "高": "high",
    "medium": "medium",
    "mid": "medium",
    "中": "medium",
    "low": "low",
    "低": "low",
}

SYSTEM_PROMPT = """あなたは日本のBtoB市場に精通したマーケットリサーチャーです。
営業チームが次のターゲットを見つけるための情報を提供してください。

【判定基準】
- 高: 同じ業種・同規模で、類似の課題を抱える可能性が高い
- 中: 関連業種で、一部の課題が共通する可能性がある
- 低: 業種は異なるが、同様のビジネスモデルを持つ"""


@dataclass(frozen=True, slots=True)
class RelatedEntities:
    summary: str = ""
    entities: tuple[RelatedEntity, ...] = ()

    @classmethod
    def failed(cls) -> "RelatedEntities":
        return cls(summary=RELATED_FAILED)


def find_related(
    client: GeminiClient, company_name: str, industry: str = "", count: int = MAX_ENTITIES
) -> RelatedEntities:
    """Suggest 3-5 related companies. Raises ApiError when the model call fails."""
    if not company_name:
        return RelatedEntities()

    count = min(MAX_ENTITIES, max(MIN_ENTITIES, count))
    user_prompt = f"""以下の企業の情報を元に、類似企業・競合他社を{count}社提案してください。

【基準企業】
- 企業名: {company_name}
- 業種: {industry or '不明（推定してください）'}

以下のJSON形式で回答してください:
{{
  "companies": [
    {{
      "name": "企業名",
      "industry": "業種",
      "reason": "類似理由（50文字以内）",
      "priority": "高" | "中" | "低",
      "estimatedUrl": "推定される公式サイトURL"
    }}
  ],
  "summary": "ターゲット候補の概要（100文字以内の要約）"
}}"""

    result = client.generate_json(SYSTEM_PROMPT, user_prompt)
    if not isinstance(result, dict):
        raise ParseError("Expected JSON object from related-entity discovery", excerpt=str(result)[:200])

    entities = tuple(parse_entities(result.get("companies"))[:count])
    summary = _truncate(_as_text(result.get("summary")), SUMMARY_MAX_LEN)
    if not summary and entities:
        summary = "、".join(entity.name for entity in entities)

    LOGGER.info("Related entities for company=%s: %s found", company_name, len(entities))
    return RelatedEntities(summary=summary, entities=entities)


def parse_entities(value: Any) -> list[RelatedEntity]:
    if not isinstance(value, list):
        return []

    entities: list[RelatedEntity] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        name = _as_text(item.get("name"))
        if not name:
            continue
        entities.append(
            RelatedEntity(
                name=name,
                category=_as_text(item.get("industry")),
                rationale=_truncate(_as_text(item.get("reason")), RATIONALE_MAX_LEN),
                priority=normalize_priority(item.get("priority")),
                estimated_url=_as_text(item.get("estimatedUrl")),
            )
        )
    return entities


def normalize_priority(value: Any) -> Priority:
    key = _as_text(value).lower()
    return _PRIORITY_ALIASES.get(key, "medium")


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 1] + "…"


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
