"""Industry analysis: industry label, trends, challenge hypotheses and a sales tip."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from api_client import GeminiClient
from errors import ApiError, ParseError
from web_search import WebSearchClient, format_search_context

LOGGER = logging.getLogger(__name__)

ANALYSIS_FAILED = "分析失敗"
API_ERROR_TEXT = "APIエラーにより取得できませんでした"
NEWS_FAILED = "最新ニュースの取得に失敗しました"
UNKNOWN_INDUSTRY = "不明"
MAX_LIST_ITEMS = 5

SYSTEM_PROMPT = """あなたは日本市場に精通したビジネスアナリスト兼コンサルタントです。
営業担当者が初回商談の準備をする際に役立つ情報を提供してください。

【あなたの役割】
- 企業名と役職から、その企業の業種を推定する
- その業種の最新トレンド・ニュースを3〜5件リストアップ
- その企業が直面していそうなビジネス課題の仮説を3〜5つ提示
- 営業アプローチに活用できる具体的な洞察を含める"""

_NEWS_SYSTEM_PROMPT = "あなたはビジネスニュースのキュレーターです。営業活動に役立つ簡潔な情報を提供してください。"


@dataclass(frozen=True, slots=True)
class IndustryInsight:
    industry: str = ""
    trends: str = ""
    challenges: str = ""
    sales_tip: str = ""

    @classmethod
    def failed(cls) -> "IndustryInsight":
        """Attempted-and-failed marker, distinct from the blank not-attempted value."""
        return cls(industry=ANALYSIS_FAILED, trends=API_ERROR_TEXT, challenges=API_ERROR_TEXT)


def analyze_company(
    client: GeminiClient,
    search: WebSearchClient | None,
    company_name: str,
    job_title: str = "",
) -> IndustryInsight:
    """Run the analysis for one company. Raises ApiError when the model call fails."""
    if not company_name:
        return IndustryInsight()

    search_context = ""
    if search is not None:
        results = search.search(f"{company_name} ニュース 最新")
        search_context = format_search_context(results, "参考: Web検索結果")

    user_prompt = f"""以下の企業について分析してください。

企業名: {company_name}
名刺上の役職: {job_title or '不明'}
{search_context}

以下のJSON形式で回答してください:
{{
  "industry": "推定される業種",
  "industryTrends": ["トレンド1", "トレンド2", "トレンド3"],
  "estimatedChallenges": ["課題1", "課題2", "課題3"],
  "salesTip": "営業アプローチで活用できる一言アドバイス"
}}"""

    result = client.generate_json(SYSTEM_PROMPT, user_prompt)
    if not isinstance(result, dict):
        raise ParseError("Expected JSON object from industry analysis", excerpt=str(result)[:200])

    insight = IndustryInsight(
        industry=_as_text(result.get("industry")) or UNKNOWN_INDUSTRY,
        trends=format_numbered(result.get("industryTrends"), "トレンド"),
        challenges=format_numbered(result.get("estimatedChallenges"), "課題"),
        sales_tip=_as_text(result.get("salesTip")),
    )
    LOGGER.info("Industry analysis for company=%s: industry=%s", company_name, insight.industry)
    return insight


def refresh_news(
    client: GeminiClient,
    search: WebSearchClient | None,
    company_name: str,
    industry: str = "",
) -> str:
    """Short news digest used as an outreach hook; degrades to a sentinel string."""
    if not company_name:
        return ""

    query = f"{industry} 最新ニュース トレンド" if industry else f"{company_name} 業界 最新ニュース"
    search_context = ""
    if search is not None:
        search_context = format_search_context(
            search.search(query, num=5), "最新Web検索結果", with_links=False
        )

    user_prompt = f"""以下の企業/業界の最新ニュースやトレンドを3つ簡潔にまとめてください。
営業メールのフックとして使えるような切り口でお願いします。

企業名: {company_name}
業種: {industry or '不明'}
{search_context}

箇条書きで3つ、各50文字以内でまとめてください。"""

    try:
        return client.generate_text(_NEWS_SYSTEM_PROMPT, user_prompt).strip()
    except ApiError as exc:
        LOGGER.warning("News refresh failed for company=%s: %s", company_name, exc)
        return NEWS_FAILED


def format_numbered(items: Any, label: str) -> str:
    """Render up to five items as "1. ..." lines; "<label>情報なし" when there are none."""
    if not isinstance(items, list):
        return f"{label}情報なし"
    texts = [_as_text(item) for item in items]
    texts = [text for text in texts if text][:MAX_LIST_ITEMS]
    if not texts:
        return f"{label}情報なし"
    return "\n".join(f"{index}. {text}" for index, text in enumerate(texts, start=1))


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
