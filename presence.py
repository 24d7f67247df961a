"""Web and social presence lookup: search URL templates and official-site resolution."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from api_client import GeminiClient
from models import SocialLinks

LOGGER = logging.getLogger(__name__)

GOOGLE_SEARCH_URL = "https://www.google.com/search?q="
SITE_QUERY_SUFFIX = "公式サイト"
_MAX_KEYWORD_CHARS = 12
_QUOTE_CHARS = "「『\"'」』"

_KEYWORD_SYSTEM_PROMPT = (
    "あなたは日本企業に精通したアシスタントです。"
    "企業名からメイン事業を推定し、短いキーワード1つで回答してください。"
)

_SITE_SYSTEM_PROMPT = """あなたは日本企業のデータベースに精通したアシスタントです。
企業名から公式Webサイトの URL を推定してください。
確信が持てない場合は confidence を "low" にしてください。"""


def _encode(value: str) -> str:
    return quote(value, safe="")


def build_social_links(full_name: str, company_name: str, business_keyword: str = "") -> SocialLinks:
    """Build search URLs for five platforms from the company name, else the person name.

    Never combine both names: person names dilute company searches.
    """
    query = (company_name or "").strip() or (full_name or "").strip()
    if not query:
        return SocialLinks()

    instagram_terms = ["Instagram", query]
    if business_keyword:
        instagram_terms.append(business_keyword)

    encoded = _encode(query)
    return SocialLinks(
        x_url=f"https://x.com/search?q={encoded}&src=typed_query&f=user",
        facebook_url=f"https://www.facebook.com/search/people/?q={encoded}",
        instagram_url=GOOGLE_SEARCH_URL + _encode(" ".join(instagram_terms)),
        youtube_url=f"https://www.youtube.com/results?search_query={encoded}&sp=EgIQAg%253D%253D",
        tiktok_url=f"https://www.tiktok.com/search/user?q={encoded}",
    )


def infer_business_keyword(client: GeminiClient, company_name: str) -> str:
    """Ask the model for a 2-6 character main-business keyword; raises on API failure."""
    user_prompt = (
        "以下の企業のメイン事業を、検索に使える短いキーワード1つ（2〜6文字程度）で回答してください。\n"
        "余計な説明は不要です。キーワードのみ返してください。\n\n"
        f"企業名: {company_name}"
    )
    raw = client.generate_text(_KEYWORD_SYSTEM_PROMPT, user_prompt)
    return clean_keyword(raw)


def clean_keyword(raw: str) -> str:
    """First line of the reply without surrounding quotes; empty if it is not keyword-sized."""
    lines = [line.strip() for line in (raw or "").strip().splitlines() if line.strip()]
    if not lines:
        return ""
    keyword = lines[0].strip(_QUOTE_CHARS).strip()
    if len(keyword) > _MAX_KEYWORD_CHARS:
        LOGGER.info("Discarding oversized business keyword %r", keyword)
        return ""
    return keyword


def search_fallback_url(name: str) -> str:
    query = f"{name.strip()} {SITE_QUERY_SUFFIX}".strip()
    return GOOGLE_SEARCH_URL + _encode(query)


def infer_company_site(client: GeminiClient, company_name: str) -> str:
    """Return an inferred official URL, or "" when the model has no confident answer.

    Raises on API/parse failure; callers fall back to ``search_fallback_url``.
    """
    user_prompt = (
        "以下の企業の公式WebサイトURLをJSON形式で回答してください。\n\n"
        f"企業名: {company_name}\n\n"
        "出力形式:\n"
        '{"url": "https://example.co.jp", "confidence": "high" | "medium" | "low"}'
    )
    result: Any = client.generate_json(_SITE_SYSTEM_PROMPT, user_prompt)
    if not isinstance(result, dict):
        return ""

    url = result.get("url")
    confidence = str(result.get("confidence") or "").strip().lower()
    if not isinstance(url, str) or not url.strip().lower().startswith(("http://", "https://")):
        return ""
    if confidence == "low":
        LOGGER.info("Ignoring low-confidence site %s for company=%s", url, company_name)
        return ""
    return url.strip()


def resolve_company_site(
    client: GeminiClient | None, company_name: str, website: str = "", full_name: str = ""
) -> str:
    """Known website, else inferred site, else a search URL.

    Returns a non-empty string unless inference raises; the orchestrator maps
    that failure to ``search_fallback_url`` as well.
    """
    if website and website.strip():
        return website.strip()

    if company_name and client is not None:
        inferred = infer_company_site(client, company_name)
        if inferred:
            return inferred

    return search_fallback_url(company_name or full_name)
