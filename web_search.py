"""Best-effort search augmentation via the Custom Search JSON API."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import requests

from api_client import request_with_retry
from config import Settings
from errors import ApiError
from models import SearchResult

CUSTOM_SEARCH_API_URL = "https://www.googleapis.com/customsearch/v1"
REQUEST_TIMEOUT_SECONDS = 20

LOGGER = logging.getLogger(__name__)


class WebSearchClient:
    """Search never raises: unconfigured or failing calls return an empty list."""

    def __init__(self, settings: Settings, sleep: Callable[[float], None] = time.sleep) -> None:
        self.settings = settings
        self._sleep = sleep

    def search(self, query: str, num: int = 3) -> list[SearchResult]:
        if not self.settings.search_configured:
            LOGGER.info("Custom Search not configured, skipping query=%r", query)
            return []
        if not query.strip():
            return []

        params = {
            "key": self.settings.search_api_key,
            "cx": self.settings.search_cx,
            "q": query,
            "num": num,
        }
        try:
            response = request_with_retry(
                "GET",
                CUSTOM_SEARCH_API_URL,
                max_retries=self.settings.max_retries,
                base_delay=self.settings.retry_base_delay,
                timeout=REQUEST_TIMEOUT_SECONDS,
                sleep=self._sleep,
                label="CustomSearch",
                params=params,
            )
            payload = response.json()
        except (ApiError, ValueError, requests.RequestException) as exc:
            LOGGER.warning("Custom Search failed for query=%r: %s", query, exc)
            return []

        results = _parse_items(payload)
        LOGGER.info("Custom Search query=%r returned %s results", query, len(results))
        return results


def _parse_items(payload: Any) -> list[SearchResult]:
    if not isinstance(payload, dict):
        return []
    items = payload.get("items")
    if not isinstance(items, list):
        return []

    parsed: list[SearchResult] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        parsed.append(
            SearchResult(
                title=_as_str(item.get("title")),
                link=_as_str(item.get("link")),
                snippet=_as_str(item.get("snippet")),
            )
        )
    return parsed


def format_search_context(results: list[SearchResult], heading: str, with_links: bool = True) -> str:
    """Render results as a numbered block to append to a prompt; empty when no results."""
    if not results:
        return ""
    lines = [f"\n\n【{heading}】"]
    for index, result in enumerate(results, start=1):
        if with_links:
            lines.append(f"{index}. {result.title}\n   {result.snippet}\n   {result.link}")
        else:
            lines.append(f"{index}. {result.title}: {result.snippet}")
    return "\n".join(lines)


def _as_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
