"""Business-card OCR through the Gemini inline-attachment request shape."""

from __future__ import annotations

import base64
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from api_client import GeminiClient

LOGGER = logging.getLogger(__name__)

ReadMode = Literal["merge", "multi"]

CARD_FIELDS = ("companyName", "fullName", "title", "email", "phone", "address", "website")

_OUTPUT_SCHEMA = """{
  "companyName": "会社名",
  "fullName": "氏名（姓 名）",
  "title": "役職",
  "email": "メールアドレス",
  "phone": "電話番号（ハイフン付き）",
  "address": "住所",
  "website": "URL（https://を含む）"
}"""

MERGE_PROMPT = f"""あなたは名刺OCRの専門AIです。
提供された画像は、同一人物の1枚の名刺の「表面」と「裏面」です。
両面の情報を統合し、最も正確な1つのJSONデータを作成してください。
名刺の中で最も大きく記載されている人物名を "fullName" としてください。

出力フォーマット（JSON）:
{_OUTPUT_SCHEMA}"""

MULTI_PROMPT = f"""あなたは名刺OCRの専門AIです。
画像内の全ての名刺を検出し、それぞれの情報を抽出してください。
"fullName" というキーを必ず使用してください。

出力フォーマット（JSON配列）:
[
{_OUTPUT_SCHEMA}
]"""


@dataclass(frozen=True, slots=True)
class CardImage:
    mime_type: str
    data: str  # base64


def load_image(path: str | Path) -> CardImage:
    file_path = Path(path)
    mime_type, _ = mimetypes.guess_type(file_path.name)
    data = base64.b64encode(file_path.read_bytes()).decode("ascii")
    return CardImage(mime_type=mime_type or "image/jpeg", data=data)


def build_parts(images: list[CardImage], mode: ReadMode) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = [{"text": MERGE_PROMPT if mode == "merge" else MULTI_PROMPT}]
    for image in images:
        parts.append({"inline_data": {"mime_type": image.mime_type, "data": image.data}})
    return parts


def read_cards(client: GeminiClient, images: list[CardImage], mode: ReadMode = "merge") -> list[dict[str, str]]:
    """Extract card fields from one or more images. Raises ApiError on failure."""
    if not images:
        return []

    result = client.call_with_parts(build_parts(images, mode))
    raw_cards = result if isinstance(result, list) else [result]
    cards = [normalize_card(item) for item in raw_cards if isinstance(item, dict)]
    LOGGER.info("Card reader (%s mode) extracted %s card(s) from %s image(s)", mode, len(cards), len(images))
    return cards


def normalize_card(raw: dict[str, Any]) -> dict[str, str]:
    card = {key: _as_text(raw.get(key)) for key in CARD_FIELDS}
    if not card["fullName"]:
        card["fullName"] = _as_text(raw.get("name")) or _as_text(raw.get("personName"))
    return card


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
