"""Runtime settings for the enrichment pipeline, built from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from errors import ConfigurationError

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models/"
GEMINI_MODEL = "gemini-3-flash-preview"


@dataclass(frozen=True, slots=True)
class Settings:
    """Explicit configuration passed to every component's constructor."""

    gemini_api_key: str = ""
    gemini_model: str = GEMINI_MODEL
    gemini_api_base: str = GEMINI_API_BASE
    temperature: float = 0.3
    max_retries: int = 3
    retry_base_delay: float = 1.5
    request_timeout: float = 60.0

    # Search augmentation is optional; unset keys make it a no-op.
    search_api_key: str = ""
    search_cx: str = ""

    dormant_threshold_days: int = 180
    related_entity_count: int = 5
    max_batch_records: int = 20
    batch_item_delay: float = 2.0
    sync_batch_size: int = 50
    sync_delay: float = 0.5

    display_timezone: str = "Asia/Tokyo"
    data_dir: str = "data"

    slack_webhook_url: str = ""
    chatwork_api_token: str = ""
    chatwork_room_id: str = ""
    teams_webhook_url: str = ""
    alert_email_to: str = ""

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def search_configured(self) -> bool:
        return bool(self.search_api_key and self.search_cx)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables (call load_dotenv first)."""
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            gemini_model=os.getenv("GEMINI_MODEL", GEMINI_MODEL),
            gemini_api_base=os.getenv("GEMINI_API_BASE", GEMINI_API_BASE),
            temperature=_env_float("GEMINI_TEMPERATURE", 0.3),
            max_retries=max(1, _env_int("GEMINI_MAX_RETRIES", 3)),
            retry_base_delay=_env_float("GEMINI_RETRY_DELAY", 1.5),
            request_timeout=_env_float("REQUEST_TIMEOUT_SECONDS", 60.0),
            search_api_key=os.getenv("CUSTOM_SEARCH_API_KEY", ""),
            search_cx=os.getenv("CUSTOM_SEARCH_CX", ""),
            dormant_threshold_days=_env_int("DORMANT_THRESHOLD_DAYS", 180),
            related_entity_count=min(5, max(3, _env_int("RELATED_ENTITY_COUNT", 5))),
            max_batch_records=_env_int("MAX_BATCH_RECORDS", 20),
            batch_item_delay=_env_float("BATCH_ITEM_DELAY", 2.0),
            sync_batch_size=max(1, _env_int("SYNC_BATCH_SIZE", 50)),
            sync_delay=_env_float("SYNC_DELAY", 0.5),
            display_timezone=os.getenv("DISPLAY_TIMEZONE", "Asia/Tokyo"),
            data_dir=os.getenv("SFA_DATA_DIR", "data"),
            slack_webhook_url=os.getenv("SLACK_WEBHOOK_URL", ""),
            chatwork_api_token=os.getenv("CHATWORK_API_TOKEN", ""),
            chatwork_room_id=os.getenv("CHATWORK_ROOM_ID", ""),
            teams_webhook_url=os.getenv("TEAMS_WEBHOOK_URL", ""),
            alert_email_to=os.getenv("ALERT_EMAIL_TO", ""),
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
