"""Resilient client for the Gemini generateContent API.

All remote calls go through ``request_with_retry``:

- 2xx responses are accepted (and passed to ``extract`` when given).
- 429 / 503 are transient: sleep ``base_delay * attempt`` and retry.
- Any other status is fatal and raised immediately, without sleeping.
- Transport failures and malformed 2xx bodies retry with the same backoff and
  raise on the final attempt.

Retry state lives in local variables only, so one client can serve
independent requests concurrently.
"""

from __future__ import annotations

import json
import logging
import re
import time
from json import JSONDecodeError
from typing import Any, Callable, TypeVar

import requests

from config import Settings
from errors import ConfigurationError, FatalServiceError, ParseError, TransientServiceError

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 503})
BODY_EXCERPT_CHARS = 300
PARSE_EXCERPT_CHARS = 200

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_FENCE_START = re.compile(r"^```[A-Za-z0-9_-]*\s*")
_FENCE_END = re.compile(r"\s*```$")


def request_with_retry(
    method: str,
    url: str,
    *,
    max_retries: int,
    base_delay: float,
    timeout: float = 60.0,
    sleep: Callable[[float], None] = time.sleep,
    extract: Callable[[requests.Response], T] | None = None,
    label: str = "request",
    **kwargs: Any,
) -> T | requests.Response:
    """Send one logical HTTP request with transient-error backoff."""
    attempts = max(1, max_retries)

    for attempt in range(1, attempts + 1):
        final = attempt >= attempts
        try:
            response = requests.request(method=method, url=url, timeout=timeout, **kwargs)
        except requests.RequestException as exc:
            LOGGER.warning("%s transport failure on attempt %s/%s: %s", label, attempt, attempts, exc)
            if final:
                raise TransientServiceError(
                    f"{label} transport failure after {attempt} attempts: {exc}"
                ) from exc
            sleep(base_delay * attempt)
            continue

        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            LOGGER.warning("%s HTTP %s on attempt %s/%s", label, status, attempt, attempts)
            if final:
                raise TransientServiceError(
                    f"{label} still unavailable after {attempt} attempts", status=status
                )
            sleep(base_delay * attempt)
            continue

        if not 200 <= status < 300:
            raise FatalServiceError(
                f"{label} failed: {response.text[:BODY_EXCERPT_CHARS]}", status=status
            )

        if extract is None:
            return response

        try:
            return extract(response)
        except (ValueError, FatalServiceError) as exc:
            LOGGER.warning(
                "%s returned an unusable body on attempt %s/%s: %s", label, attempt, attempts, exc
            )
            if final:
                if isinstance(exc, FatalServiceError):
                    raise
                raise FatalServiceError(f"{label} returned a malformed body: {exc}") from exc
            sleep(base_delay * attempt)

    # Unreachable: the final attempt always returns or raises.
    raise FatalServiceError(f"{label} exhausted {attempts} attempts")


def parse_lenient_json(text: str) -> Any:
    """Parse model output that should contain JSON but may be fenced or wrapped in prose."""
    cleaned = _strip_code_fence(text or "")
    try:
        return json.loads(cleaned)
    except JSONDecodeError:
        pass

    found, value = _extract_first_json_value(cleaned)
    if found:
        return value
    raise ParseError(
        "Could not recover JSON from model output",
        excerpt=(text or "")[:PARSE_EXCERPT_CHARS],
    )


def _strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    cleaned = _FENCE_START.sub("", cleaned)
    cleaned = _FENCE_END.sub("", cleaned)
    return cleaned.strip()


def _extract_first_json_value(content: str) -> tuple[bool, Any]:
    """Find the first complete top-level object or array in an arbitrary string."""
    decoder = json.JSONDecoder()
    for index, char in enumerate(content):
        if char not in "{[":
            continue
        try:
            candidate, _ = decoder.raw_decode(content[index:])
        except JSONDecodeError:
            continue
        if isinstance(candidate, (dict, list)):
            return True, candidate
    return False, None


def _extract_candidate_text(response: requests.Response) -> str:
    body = response.json()
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise FatalServiceError(f"Unexpected Gemini response shape: {str(body)[:BODY_EXCERPT_CHARS]}") from exc
    if not isinstance(text, str) or not text.strip():
        raise FatalServiceError("Gemini returned an empty response")
    return text


class GeminiClient:
    """One configured client per process; holds no per-call state."""

    def __init__(self, settings: Settings, sleep: Callable[[float], None] = time.sleep) -> None:
        self.settings = settings
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        return f"{self.settings.gemini_api_base}{self.settings.gemini_model}:generateContent"

    def call(self, payload: dict[str, Any]) -> str:
        """Send one generateContent request and return the response text."""
        if not self.settings.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY is required")

        headers = {
            "x-goog-api-key": self.settings.gemini_api_key,
            "Content-Type": "application/json",
        }
        return request_with_retry(
            "POST",
            self.endpoint,
            max_retries=self.settings.max_retries,
            base_delay=self.settings.retry_base_delay,
            timeout=self.settings.request_timeout,
            sleep=self._sleep,
            extract=_extract_candidate_text,
            label="Gemini",
            headers=headers,
            json=payload,
        )

    def call_with_parts(self, parts: list[dict[str, Any]]) -> Any:
        """Free-form parts (text and inline_data attachments) with a JSON response."""
        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "response_mime_type": "application/json",
                "temperature": 0.1,
            },
        }
        return parse_lenient_json(self.call(payload))

    def generate_json(self, system_prompt: str, user_prompt: str) -> Any:
        payload = _instruction_payload(system_prompt, user_prompt)
        payload["generationConfig"] = {
            "response_mime_type": "application/json",
            "temperature": self.settings.temperature,
        }
        return parse_lenient_json(self.call(payload))

    def generate_text(self, system_prompt: str, user_prompt: str) -> str:
        payload = _instruction_payload(system_prompt, user_prompt)
        payload["generationConfig"] = {"temperature": self.settings.temperature}
        return self.call(payload)


def _instruction_payload(system_prompt: str, user_prompt: str) -> dict[str, Any]:
    return {
        "system_instruction": {"parts": [{"text": system_prompt}]},
        "contents": [{"parts": [{"text": user_prompt}]}],
    }
