from unittest.mock import MagicMock, patch

import pytest
import requests

from api_client import GeminiClient, parse_lenient_json, request_with_retry
from config import Settings
from errors import ConfigurationError, FatalServiceError, ParseError, TransientServiceError

_SETTINGS = Settings(gemini_api_key="test-key", max_retries=3, retry_base_delay=1.5)


def _resp(status: int, text: str | None = None, body: dict | None = None) -> MagicMock:
    mock = MagicMock()
    mock.status_code = status
    mock.text = text if text is not None else ""
    mock.json.return_value = body if body is not None else {}
    return mock


def _gemini_resp(text: str) -> MagicMock:
    return _resp(200, body={"candidates": [{"content": {"parts": [{"text": text}]}}]})


@pytest.mark.parametrize(
    "fenced",
    [
        '```json\n{"industry": "IT", "items": [1, 2]}\n```',
        '```\n{"industry": "IT", "items": [1, 2]}\n```',
        '  ```JSON\n{"industry": "IT", "items": [1, 2]}```  ',
    ],
)
def test_parse_lenient_json_fenced_equals_unwrapped(fenced: str) -> None:
    assert parse_lenient_json(fenced) == parse_lenient_json('{"industry": "IT", "items": [1, 2]}')


def test_parse_lenient_json_with_wrapping_text() -> None:
    wrapped = 'Here is the result:\n{"companies": [{"name": "Beta"}], "summary": "ok"}\nThanks!'
    assert parse_lenient_json(wrapped) == {"companies": [{"name": "Beta"}], "summary": "ok"}


def test_parse_lenient_json_recovers_array() -> None:
    assert parse_lenient_json('cards: [{"fullName": "Jane"}] done') == [{"fullName": "Jane"}]


def test_parse_lenient_json_raises_with_excerpt() -> None:
    text = "no structured data here " * 20
    with pytest.raises(ParseError) as exc_info:
        parse_lenient_json(text)
    assert exc_info.value.excerpt == text[:200]
    assert exc_info.value.kind == "parse"


def test_two_rate_limits_then_success_sleeps_twice_with_growing_delay() -> None:
    sleep = MagicMock()
    responses = [_resp(429), _resp(429), _gemini_resp('{"ok": true}')]
    client = GeminiClient(_SETTINGS, sleep=sleep)

    with patch("api_client.requests.request", side_effect=responses) as mock_request:
        result = client.generate_json("system", "user")

    assert result == {"ok": True}
    assert mock_request.call_count == 3
    assert sleep.call_count == 2
    first, second = (call.args[0] for call in sleep.call_args_list)
    assert second >= first
    assert (first, second) == (1.5, 3.0)


def test_non_retryable_status_raises_without_sleeping() -> None:
    sleep = MagicMock()
    client = GeminiClient(_SETTINGS, sleep=sleep)

    with patch("api_client.requests.request", return_value=_resp(400, text="bad request")) as mock_request:
        with pytest.raises(FatalServiceError) as exc_info:
            client.generate_text("system", "user")

    assert exc_info.value.status == 400
    assert "bad request" in str(exc_info.value)
    assert mock_request.call_count == 1
    sleep.assert_not_called()


def test_persistent_unavailable_raises_transient_after_max_retries() -> None:
    sleep = MagicMock()
    client = GeminiClient(_SETTINGS, sleep=sleep)

    with patch("api_client.requests.request", return_value=_resp(503)) as mock_request:
        with pytest.raises(TransientServiceError) as exc_info:
            client.generate_text("system", "user")

    assert exc_info.value.status == 503
    assert mock_request.call_count == 3
    assert sleep.call_count == 2


def test_transport_failure_is_retried() -> None:
    sleep = MagicMock()
    responses = [requests.ConnectionError("reset"), _gemini_resp("hello")]

    with patch("api_client.requests.request", side_effect=responses):
        text = GeminiClient(_SETTINGS, sleep=sleep).generate_text("system", "user")

    assert text == "hello"
    sleep.assert_called_once_with(1.5)


def test_transport_failure_on_every_attempt_raises_transient() -> None:
    with patch("api_client.requests.request", side_effect=requests.Timeout("slow")):
        with pytest.raises(TransientServiceError):
            request_with_retry("GET", "https://example.com", max_retries=2, base_delay=0, sleep=MagicMock())


def test_empty_candidate_text_is_retried_then_accepted() -> None:
    sleep = MagicMock()
    responses = [_gemini_resp("   "), _gemini_resp("second try")]

    with patch("api_client.requests.request", side_effect=responses):
        text = GeminiClient(_SETTINGS, sleep=sleep).generate_text("system", "user")

    assert text == "second try"
    assert sleep.call_count == 1


def test_malformed_body_on_every_attempt_raises_fatal() -> None:
    bad = _resp(200)
    bad.json.side_effect = ValueError("not json")

    with patch("api_client.requests.request", return_value=bad):
        with pytest.raises(FatalServiceError):
            GeminiClient(_SETTINGS, sleep=MagicMock()).generate_text("system", "user")


def test_missing_api_key_raises_configuration_error_without_request() -> None:
    with patch("api_client.requests.request") as mock_request:
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            GeminiClient(Settings()).generate_text("system", "user")
    mock_request.assert_not_called()


def test_request_shape_uses_header_key_and_system_instruction() -> None:
    with patch("api_client.requests.request", return_value=_gemini_resp("{}")) as mock_request:
        GeminiClient(_SETTINGS).generate_json("be brief", "hello")

    kwargs = mock_request.call_args.kwargs
    assert kwargs["method"] == "POST"
    assert kwargs["url"].endswith(f"{_SETTINGS.gemini_model}:generateContent")
    assert kwargs["headers"]["x-goog-api-key"] == "test-key"
    assert kwargs["json"]["system_instruction"]["parts"][0]["text"] == "be brief"
    assert kwargs["json"]["contents"][0]["parts"][0]["text"] == "hello"
    assert kwargs["json"]["generationConfig"]["response_mime_type"] == "application/json"


def test_call_with_parts_sends_inline_data() -> None:
    parts = [{"text": "read"}, {"inline_data": {"mime_type": "image/png", "data": "AAAA"}}]
    with patch("api_client.requests.request", return_value=_gemini_resp('[{"fullName": "A"}]')) as mock_request:
        result = GeminiClient(_SETTINGS).call_with_parts(parts)

    assert result == [{"fullName": "A"}]
    sent = mock_request.call_args.kwargs["json"]
    assert sent["contents"][0]["parts"] == parts
    assert sent["generationConfig"]["temperature"] == 0.1
