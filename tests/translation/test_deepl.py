"""Tests for the DeepL adapter."""

from __future__ import annotations

import io
import json
from typing import Any, Dict, List
from urllib.error import HTTPError, URLError

import pytest

from transhub.config import TranslationSettings
from transhub.errors import QuotaExceededError, TranslationError
from transhub.translation import DeepLTranslator, LLMTranslator, build_translation_service


class FakeResponse:
    def __init__(self, payload: Any) -> None:
        self._payload = payload

    def read(self) -> bytes:
        return json.dumps(self._payload).encode("utf-8")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def captured(monkeypatch) -> List[Dict[str, Any]]:
    calls: List[Dict[str, Any]] = []

    def fake_urlopen(request, timeout=None):
        calls.append(
            {
                "url": request.full_url,
                "method": request.get_method(),
                "headers": {k.lower(): v for k, v in request.header_items()},
                "payload": json.loads(request.data.decode("utf-8")) if request.data else None,
                "timeout": timeout,
            }
        )
        if request.full_url.endswith("/usage"):
            return FakeResponse({"character_count": 250_000, "character_limit": 500_000})
        texts = calls[-1]["payload"]["text"]
        return FakeResponse({"translations": [{"text": f"ES:{text}"} for text in texts]})

    monkeypatch.setattr("transhub.translation.deepl.urlopen", fake_urlopen)
    return calls


def _raise(exc: Exception):
    def fake_urlopen(request, timeout=None):
        raise exc

    return fake_urlopen


def test_free_keys_use_the_free_endpoint() -> None:
    assert DeepLTranslator("abc:fx").api_url == "https://api-free.deepl.com/v2"
    assert DeepLTranslator("abc").api_url == "https://api.deepl.com/v2"
    assert DeepLTranslator("abc", api_url="http://proxy/v2/").api_url == "http://proxy/v2"


def test_translate_text_posts_expected_request(captured: List[Dict[str, Any]]) -> None:
    translator = DeepLTranslator("key:fx", request_timeout=12.0)

    assert translator.translate_text("Broken Access Control", "pt-BR") == "ES:Broken Access Control"

    call = captured[0]
    assert call["url"] == "https://api-free.deepl.com/v2/translate"
    assert call["method"] == "POST"
    assert call["headers"]["authorization"] == "DeepL-Auth-Key key:fx"
    assert call["payload"] == {
        "text": ["Broken Access Control"],
        "source_lang": "EN",
        "target_lang": "PT-BR",
    }
    assert call["timeout"] == 12.0


def test_translate_markdown_only_sends_prose(captured: List[Dict[str, Any]]) -> None:
    result = DeepLTranslator("key").translate_markdown(
        "# Intro\n\n```\ncode\n```\n", "es-ES"
    )

    assert result == "ES:# Intro\n\n```\ncode\n```\n"
    assert [call["payload"]["text"] for call in captured] == [["# Intro"]]


def test_unsupported_language_fails_before_any_request(captured: List[Dict[str, Any]]) -> None:
    with pytest.raises(TranslationError, match="Unsupported language: xx-XX"):
        DeepLTranslator("key").translate_text("Hello", "xx-XX")

    assert captured == []


def test_missing_key_is_unavailable() -> None:
    translator = DeepLTranslator(None)

    assert translator.is_available() is False
    with pytest.raises(TranslationError, match="DEEPL_API_KEY"):
        translator.translate_text("Hello", "es-ES")


@pytest.mark.parametrize("status", [429, 456])
def test_quota_responses_raise_quota_errors(monkeypatch, status: int) -> None:
    monkeypatch.setattr(
        "transhub.translation.deepl.urlopen",
        _raise(HTTPError("https://api.deepl.com/v2/translate", status, "quota", {}, None)),
    )

    with pytest.raises(QuotaExceededError):
        DeepLTranslator("key").translate_text("Hello", "es-ES")


def test_other_http_errors_include_the_body(monkeypatch) -> None:
    monkeypatch.setattr(
        "transhub.translation.deepl.urlopen",
        _raise(
            HTTPError(
                "https://api.deepl.com/v2/translate", 500, "Server Error", {}, io.BytesIO(b"boom")
            )
        ),
    )

    with pytest.raises(TranslationError, match="status 500: boom"):
        DeepLTranslator("key").translate_text("Hello", "es-ES")


def test_usage_is_reported(captured: List[Dict[str, Any]]) -> None:
    usage = DeepLTranslator("key").get_usage()

    assert (usage.character_count, usage.character_limit) == (250_000, 500_000)
    assert usage.percentage == 50.0
    assert captured[0]["method"] == "GET"


def test_usage_failures_degrade_to_empty_stats(monkeypatch) -> None:
    monkeypatch.setattr("transhub.translation.deepl.urlopen", _raise(URLError("offline")))

    usage = DeepLTranslator("key").get_usage()

    assert usage.character_limit == 0
    assert usage.percentage == 0.0


def test_build_translation_service_selects_backend() -> None:
    deepl = build_translation_service(TranslationSettings(service="deepl", api_key="k"))
    llm = build_translation_service(
        TranslationSettings(service="llm", model="m", base_url="http://localhost:11434/v1")
    )

    assert isinstance(deepl, DeepLTranslator)
    assert deepl.api_key == "k"
    assert isinstance(llm, LLMTranslator)
    assert llm.model == "m"
