"""Tests for the local model translation backend."""

from __future__ import annotations

import json

import pytest

from transhub.errors import TranslationError
from transhub.translation.llm import LLMRequest, LLMTranslator


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch) -> None:
    for key in (
        *LLMTranslator.ENV_MODEL_KEYS,
        *LLMTranslator.ENV_BASE_URL_KEYS,
        *LLMTranslator.ENV_API_KEY_KEYS,
    ):
        monkeypatch.delenv(key, raising=False)


def test_translator_constructs_request() -> None:
    captured = {}

    def fake_runner(request: LLMRequest) -> str:
        captured["request"] = request
        return "Control de acceso roto"

    translator = LLMTranslator(
        "custom-model",
        base_url="http://localhost:11434/v1/",
        temperature=0.2,
        request_timeout=5.0,
        runner=fake_runner,
    )

    assert translator.translate_text("Broken Access Control", "es-ES") == "Control de acceso roto"
    request = captured["request"]
    assert request.text == "Broken Access Control"
    assert request.model == "custom-model"
    assert request.base_url == "http://localhost:11434/v1"
    assert request.temperature == 0.2
    assert request.request_timeout == 5.0
    assert "es-ES" in request.system


def test_defaults_and_environment(monkeypatch) -> None:
    assert LLMTranslator(runner=lambda request: "x").model == LLMTranslator.DEFAULT_MODEL

    monkeypatch.setenv("TRANSHUB_LLM_MODEL", "env-model")
    monkeypatch.setenv("TRANSHUB_LLM_BASE_URL", "http://127.0.0.1:9000/v1")
    translator = LLMTranslator(runner=lambda request: "x")

    assert translator.model == "env-model"
    assert translator.base_url == "http://127.0.0.1:9000/v1"
    assert translator.is_available()


def test_remote_endpoints_are_rejected() -> None:
    with pytest.raises(TranslationError, match="not permitted"):
        LLMTranslator("m", base_url="https://api.example.com/v1")


def test_empty_output_is_an_error() -> None:
    translator = LLMTranslator("m", runner=lambda request: "   ")

    with pytest.raises(TranslationError):
        translator.translate_text("Hello there", "fr-FR")


def test_http_runner_posts_chat_completion(monkeypatch) -> None:
    captured = {}

    class FakeResponse:
        def read(self):
            return json.dumps(
                {"choices": [{"message": {"content": " Las ballenas son mamíferos. "}}]}
            ).encode("utf-8")

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

    def fake_urlopen(request, timeout=None):
        captured["url"] = request.full_url
        captured["headers"] = {k.lower(): v for k, v in request.header_items()}
        captured["payload"] = json.loads(request.data.decode("utf-8"))
        captured["timeout"] = timeout
        return FakeResponse()

    monkeypatch.setattr("transhub.translation.llm.urlopen", fake_urlopen)

    translator = LLMTranslator(
        "ai/smollm2", base_url="http://localhost:12434/engines/v1", api_key="local-key"
    )
    result = translator.translate_text("Whales are mammals.", "es-ES")

    assert result == "Las ballenas son mamíferos."
    assert captured["url"] == "http://localhost:12434/engines/v1/chat/completions"
    assert captured["headers"]["authorization"] == "Bearer local-key"
    assert captured["payload"]["model"] == "ai/smollm2"
    assert captured["payload"]["messages"][1] == {
        "role": "user",
        "content": "Whales are mammals.",
    }
    assert captured["payload"]["temperature"] == 0.1
    assert captured["timeout"] == 60.0
