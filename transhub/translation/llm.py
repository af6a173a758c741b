"""Translation through a local OpenAI-compatible model runtime (Model Runner / Ollama)."""

from __future__ import annotations

import ipaddress
import json
import os
from dataclasses import dataclass
from typing import Callable, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from ..errors import TranslationError
from .base import TranslationService

_SYSTEM_PROMPT = (
    "You are a professional technical translator. Translate the user's English markdown "
    "into the language identified by the BCP-47 code {language}. Keep markdown syntax, "
    "inline code, link targets and URLs unchanged. Reply with the translation only."
)


@dataclass
class LLMRequest:
    """Represents a single translation prompt for the local runtime."""

    text: str
    system: str
    model: str
    temperature: Optional[float]
    base_url: str
    api_key: Optional[str]
    request_timeout: Optional[float]


class LLMTranslator(TranslationService):
    """Uses a locally hosted chat-completions endpoint as the translator."""

    name = "LLM"
    DEFAULT_MODEL = "ai/smollm2:360M-Q4_K_M"
    DEFAULT_BASE_URL = "http://localhost:12434/engines/v1"
    ENV_MODEL_KEYS = ("TRANSHUB_LLM_MODEL", "MODEL_RUNNER_MODEL")
    ENV_BASE_URL_KEYS = ("TRANSHUB_LLM_BASE_URL", "MODEL_RUNNER_BASE_URL")
    ENV_API_KEY_KEYS = ("TRANSHUB_LLM_API_KEY", "MODEL_RUNNER_API_KEY")

    def __init__(
        self,
        model: str | None = None,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        temperature: Optional[float] = 0.1,
        request_timeout: Optional[float] = 60.0,
        runner: Callable[[LLMRequest], str] | None = None,
    ) -> None:
        self.model = model or _first_env_value(self.ENV_MODEL_KEYS) or self.DEFAULT_MODEL
        self.base_url = _ensure_local_url(
            base_url or _first_env_value(self.ENV_BASE_URL_KEYS) or self.DEFAULT_BASE_URL
        )
        self.api_key = api_key or _first_env_value(self.ENV_API_KEY_KEYS)
        self.temperature = temperature
        self.request_timeout = request_timeout
        self._runner = runner or _http_runner

    def is_available(self) -> bool:
        return bool(self.base_url and self.model)

    def translate_text(self, text: str, target_language: str) -> str:
        request = LLMRequest(
            text=text,
            system=_SYSTEM_PROMPT.format(language=target_language),
            model=self.model,
            temperature=self.temperature,
            base_url=self.base_url,
            api_key=self.api_key,
            request_timeout=self.request_timeout,
        )
        result = self._runner(request)
        if not result.strip():
            raise TranslationError("LLM translator returned an empty response")
        return result


def _http_runner(request: LLMRequest) -> str:
    endpoint = f"{request.base_url}/chat/completions"
    payload: dict[str, object] = {
        "model": request.model,
        "messages": [
            {"role": "system", "content": request.system},
            {"role": "user", "content": request.text},
        ],
    }
    if request.temperature is not None:
        payload["temperature"] = request.temperature

    headers = {"Content-Type": "application/json"}
    if request.api_key:
        headers["Authorization"] = f"Bearer {request.api_key}"
    http_request = Request(
        endpoint, data=json.dumps(payload).encode("utf-8"), headers=headers, method="POST"
    )

    try:
        with urlopen(http_request, timeout=request.request_timeout or 60.0) as response:  # type: ignore[arg-type]
            raw = response.read()
    except HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
        raise TranslationError(
            f"LLM translator failed with status {exc.code}: {detail.strip() or exc.reason}"
        ) from exc
    except URLError as exc:
        raise TranslationError(f"LLM translator failed: {exc.reason}") from exc

    try:
        response_payload = json.loads(raw.decode("utf-8"))
    except json.JSONDecodeError as exc:
        raise TranslationError("LLM translator returned invalid JSON") from exc
    return _extract_content(response_payload).strip()


def _extract_content(payload: object) -> str:
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    text = choices[0].get("text")
    return text if isinstance(text, str) else ""


def _first_env_value(keys: Sequence[str]) -> str | None:
    for key in keys:
        value = os.getenv(key)
        if value:
            return value
    return None


def _ensure_local_url(url: str) -> str:
    normalized = url.rstrip("/")
    host = urlparse(normalized).hostname
    if host is None or _is_local_host(host):
        return normalized
    raise TranslationError(
        f"Remote base_url '{url}' is not permitted. Configure a local model runner."
    )


def _is_local_host(host: str) -> bool:
    lowered = host.lower()
    if lowered in {"localhost", "127.0.0.1", "0.0.0.0", "::1", "model-runner.docker.internal"}:
        return True
    if lowered.endswith(".local") or lowered.endswith(".localdomain"):
        return True
    try:
        return ipaddress.ip_address(lowered).is_loopback
    except ValueError:
        return False


__all__ = ["LLMRequest", "LLMTranslator"]
