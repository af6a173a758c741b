"""DeepL REST adapter."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..errors import QuotaExceededError, TranslationError
from ..logging import get_logger
from .base import TranslationService, UsageStats

logger = get_logger("translation.deepl")

LANGUAGE_MAP: Dict[str, str] = {
    "es-ES": "ES",
    "ar-SA": "AR",
    "fr-FR": "FR",
    "de-DE": "DE",
    "zh-CN": "ZH",
    "ja-JP": "JA",
    "pt-BR": "PT-BR",
    "he-IL": "HE",
    "it-IT": "IT",
    "ko-KR": "KO",
    "nl-NL": "NL",
    "pl-PL": "PL",
    "ru-RU": "RU",
    "tr-TR": "TR",
}

FREE_API_URL = "https://api-free.deepl.com/v2"
PRO_API_URL = "https://api.deepl.com/v2"


class DeepLTranslator(TranslationService):
    """Translates English text through the DeepL v2 API."""

    name = "DeepL"

    def __init__(
        self,
        api_key: str | None,
        *,
        api_url: str | None = None,
        request_timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key
        self.api_url = (api_url or self._default_api_url(api_key)).rstrip("/")
        self.request_timeout = request_timeout

    def is_available(self) -> bool:
        return bool(self.api_key)

    def translate_text(self, text: str, target_language: str) -> str:
        return self.translate_batch([text], target_language)[0]

    def translate_batch(self, texts: Sequence[str], target_language: str) -> List[str]:
        if not texts:
            return []
        payload = {
            "text": list(texts),
            "source_lang": "EN",
            "target_lang": self._target_language(target_language),
        }
        response = self._call("POST", "/translate", payload)
        translations = response.get("translations")
        if not isinstance(translations, list) or len(translations) != len(texts):
            raise TranslationError("DeepL returned an unexpected translation payload")
        return [str(item.get("text", "")) for item in translations if isinstance(item, dict)]

    def get_usage(self) -> UsageStats:
        try:
            response = self._call("GET", "/usage", None)
        except TranslationError as exc:
            logger.warning("Failed to get DeepL usage: %s", exc)
            return UsageStats()
        return UsageStats(
            character_count=int(response.get("character_count") or 0),
            character_limit=int(response.get("character_limit") or 0),
        )

    # ------------------------------------------------------------------
    # Helpers

    @staticmethod
    def _default_api_url(api_key: str | None) -> str:
        if api_key and api_key.endswith(":fx"):
            return FREE_API_URL
        return PRO_API_URL

    @staticmethod
    def _target_language(language_code: str) -> str:
        target = LANGUAGE_MAP.get(language_code)
        if target is None:
            raise TranslationError(f"Unsupported language: {language_code}")
        return target

    def _call(self, method: str, path: str, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if not self.api_key:
            raise TranslationError(
                "DeepL API key not configured. Please set DEEPL_API_KEY environment variable."
            )
        headers = {"Authorization": f"DeepL-Auth-Key {self.api_key}"}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        request = Request(f"{self.api_url}{path}", data=data, headers=headers, method=method)

        try:
            with urlopen(request, timeout=self.request_timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            if exc.code in (429, 456):
                raise QuotaExceededError(
                    "DeepL quota exceeded" if exc.code == 456 else "DeepL rate limit exceeded"
                ) from exc
            detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
            raise TranslationError(
                f"DeepL request failed with status {exc.code}: {detail.strip() or exc.reason}"
            ) from exc
        except URLError as exc:
            raise TranslationError(f"DeepL request failed: {exc.reason}") from exc

        try:
            decoded = json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise TranslationError("DeepL returned invalid JSON") from exc
        if not isinstance(decoded, dict):
            raise TranslationError("DeepL returned an unexpected payload")
        return decoded


__all__ = ["DeepLTranslator", "LANGUAGE_MAP"]
