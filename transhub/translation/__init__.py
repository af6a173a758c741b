"""Pluggable machine translation services."""

from __future__ import annotations

from ..config import TranslationSettings
from .base import TranslationService, UsageStats
from .deepl import DeepLTranslator
from .llm import LLMTranslator
from .markdown import should_skip_translation, split_markdown_sections, translate_markdown


def build_translation_service(settings: TranslationSettings) -> TranslationService:
    """Instantiate the backend selected in settings."""
    if settings.service == "llm":
        return LLMTranslator(
            settings.model,
            base_url=settings.base_url,
            api_key=settings.api_key,
            request_timeout=settings.request_timeout,
        )
    return DeepLTranslator(
        settings.api_key,
        api_url=settings.api_url,
        request_timeout=settings.request_timeout,
    )


__all__ = [
    "DeepLTranslator",
    "LLMTranslator",
    "TranslationService",
    "UsageStats",
    "build_translation_service",
    "should_skip_translation",
    "split_markdown_sections",
    "translate_markdown",
]
