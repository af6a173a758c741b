"""Base classes for pluggable machine translation services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..errors import TransHubError, TranslationError
from .markdown import translate_markdown


@dataclass(frozen=True)
class UsageStats:
    """Character quota consumption reported by a translation backend."""

    character_count: int = 0
    character_limit: int = 0

    @property
    def percentage(self) -> float:
        if self.character_limit <= 0:
            return 0.0
        return self.character_count / self.character_limit * 100


class TranslationService(ABC):
    """Contract for text-to-text translators used by language initialization."""

    name = "translation"

    @abstractmethod
    def is_available(self) -> bool:
        """Return True when the backend is configured well enough to be called."""

    @abstractmethod
    def translate_text(self, text: str, target_language: str) -> str:
        """Translate English ``text`` into ``target_language`` (e.g. ``es-ES``)."""

    def get_usage(self) -> UsageStats:
        return UsageStats()

    def translate_markdown(self, markdown: str, target_language: str) -> str:
        """Translate markdown while keeping code fences, URLs and layout intact."""
        try:
            return translate_markdown(markdown, target_language, self.translate_text)
        except TransHubError:
            raise
        except Exception as exc:
            raise TranslationError(f"Failed to translate markdown: {exc}") from exc


__all__ = ["TranslationService", "UsageStats"]
