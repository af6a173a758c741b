"""Deterministic translation service used by pipeline and service tests."""

from __future__ import annotations

from typing import Iterable, List

from transhub.errors import TranslationError
from transhub.translation.base import TranslationService


class StubTranslator(TranslationService):
    name = "Stub"

    def __init__(self, *, available: bool = True, fail_on: Iterable[str] = ()) -> None:
        self.available = available
        self.fail_on = tuple(fail_on)
        self.calls: List[str] = []

    def is_available(self) -> bool:
        return self.available

    def translate_text(self, text: str, target_language: str) -> str:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise TranslationError(f"cannot translate {text[:20]!r}")
        return f"[{target_language}] {text}"
