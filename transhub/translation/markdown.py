"""Structure-preserving markdown segmentation for machine translation."""

from __future__ import annotations

import re
from typing import Callable, List

_FENCE = "```"
_WORD_RUN = re.compile(r"[A-Za-z]{3,}")


def split_markdown_sections(markdown: str) -> List[str]:
    """Split ``markdown`` into segments whose concatenation is the original text.

    A segment ends after a blank line or a heading line. A fenced code block,
    including both fence lines, is always a segment of its own.
    """
    sections: List[str] = []
    current: List[str] = []
    in_code_block = False

    for line in markdown.splitlines(keepends=True):
        stripped = line.strip()
        if stripped.startswith(_FENCE):
            if not in_code_block and current:
                sections.append("".join(current))
                current = []
            current.append(line)
            in_code_block = not in_code_block
            if not in_code_block:
                sections.append("".join(current))
                current = []
            continue

        current.append(line)
        if in_code_block:
            continue
        if stripped == "" or stripped.startswith("#"):
            if "".join(current).strip():
                sections.append("".join(current))
                current = []

    if current:
        sections.append("".join(current))
    return sections


def should_skip_translation(section: str) -> bool:
    """Return True for segments that must be passed through verbatim."""
    trimmed = section.strip()
    if not trimmed:
        return True
    if _FENCE in trimmed:
        return True
    if trimmed.startswith(("http://", "https://")):
        return True
    # punctuation, numbers, or fragments without a real word
    return _WORD_RUN.search(trimmed) is None


def translate_markdown(
    markdown: str, target_language: str, translate_text: Callable[[str, str], str]
) -> str:
    """Translate each translatable segment independently and rejoin in order.

    Whitespace surrounding a translated segment is restored so paragraph
    breaks survive translators that trim their output.
    """
    translated: List[str] = []
    for section in split_markdown_sections(markdown):
        if should_skip_translation(section):
            translated.append(section)
            continue
        core = section.strip()
        start = section.index(core)
        leading = section[:start]
        trailing = section[start + len(core) :]
        result = translate_text(core, target_language)
        translated.append(f"{leading}{result.strip()}{trailing}")
    return "".join(translated)


__all__ = ["should_skip_translation", "split_markdown_sections", "translate_markdown"]
