"""Tests for markdown segmentation used by machine translation."""

from __future__ import annotations

from typing import List

import pytest

from transhub.translation.markdown import (
    should_skip_translation,
    split_markdown_sections,
    translate_markdown,
)

DOCUMENT = "# Title\n\nPara one\nline two\n\n```\ncode here\n```\nAfter the code\n"


def test_sections_rejoin_to_the_original() -> None:
    sections = split_markdown_sections(DOCUMENT)

    assert sections == [
        "# Title\n",
        "\nPara one\nline two\n\n",
        "```\ncode here\n```\n",
        "After the code\n",
    ]
    assert "".join(sections) == DOCUMENT


def test_blank_lines_inside_code_blocks_do_not_split() -> None:
    text = "```python\nx = 1\n\n# not a heading\n```\n"

    assert split_markdown_sections(text) == [text]


def test_unterminated_fence_keeps_remaining_text_together() -> None:
    text = "Intro text\n```\nstill code\n\nmore"

    assert split_markdown_sections(text) == ["Intro text\n", "```\nstill code\n\nmore"]


@pytest.mark.parametrize(
    ("section", "skip"),
    [
        ("", True),
        ("  \n", True),
        ("```\ncode\n```\n", True),
        ("https://owasp.org/Top10/", True),
        ("42.", True),
        ("---", True),
        ("a b", True),
        ("The end", False),
        ("## Overview", False),
    ],
)
def test_should_skip_translation(section: str, skip: bool) -> None:
    assert should_skip_translation(section) is skip


def test_translate_markdown_translates_prose_and_keeps_layout() -> None:
    seen: List[str] = []

    def shout(text: str, language: str) -> str:
        seen.append(text)
        assert language == "es-ES"
        return f"  {text.upper()}  "

    result = translate_markdown(DOCUMENT, "es-ES", shout)

    assert seen == ["# Title", "Para one\nline two", "After the code"]
    assert result == "# TITLE\n\nPARA ONE\nLINE TWO\n\n```\ncode here\n```\nAFTER THE CODE\n"


def test_translator_errors_propagate() -> None:
    def broken(text: str, language: str) -> str:
        raise RuntimeError("backend down")

    with pytest.raises(RuntimeError):
        translate_markdown("Some words here\n", "es-ES", broken)
