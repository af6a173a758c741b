from __future__ import annotations

import logging
from typing import Dict

import pytest

from tests._fixtures.fake_github import FakeGitHub
from tests._fixtures.translators import StubTranslator
from transhub.initialization import LanguageInitializer
from transhub.models import LanguageConfig, ProjectConfig

SOURCE_FILES: Dict[str, str] = {
    "docs/index.md": "# Welcome\n\nThis project documents the platform.\n",
    "docs/about.md": (
        "# About\n\nThe team writes guides.\n\n```python\nprint('hello')\n```\n"
    ),
    "docs/guide.md": "# Guide\n\nFollow these steps carefully.\n",
    "docs/logo.png": "not-markdown",
    "docs/archive/old.md": "# Old\n\nRetired page.\n",
}


@pytest.fixture
def project() -> ProjectConfig:
    return ProjectConfig(
        slug="demo",
        name="Demo Docs",
        github_repo="acme/docs",
        source_branch="main",
        source_folder="docs",
        translation_folder="translations",
        tmp_folder="translations/{language}/tmp",
        file_pattern="*.md",
        priority_files=("index.md",),
        languages={
            "es-ES": LanguageConfig(name="Spanish"),
            "ar-SA": LanguageConfig(name="Arabic", direction="rtl"),
        },
    )


@pytest.fixture
def github() -> FakeGitHub:
    """Upstream ``acme/docs`` with English sources on ``main``; caller is ``alice``."""
    fake = FakeGitHub(login="alice")
    fake.add_repo("acme", "docs", sha="a" * 40)
    for path, content in SOURCE_FILES.items():
        fake.add_file("acme", "docs", "main", path, content)
    return fake


@pytest.fixture
def translator() -> StubTranslator:
    return StubTranslator()


@pytest.fixture
def initialized(github: FakeGitHub, project: ProjectConfig, translator: StubTranslator) -> FakeGitHub:
    """Upstream after Spanish has been initialized by ``coord``."""
    LanguageInitializer(
        github,  # type: ignore[arg-type]
        translator,
        project=project,
        language_code="es-ES",
        language_name="Spanish",
        direction="ltr",
        coordinator="coord",
    ).run()
    return github


@pytest.fixture(autouse=True)
def _reset_transhub_logger():
    """CLI tests call configure_logging; restore propagation for caplog."""
    yield
    logger = logging.getLogger("transhub")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
