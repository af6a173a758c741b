"""Tests for translation.json bookkeeping."""

from __future__ import annotations

import re
from dataclasses import replace

import pytest

from tests._fixtures.fake_github import FakeGitHub
from transhub.errors import ConflictError, NotFoundError
from transhub.metadata import (
    MetadataStore,
    calculate_stats,
    contributor_stats,
    count_words,
    create_initial_metadata,
    next_timestamp,
    parse_metadata,
    serialize_metadata,
    update_file,
)
from transhub.models import COMPLETE, IN_PROGRESS, NOT_STARTED, FileMetadata, ProjectConfig

METADATA_PATH = "translations/es-ES/translation.json"
BRANCH = "translations/es-ES"
TIMESTAMP = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


def _metadata():
    return create_initial_metadata(
        "demo", "es-ES", "Spanish", "ltr", "coord", ["a.md", "b.md", "c.md"], "abc123",
        word_counts={"a.md": 10, "b.md": 20, "c.md": 30},
    )


def test_calculate_stats_aggregates_entries() -> None:
    files = {
        "a.md": FileMetadata(status=COMPLETE, last_contributor="bob", word_count=10),
        "b.md": FileMetadata(status=IN_PROGRESS, last_contributor="carol", word_count=20),
        "c.md": FileMetadata(status=NOT_STARTED, last_contributor="bob", word_count=30),
        "d.md": FileMetadata(status=NOT_STARTED),
    }

    stats = calculate_stats(files)

    assert stats.total_files == 4
    assert (stats.completed, stats.in_progress, stats.not_started) == (1, 1, 2)
    assert stats.completed + stats.in_progress + stats.not_started == stats.total_files
    assert stats.percent_complete == 25
    assert stats.total_words == 60
    assert stats.translated_words == 10
    assert stats.contributors == ["bob", "carol"]


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [(1, 3, 33), (2, 3, 67), (1, 8, 13), (3, 8, 38), (0, 5, 0), (5, 5, 100), (0, 0, 0)],
)
def test_percent_complete_rounds_half_up(completed: int, total: int, expected: int) -> None:
    files = {
        f"f{i}.md": FileMetadata(status=COMPLETE if i < completed else NOT_STARTED)
        for i in range(total)
    }

    assert calculate_stats(files).percent_complete == expected


def test_initial_metadata_marks_everything_machine_translated() -> None:
    metadata = _metadata()

    assert metadata.version == "1.0"
    assert metadata.initialized == metadata.last_updated
    assert TIMESTAMP.match(metadata.initialized)
    assert all(entry.status == NOT_STARTED for entry in metadata.files.values())
    assert all(entry.machine_translated and not entry.human_reviewed for entry in metadata.files.values())
    assert metadata.stats.total_words == 60
    assert metadata.meta.source_commit_sha == "abc123"
    assert metadata.meta.machine_translation_service == "DeepL"


def test_update_file_is_idempotent_apart_from_timestamps() -> None:
    original = _metadata()
    updates = {"status": IN_PROGRESS, "last_contributor": "bob", "last_commit_sha": "c1"}

    first = update_file(original, "a.md", updates)
    second = update_file(first, "a.md", updates)

    assert replace(first.files["a.md"], last_updated=None) == replace(
        second.files["a.md"], last_updated=None
    )
    assert first.stats == second.stats
    assert second.files["a.md"].last_updated > first.files["a.md"].last_updated
    assert second.last_updated > first.last_updated
    assert TIMESTAMP.match(second.last_updated)
    assert original.files["a.md"].status == NOT_STARTED


def test_update_file_synthesises_missing_entries() -> None:
    updated = update_file(_metadata(), "new.md", {"status": IN_PROGRESS})

    entry = updated.files["new.md"]
    assert entry.status == IN_PROGRESS
    assert entry.word_count == 0
    assert updated.stats.total_files == 4
    assert updated.stats.in_progress == 1


def test_update_file_rejects_unknown_fields_and_statuses() -> None:
    with pytest.raises(ValueError):
        update_file(_metadata(), "a.md", {"colour": "blue"})
    with pytest.raises(ValueError):
        update_file(_metadata(), "a.md", {"status": "done"})


def test_rapid_updates_always_advance_timestamps() -> None:
    metadata = _metadata()
    stamps = []
    for _ in range(200):
        metadata = update_file(metadata, "a.md", {"status": IN_PROGRESS})
        stamps.append(metadata.files["a.md"].last_updated)

    assert all(later > earlier for earlier, later in zip(stamps, stamps[1:]))
    assert all(TIMESTAMP.match(stamp) for stamp in stamps)


def test_next_timestamp_moves_past_future_values() -> None:
    future = "2999-01-01T00:00:00.000Z"

    assert next_timestamp(future) == "2999-01-01T00:00:00.001Z"
    assert next_timestamp(None, "") < future


def test_count_words_ignores_code_and_markup() -> None:
    text = "# Title here\n\nSome *bold* words and `inline code`\n\n```\nignored code\n```\n"

    assert count_words(text) == 6


def test_serialised_document_uses_camel_case_and_round_trips() -> None:
    metadata = update_file(_metadata(), "a.md", {"status": COMPLETE, "pr_number": 7})

    text = serialize_metadata(metadata)

    assert '"languageName": "Spanish"' in text
    assert '"prNumber": 7' in text
    assert parse_metadata(text) == metadata


def test_contributor_stats_counts_completed_files() -> None:
    files = {
        "a.md": FileMetadata(status=COMPLETE, last_contributor="bob", last_updated="2024-01-02T00:00:00.000Z"),
        "b.md": FileMetadata(status=COMPLETE, last_contributor="bob", last_updated="2024-03-01T00:00:00.000Z"),
        "c.md": FileMetadata(status=IN_PROGRESS, last_contributor="bob", last_updated="2024-05-01T00:00:00.000Z"),
    }

    assert contributor_stats(files.items(), "bob") == {
        "completedFiles": 2,
        "lastSession": "2024-03-01T00:00:00.000Z",
    }
    assert contributor_stats(files.items(), "eve") == {"completedFiles": 0, "lastSession": None}


# ----------------------------------------------------------------------
# Store


def test_load_returns_none_before_initialization(github: FakeGitHub, project: ProjectConfig) -> None:
    github.add_branch("acme", "docs", BRANCH, "a" * 40)
    store = MetadataStore(github, project, "es-ES", BRANCH)  # type: ignore[arg-type]

    assert store.load() is None
    assert store.load_with_sha() == (None, None)


def test_save_then_load_round_trips(initialized: FakeGitHub, project: ProjectConfig) -> None:
    store = MetadataStore(initialized, project, "es-ES", BRANCH)  # type: ignore[arg-type]
    loaded = store.load()
    assert loaded is not None

    store.save(loaded, "rewrite")

    assert store.load() == loaded


def test_update_retries_when_document_changes_underneath(
    initialized: FakeGitHub, project: ProjectConfig
) -> None:
    store = MetadataStore(initialized, project, "es-ES", BRANCH)  # type: ignore[arg-type]
    other = MetadataStore(initialized, project, "es-ES", BRANCH)  # type: ignore[arg-type]

    def concurrent_writer(owner: str, repo: str, branch: str, path: str) -> None:
        other.update("guide.md", {"status": IN_PROGRESS, "last_contributor": "carol"}, "carol")

    initialized.before_write = concurrent_writer
    store.update("index.md", {"status": IN_PROGRESS, "last_contributor": "bob"}, "bob")

    final = store.load()
    assert final is not None
    assert final.files["index.md"].last_contributor == "bob"
    assert final.files["guide.md"].last_contributor == "carol"
    assert final.stats.in_progress == 2
    assert final.stats.contributors == ["bob", "carol"]


def test_update_gives_up_after_repeated_conflicts(
    initialized: FakeGitHub, project: ProjectConfig
) -> None:
    store = MetadataStore(initialized, project, "es-ES", BRANCH)  # type: ignore[arg-type]
    initialized.write_conflicts[METADATA_PATH] = 5

    with pytest.raises(ConflictError):
        store.update("index.md", {"status": IN_PROGRESS}, "msg", attempts=2)

    assert initialized.write_conflicts[METADATA_PATH] == 3


def test_update_requires_existing_document(github: FakeGitHub, project: ProjectConfig) -> None:
    github.add_branch("acme", "docs", BRANCH, "a" * 40)
    store = MetadataStore(github, project, "es-ES", BRANCH)  # type: ignore[arg-type]

    with pytest.raises(NotFoundError):
        store.update("index.md", {"status": IN_PROGRESS}, "msg")


def test_mark_file_complete_links_pull_request(
    initialized: FakeGitHub, project: ProjectConfig
) -> None:
    store = MetadataStore(initialized, project, "es-ES", BRANCH)  # type: ignore[arg-type]

    updated = store.mark_file_complete("about.md", "bob", "c9", 12, "https://example/pull/12")

    entry = updated.files["about.md"]
    assert entry.status == COMPLETE
    assert (entry.pr_number, entry.pr_url, entry.last_commit_sha) == (12, "https://example/pull/12", "c9")
    assert entry.human_reviewed is True
    assert initialized.writes[-1]["message"] == "[es-ES] Mark about.md as complete (PR #12)"
