"""CLI parser and command behaviour tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tests._fixtures.fake_github import FakeGitHub
from tests._fixtures.translators import StubTranslator
from transhub.cli import _build_parser, main

PROJECT = {
    "slug": "demo",
    "name": "Demo Docs",
    "githubRepo": "acme/docs",
    "sourceBranch": "main",
    "sourceFolder": "docs",
    "translationFolder": "translations",
    "tmpFolder": "translations/{language}/tmp",
    "filePattern": "*.md",
    "priorityFiles": ["index.md"],
    "languages": {"es-ES": {"name": "Spanish"}, "ar-SA": {"name": "Arabic", "direction": "rtl"}},
}


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch) -> Path:
    for key in ("TRANSHUB_PROJECTS_DIR", "TRANSHUB_ENV", "GITHUB_ADMIN_TOKEN", "DEEPL_API_KEY"):
        monkeypatch.delenv(key, raising=False)
    (tmp_path / ".transhub.yml").write_text(
        "projects_dir: projects\ngithub:\n  admin_token: admin-token\n", encoding="utf-8"
    )
    projects = tmp_path / "projects"
    projects.mkdir()
    (projects / "demo.json").write_text(json.dumps(PROJECT), encoding="utf-8")
    return tmp_path


@pytest.fixture
def remote(github: FakeGitHub, monkeypatch) -> FakeGitHub:
    monkeypatch.setattr("transhub.cli.create_github_client", lambda token, settings=None: github)
    return github


def test_cli_accepts_verbose_before_command() -> None:
    args = _build_parser().parse_args(["--verbose", "projects"])
    assert args.verbose is True
    assert args.command == "projects"


def test_cli_accepts_verbose_after_command() -> None:
    args = _build_parser().parse_args(["stats", "demo", "es-ES", "--verbose"])
    assert args.verbose is True
    assert (args.project, args.language) == ("demo", "es-ES")


def test_cli_init_options() -> None:
    args = _build_parser().parse_args(
        ["init", "demo", "es-ES", "--source-commit", "abc1234", "--coordinator", "coord"]
    )
    assert args.command == "init"
    assert args.source_commit == "abc1234"
    assert args.coordinator == "coord"


def test_cli_serve_defaults() -> None:
    args = _build_parser().parse_args(["serve"])
    assert (args.host, args.port) == ("0.0.0.0", 8000)
    assert args.verbose is False


def test_cli_sync_status_requires_user() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["sync-status", "demo", "es-ES"])


def test_projects_command_lists_projects(workspace: Path, capsys) -> None:
    main(["--config", str(workspace), "projects"])

    assert capsys.readouterr().out == "demo\tacme/docs\tes-ES, ar-SA\n"


def test_init_command_reports_progress(
    workspace: Path, remote: FakeGitHub, monkeypatch, capsys
) -> None:
    monkeypatch.setattr("transhub.cli.build_translation_service", lambda settings: StubTranslator())

    main(["--config", str(workspace), "init", "demo", "es-ES"])

    out = capsys.readouterr().out
    assert "[+] index.md complete" in out
    assert "Processed 3 file(s); branch at https://github.com/acme/docs/tree/translations/es-ES" in out
    assert remote.read("acme", "docs", "translations/es-ES", "translations/es-ES/translation.json")


def test_init_command_exits_non_zero_on_partial_failure(
    workspace: Path, remote: FakeGitHub, monkeypatch, capsys
) -> None:
    monkeypatch.setattr(
        "transhub.cli.build_translation_service",
        lambda settings: StubTranslator(fail_on=["Follow these steps"]),
    )

    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(workspace), "init", "demo", "es-ES", "--coordinator", "coord"])

    assert excinfo.value.code == 1
    captured = capsys.readouterr()
    assert "[!] guide.md error" in captured.out
    assert "Failed to process guide.md" in captured.err


def test_stats_command_before_initialization(
    workspace: Path, remote: FakeGitHub, capsys
) -> None:
    main(["--config", str(workspace), "stats", "demo", "es-ES"])

    assert capsys.readouterr().out == "Spanish (es-ES) has not been initialized for demo\n"


def test_stats_command_after_initialization(
    workspace: Path, initialized: FakeGitHub, monkeypatch, capsys
) -> None:
    monkeypatch.setattr(
        "transhub.cli.create_github_client", lambda token, settings=None: initialized
    )

    main(["--config", str(workspace), "stats", "demo", "es-ES"])

    out = capsys.readouterr().out
    assert out.startswith("Demo Docs / Spanish (es-ES)\n")
    assert "complete:    0/3 (0%)" in out
    assert "not started: 3" in out


def test_sync_status_command(workspace: Path, remote: FakeGitHub, capsys) -> None:
    remote.comparisons[("bob:translations/es-ES", "acme:translations/es-ES")] = {
        "behind_by": 1,
        "ahead_by": 2,
        "commits": [{"sha": "f" * 40, "commit": {"message": "Update index\n\nbody"}}],
    }

    main(["--config", str(workspace), "sync-status", "demo", "es-ES", "--user", "bob"])

    out = capsys.readouterr().out
    assert "bob:translations/es-ES is diverged" in out
    assert "behind by 1, ahead by 2" in out
    assert "fffffff Update index" in out


def test_errors_exit_with_message(workspace: Path, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(workspace), "stats", "missing", "es-ES"])

    assert excinfo.value.code == 1
    assert "transhub stats failed: Project configuration not found: missing" in capsys.readouterr().err


def test_log_file_option_writes_records(workspace: Path, remote: FakeGitHub, monkeypatch) -> None:
    monkeypatch.setattr("transhub.cli.build_translation_service", lambda settings: StubTranslator())
    log_file = workspace / "transhub.log"

    main(["--config", str(workspace), "--log-file", str(log_file), "init", "demo", "es-ES"])

    assert "transhub.initialization" in log_file.read_text(encoding="utf-8")
