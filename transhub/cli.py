"""CLI entrypoints for transhub commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .auth import resolve_user
from .config import Settings, load_settings
from .errors import TransHubError
from .forks import check_fork_sync_status
from .github.client import GitHubClient, create_github_client
from .initialization import LanguageInitializer
from .logging import configure_logging
from .metadata import MetadataStore
from .models import InitProgress
from .registry import ProjectRegistry, active_languages, parse_repo, translation_branch_name
from .translation import build_translation_service

_PROGRESS_MARKERS = {"pending": ".", "translating": ">", "complete": "+", "error": "!"}


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_target_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("project", help="Project slug from the projects directory.")
    parser.add_argument("language", help="Language code, e.g. es-ES.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transhub",
        description="Coordinate crowd translation of documentation stored on GitHub.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .transhub.yml or the directory holding it (defaults to cwd).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log records, with timestamps, to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="0.0.0.0", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    init_parser = subparsers.add_parser(
        "init",
        help="Machine-translate a project into a new language and create its branch.",
    )
    _add_verbose_option(init_parser, suppress_default=True)
    _add_target_arguments(init_parser)
    init_parser.add_argument(
        "--source-commit",
        default=None,
        help="Initialize from this upstream commit instead of the source branch tip.",
    )
    init_parser.add_argument(
        "--coordinator",
        default=None,
        help="Coordinator recorded in the metadata (defaults to the token's user).",
    )

    stats_parser = subparsers.add_parser(
        "stats", help="Show translation progress for a project language."
    )
    _add_verbose_option(stats_parser, suppress_default=True)
    _add_target_arguments(stats_parser)

    projects_parser = subparsers.add_parser("projects", help="List configured projects.")
    _add_verbose_option(projects_parser, suppress_default=True)

    sync_parser = subparsers.add_parser(
        "sync-status", help="Compare a contributor's fork branch with upstream."
    )
    _add_verbose_option(sync_parser, suppress_default=True)
    _add_target_arguments(sync_parser)
    sync_parser.add_argument("--user", required=True, help="GitHub login owning the fork.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for transhub commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        settings = load_settings(args.config)
    except TransHubError as exc:
        parser.exit(1, f"{exc}\n")
    registry = ProjectRegistry(settings.projects_dir)

    try:
        if args.command == "serve":
            from .service import run_service

            run_service(host=args.host, port=args.port, settings=settings)
        elif args.command == "projects":
            _print_projects(registry)
        elif args.command == "init":
            code = _run_init(settings, registry, args)
            if code:
                parser.exit(code)
        elif args.command == "stats":
            _print_stats(settings, registry, args.project, args.language)
        elif args.command == "sync-status":
            _print_sync_status(settings, registry, args.project, args.language, args.user)
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except TransHubError as exc:
        parser.exit(
            1, f"transhub {args.command} failed: {exc}\nRun with --verbose for more details.\n"
        )


def _admin_client(settings: Settings) -> GitHubClient:
    return create_github_client(settings.github.admin_token, settings.github)


def _print_projects(registry: ProjectRegistry) -> None:
    projects = registry.all_projects()
    if not projects:
        print(f"No projects configured in {registry.projects_dir}")
        return
    for project in projects:
        codes = ", ".join(code for code, _ in active_languages(project)) or "-"
        print(f"{project.slug}\t{project.github_repo}\t{codes}")


def _run_init(settings: Settings, registry: ProjectRegistry, args: argparse.Namespace) -> int:
    project, language, code = registry.get_language(args.project, args.language)
    client = _admin_client(settings)
    coordinator = args.coordinator or resolve_user(client).username
    initializer = LanguageInitializer(
        client,
        build_translation_service(settings.translation),
        project=project,
        language_code=code,
        language_name=language.name,
        direction=language.direction,
        coordinator=coordinator,
        source_commit=args.source_commit,
        web_url=settings.github.web_url,
    )
    result = initializer.run(_print_progress)
    print(f"Processed {result.files_processed} file(s); branch at {result.branch_url}")
    if result.success:
        return 0
    for error in result.errors:
        print(f"  {error}", file=sys.stderr)
    return 1


def _print_progress(event: InitProgress) -> None:
    if event.status == "pending":
        return
    marker = _PROGRESS_MARKERS.get(event.status, "?")
    print(f"[{marker}] {event.filename} {event.status}")


def _print_stats(settings: Settings, registry: ProjectRegistry, slug: str, language: str) -> None:
    project, config, code = registry.get_language(slug, language)
    store = MetadataStore(_admin_client(settings), project, code, translation_branch_name(code))
    metadata = store.load()
    if metadata is None:
        print(f"{config.name} ({code}) has not been initialized for {project.slug}")
        return
    stats = metadata.stats
    print(f"{project.name} / {config.name} ({code})")
    print(f"  complete:    {stats.completed}/{stats.total_files} ({stats.percent_complete}%)")
    print(f"  in progress: {stats.in_progress}")
    print(f"  not started: {stats.not_started}")
    print(f"  words:       {stats.translated_words}/{stats.total_words}")
    if stats.contributors:
        print(f"  contributors: {', '.join(stats.contributors)}")


def _print_sync_status(
    settings: Settings, registry: ProjectRegistry, slug: str, language: str, user: str
) -> None:
    project, _, code = registry.get_language(slug, language)
    owner, repo = parse_repo(project.github_repo)
    status = check_fork_sync_status(
        _admin_client(settings), user, owner, repo, translation_branch_name(code)
    )
    print(f"{user}:{translation_branch_name(code)} is {status.status}")
    print(f"  behind by {status.behind_by}, ahead by {status.ahead_by}")
    for commit in status.commits:
        print(f"  {commit.sha[:7]} {commit.message.splitlines()[0] if commit.message else ''}")


if __name__ == "__main__":
    main(sys.argv[1:])
