"""One-time per-language initialization: branch, machine translation, metadata."""

from __future__ import annotations

from typing import Callable, Dict, Iterator, List, Optional

from .errors import GitHubError, TransHubError, TranslationError
from .files import SourceFile, get_file_content_as_text, get_file_sha, list_source_files
from .github.client import GitHubClient
from .logging import get_logger
from .metadata import MetadataStore, count_words, create_initial_metadata
from .models import InitProgress, InitResult, ProjectConfig, TextDirection
from .registry import (
    machine_translation_file_path,
    parse_repo,
    translation_branch_name,
    translation_file_path,
)
from .translation.base import TranslationService

logger = get_logger("initialization")


class LanguageInitializer:
    """Runs the initialization pipeline for one project + language.

    Files are processed sequentially so progress ordering is deterministic and
    the translation quota is consumed one document at a time. Iterate
    :meth:`events` to drive the pipeline; once exhausted, :attr:`result`
    holds the outcome.
    """

    def __init__(
        self,
        client: GitHubClient,
        translator: TranslationService,
        *,
        project: ProjectConfig,
        language_code: str,
        language_name: str,
        direction: TextDirection,
        coordinator: str,
        source_commit: str | None = None,
        web_url: str = "https://github.com",
    ) -> None:
        self.client = client
        self.translator = translator
        self.project = project
        self.language_code = language_code
        self.language_name = language_name
        self.direction = direction
        self.coordinator = coordinator
        self.source_commit = source_commit
        self.web_url = web_url.rstrip("/")
        self.owner, self.repo = parse_repo(project.github_repo)
        self.branch = translation_branch_name(language_code)
        self.result: Optional[InitResult] = None

    def run(self, on_progress: Callable[[InitProgress], None] | None = None) -> InitResult:
        """Drive the pipeline to completion, forwarding each event to ``on_progress``."""
        for event in self.events():
            if on_progress is not None:
                on_progress(event)
        return self.outcome()

    def outcome(self) -> InitResult:
        """Result of a completed run; raises if events() was not driven to the end."""
        if self.result is None:
            raise TransHubError(
                f"Initialization of {self.language_code} for {self.project.slug} has not finished"
            )
        return self.result

    def events(self) -> Iterator[InitProgress]:
        if not self.translator.is_available():
            raise TranslationError(
                f"Translation service {self.translator.name} is not available. Check its API key."
            )

        source_sha = self._resolve_source_commit()
        self._create_branch(source_sha)
        sources = list_source_files(self.client, self.owner, self.repo, self.project, source_sha)
        logger.info(
            "Initializing %s for %s: %d source files at %s",
            self.language_code,
            self.project.slug,
            len(sources),
            source_sha[:7],
        )

        for source in sources:
            yield InitProgress(filename=source.name, status="pending")

        errors: List[str] = []
        texts: Dict[str, str] = {}
        processed = 0
        for source in sources:
            yield InitProgress(filename=source.name, status="translating")
            try:
                text = get_file_content_as_text(
                    self.client, self.owner, self.repo, source.path, source_sha
                )
                texts[source.name] = text
                translated = self.translator.translate_markdown(text, self.language_code)
                self._write(
                    translation_file_path(self.project, self.language_code, source.name),
                    translated,
                    f"[{self.language_code}] Initialize translation for {source.name}",
                )
                self._write(
                    machine_translation_file_path(self.project, self.language_code, source.name),
                    translated,
                    f"[{self.language_code}] Machine translation backup for {source.name}",
                )
            except (TransHubError, ValueError) as exc:
                message = f"Failed to process {source.name}: {exc}"
                logger.warning(message)
                errors.append(message)
                yield InitProgress(filename=source.name, status="error", error=message)
                continue
            processed += 1
            yield InitProgress(filename=source.name, status="complete")

        metadata = create_initial_metadata(
            self.project.slug,
            self.language_code,
            self.language_name,
            self.direction,
            self.coordinator,
            [source.name for source in sources],
            source_sha,
            service_name=self.translator.name,
            word_counts=self._word_counts(sources, texts, source_sha),
        )
        MetadataStore(self.client, self.project, self.language_code, self.branch).save(
            metadata, f"[{self.language_code}] Initialize translation metadata"
        )

        self.result = InitResult(
            success=not errors,
            files_processed=processed,
            errors=errors,
            branch_url=f"{self.web_url}/{self.owner}/{self.repo}/tree/{self.branch}",
            source_commit_sha=source_sha,
        )

    # ------------------------------------------------------------------
    # Pipeline steps

    def _resolve_source_commit(self) -> str:
        if self.source_commit:
            response = self.client.get_commit(self.owner, self.repo, self.source_commit)
            return str(response.data["sha"])
        response = self.client.get_branch(self.owner, self.repo, self.project.source_branch)
        return str(response.data["commit"]["sha"])

    def _create_branch(self, sha: str) -> None:
        try:
            self.client.create_branch(self.owner, self.repo, self.branch, sha)
        except GitHubError as exc:
            # 422: reference already exists
            if exc.status != 422:
                raise
            logger.info("Branch %s already exists; reusing it", self.branch)

    def _write(self, path: str, content: str, message: str) -> None:
        sha = get_file_sha(self.client, self.owner, self.repo, path, self.branch)
        self.client.create_or_update_file(
            self.owner, self.repo, path, content, message, self.branch, sha
        )

    def _word_counts(
        self, sources: List[SourceFile], texts: Dict[str, str], ref: str
    ) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for source in sources:
            text = texts.get(source.name)
            if text is None:
                try:
                    text = get_file_content_as_text(
                        self.client, self.owner, self.repo, source.path, ref
                    )
                except (TransHubError, ValueError) as exc:
                    logger.debug("Word count unavailable for %s: %s", source.name, exc)
                    continue
            counts[source.name] = count_words(text)
        return counts


def initialize_language(
    client: GitHubClient,
    translator: TranslationService,
    *,
    project: ProjectConfig,
    language_code: str,
    language_name: str,
    direction: TextDirection,
    coordinator: str,
    source_commit: str | None = None,
    on_progress: Callable[[InitProgress], None] | None = None,
    web_url: str = "https://github.com",
) -> InitResult:
    """Convenience wrapper around :class:`LanguageInitializer`."""
    initializer = LanguageInitializer(
        client,
        translator,
        project=project,
        language_code=language_code,
        language_name=language_name,
        direction=direction,
        coordinator=coordinator,
        source_commit=source_commit,
        web_url=web_url,
    )
    return initializer.run(on_progress)


__all__ = ["LanguageInitializer", "initialize_language"]
