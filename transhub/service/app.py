"""FastAPI application exposing the translation hub operations."""

from __future__ import annotations

import asyncio
import math
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, TypeVar

import uvicorn
from fastapi import Depends, FastAPI, Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from ..auth import SessionUser, parse_bearer_token, require_admin, resolve_user
from ..config import Settings, load_settings
from ..errors import ConfigError, ConflictError, QuotaExceededError, TransHubError
from ..github.client import GitHubClient, create_github_client
from ..initialization import LanguageInitializer
from ..logging import get_logger
from ..metadata import MetadataStore
from ..models import InitProgress
from ..ratelimit import RateLimiter
from ..registry import ProjectRegistry, active_languages, translation_branch_name
from ..translation import TranslationService, build_translation_service
from ..validation import (
    InitLanguageRequest,
    SaveDraftRequest,
    SubmitRequest,
    validate_language_code,
    validate_project_slug,
)
from ..workflow import ContributionWorkflow

logger = get_logger("service")

T = TypeVar("T")
ClientFactory = Callable[[str], GitHubClient]
TranslatorFactory = Callable[[], TranslationService]

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


class HealthResponse(BaseModel):
    status: str


async def _run_blocking(func: Callable[[], T]) -> T:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:  # pragma: no cover - fallback path when not in async context
        return func()
    return await loop.run_in_executor(None, func)


def _success(data: Any = None, message: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    payload: Dict[str, Any] = {"success": True, "data": data}
    if message is not None:
        payload["message"] = message
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def create_app(
    settings: Settings | None = None,
    *,
    registry: ProjectRegistry | None = None,
    client_factory: ClientFactory | None = None,
    translator_factory: TranslatorFactory | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Create the FastAPI application exposing transhub operations.

    Collaborators default to the ones described by ``settings``; tests inject
    fakes through the keyword arguments. The rate limiter lives as long as the
    returned application.
    """
    settings = settings or load_settings()
    registry = registry or ProjectRegistry(settings.projects_dir)
    if client_factory is None:
        client_factory = lambda token: create_github_client(token, settings.github)  # noqa: E731
    if translator_factory is None:
        translator_factory = lambda: build_translation_service(settings.translation)  # noqa: E731
    limiter = rate_limiter or RateLimiter(
        settings.limits.init_per_window, settings.limits.init_window_seconds
    )

    app = FastAPI(title="TransHub Service", version="1.0.0")
    app.state.settings = settings
    app.state.registry = registry
    app.state.rate_limiter = limiter

    # ------------------------------------------------------------------
    # Error envelope

    def _error(
        code: str,
        message: str,
        status_code: int,
        details: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> JSONResponse:
        error: Dict[str, Any] = {"code": code, "message": message}
        if details is not None and not settings.is_production:
            error["details"] = details
        return JSONResponse(
            status_code=status_code,
            content=jsonable_encoder({"success": False, "error": error}),
            headers=headers,
        )

    @app.exception_handler(TransHubError)
    async def transhub_error_handler(_: Request, exc: TransHubError) -> JSONResponse:
        status_code = exc.http_status
        if status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc, exc_info=exc)
        headers = None
        reset_at = getattr(exc, "reset_at", None)
        if status_code == 429 and isinstance(reset_at, datetime):
            seconds = math.ceil((reset_at - datetime.now(UTC)).total_seconds())
            headers = {"Retry-After": str(max(1, seconds))}
        message = exc.message
        if status_code == 500 and settings.is_production:
            message = "An internal error occurred"
        return _error(exc.code, message, status_code, exc.details, headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        return _validation_response(exc.errors())

    @app.exception_handler(ValidationError)
    async def validation_handler(_: Request, exc: ValidationError) -> JSONResponse:
        return _validation_response(exc.errors())

    def _validation_response(errors: Any) -> JSONResponse:
        messages = []
        for err in errors:
            location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            messages.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
        return _error(
            "VALIDATION_ERROR",
            f"Validation error: {', '.join(messages)}",
            400,
            [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in errors],
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error: %s", exc)
        message = "An internal error occurred" if settings.is_production else str(exc)
        return _error("INTERNAL_ERROR", message, 500)

    @app.middleware("http")
    async def security_headers(request: Request, call_next: Callable[[Request], Any]) -> Any:
        response = await call_next(request)
        for name, value in _SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if settings.is_production:
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response

    # ------------------------------------------------------------------
    # Dependencies

    async def get_token(authorization: Optional[str] = Header(default=None)) -> str:
        return parse_bearer_token(authorization)

    def _identify(token: str) -> tuple[GitHubClient, SessionUser]:
        client = client_factory(token)
        return client, resolve_user(client)

    def _admin_client() -> Optional[GitHubClient]:
        token = settings.github.admin_token
        return client_factory(token) if token else None

    def _workflow(token: str, project_slug: str, language: str) -> ContributionWorkflow:
        validate_project_slug(project_slug)
        validate_language_code(language)
        project, _, code = registry.get_language(project_slug, language)
        client, user = _identify(token)
        return ContributionWorkflow(
            client,
            user.username,
            project,
            code,
            admin_client=_admin_client(),
            metadata_attempts=settings.limits.metadata_update_attempts,
            web_url=settings.github.web_url,
            settle_delay=settings.github.fork_settle_delay,
        )

    # ------------------------------------------------------------------
    # Routes

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/projects")
    async def list_projects() -> JSONResponse:
        projects = await _run_blocking(registry.all_projects)
        summaries = [
            {
                "slug": project.slug,
                "name": project.name,
                "githubRepo": project.github_repo,
                "languages": len(project.languages),
                "activeLanguages": len(active_languages(project)),
            }
            for project in projects
        ]
        return JSONResponse(content={"success": True, "projects": summaries})

    @app.get("/{project}/admin/dashboard")
    async def admin_dashboard(project: str, token: str = Depends(get_token)) -> JSONResponse:
        def _load() -> Dict[str, Any]:
            validate_project_slug(project)
            _, user = _identify(token)
            require_admin(user.username, settings.admin_users)
            config = registry.get_project(project)
            return {
                "project": config.to_dict(),
                "activeLanguages": [
                    {"code": code, **language.to_dict()}
                    for code, language in active_languages(config)
                ],
            }

        return _success(await _run_blocking(_load))

    @app.post("/{project}/admin/init/{language}")
    async def init_language(
        project: str,
        language: str,
        payload: Optional[InitLanguageRequest] = None,
        token: str = Depends(get_token),
    ) -> JSONResponse:
        options = payload or InitLanguageRequest()

        def _initialize() -> JSONResponse:
            validate_project_slug(project)
            validate_language_code(language)
            _, user = _identify(token)
            try:
                require_admin(user.username, settings.admin_users)
            except TransHubError:
                logger.warning(
                    "Unauthorized admin access attempt by %s on %s", user.username, project
                )
                raise

            verdict = limiter.check(f"init:{user.username}")
            if not verdict.allowed:
                retry_after = verdict.retry_after(limiter.clock())
                logger.warning("Initialization rate limit exceeded for %s", user.username)
                raise QuotaExceededError(
                    "Rate limit exceeded",
                    reset_at=datetime.now(UTC) + timedelta(seconds=retry_after),
                    details={"retryAfter": retry_after},
                )

            config, language_config, code = registry.get_language(project, language)
            admin_client = _admin_client()
            if admin_client is None:
                raise ConfigError(
                    "Admin token not configured",
                    details="GITHUB_ADMIN_TOKEN environment variable not set",
                )
            if not options.force:
                existing = MetadataStore(
                    admin_client, config, code, translation_branch_name(code)
                ).load()
                if existing is not None:
                    raise ConflictError(
                        f"{language_config.name} is already initialized; pass force to re-run"
                    )

            logger.info(
                "Starting initialization of %s for %s by %s", code, project, user.username
            )
            initializer = LanguageInitializer(
                admin_client,
                translator_factory(),
                project=config,
                language_code=code,
                language_name=language_config.name,
                direction=language_config.direction,
                coordinator=user.username,
                source_commit=options.source_commit,
                web_url=settings.github.web_url,
            )
            progress: List[InitProgress] = []
            for event in initializer.events():
                logger.debug("Initialization progress: %s %s", event.filename, event.status)
                progress.append(event)
            result = initializer.outcome()

            body = {
                "filesProcessed": result.files_processed,
                "branchUrl": result.branch_url,
                "sourceCommitSha": result.source_commit_sha,
                "progress": [event.to_dict() for event in progress],
            }
            if not result.success:
                logger.error(
                    "Initialization of %s completed with %d errors", code, len(result.errors)
                )
                return JSONResponse(
                    status_code=207,
                    content={
                        "success": False,
                        "error": {
                            "code": "INTERNAL_ERROR",
                            "message": "Language initialization completed with errors",
                            "details": {**body, "errors": list(result.errors)},
                        },
                    },
                )
            logger.info("Initialized %s: %d files", code, result.files_processed)
            return _success(body, f"Successfully initialized {language_config.name} translation")

        return await _run_blocking(_initialize)

    @app.get("/{project}/translate/{language}/dashboard")
    async def dashboard(project: str, language: str, token: str = Depends(get_token)) -> JSONResponse:
        def _load() -> Dict[str, Any]:
            return _workflow(token, project, language).dashboard().to_dict()

        return _success(await _run_blocking(_load))

    @app.get("/{project}/translate/{language}/file/{filename}")
    async def file_view(
        project: str, language: str, filename: str, token: str = Depends(get_token)
    ) -> JSONResponse:
        def _load() -> Dict[str, Any]:
            return _workflow(token, project, language).file_view(filename).to_dict()

        return _success(await _run_blocking(_load))

    @app.post("/{project}/translate/{language}/save")
    async def save_draft(
        project: str, language: str, payload: SaveDraftRequest, token: str = Depends(get_token)
    ) -> JSONResponse:
        def _save() -> Dict[str, Any]:
            workflow = _workflow(token, project, language)
            return workflow.save_draft(payload.filename, payload.content).to_dict()

        return _success(await _run_blocking(_save), "Draft saved successfully")

    @app.post("/{project}/translate/{language}/pr")
    async def submit(
        project: str, language: str, payload: SubmitRequest, token: str = Depends(get_token)
    ) -> JSONResponse:
        def _submit() -> JSONResponse:
            workflow = _workflow(token, project, language)
            result = workflow.submit(payload.filename, payload.content, payload.message)
            return _success(result.to_dict(), result.message)

        return await _run_blocking(_submit)

    @app.get("/{project}/translate/{language}/sync")
    async def sync_status(project: str, language: str, token: str = Depends(get_token)) -> JSONResponse:
        def _check() -> Dict[str, Any]:
            status = _workflow(token, project, language).sync_status()
            return {"syncStatus": status.to_dict()}

        return _success(await _run_blocking(_check))

    @app.post("/{project}/translate/{language}/sync")
    async def sync(project: str, language: str, token: str = Depends(get_token)) -> JSONResponse:
        def _sync() -> Dict[str, Any]:
            result = _workflow(token, project, language).sync()
            return {
                **result.to_dict(),
                "message": "Fork synced successfully"
                if result.success
                else "Sync failed due to conflicts",
            }

        return _success(await _run_blocking(_sync))

    return app


def run_service(
    host: str = "0.0.0.0", port: int = 8000, settings: Settings | None = None
) -> None:  # pragma: no cover - integration path
    app = create_app(settings)
    uvicorn.run(app, host=host, port=port)


__all__ = ["HealthResponse", "create_app", "run_service"]
