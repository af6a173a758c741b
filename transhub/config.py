"""Settings loading for transhub (.transhub.yml plus environment overrides)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".transhub.yml"
ENVIRONMENTS = ("development", "production")


@dataclass
class GitHubSettings:
    """Hosting API client behaviour."""

    api_url: str = "https://api.github.com"
    web_url: str = "https://github.com"
    admin_token: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    rate_limit_warning_threshold: int = 100
    fork_settle_delay: float = 2.0


@dataclass
class TranslationSettings:
    """Machine translation backend selection."""

    service: str = "deepl"
    api_key: Optional[str] = None
    api_url: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    request_timeout: float = 60.0


@dataclass
class LimitSettings:
    """Request throttling and metadata retry budgets."""

    init_per_window: int = 5
    init_window_seconds: float = 3600.0
    metadata_update_attempts: int = 3


@dataclass
class Settings:
    """Represents the high-level settings defined in .transhub.yml."""

    root: Path
    projects_dir: Path
    environment: str = "development"
    admin_users: List[str] = field(default_factory=list)
    github: GitHubSettings = field(default_factory=GitHubSettings)
    translation: TranslationSettings = field(default_factory=TranslationSettings)
    limits: LimitSettings = field(default_factory=LimitSettings)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def load_settings(
    config_path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> Settings:
    """Load settings from disk, then apply environment overrides."""
    env = os.environ if environ is None else environ
    config_file = _resolve_config_path(config_path or Path.cwd())
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    projects_dir_str = _as_str(data.get("projects_dir")) or "config/projects"
    environment = _as_str(data.get("environment")) or "development"

    github = GitHubSettings()
    github_data = _as_dict(data.get("github"))
    if github_data:
        github.api_url = (_as_str(github_data.get("api_url")) or github.api_url).rstrip("/")
        github.web_url = (_as_str(github_data.get("web_url")) or github.web_url).rstrip("/")
        github.admin_token = _as_str(github_data.get("admin_token"))
        github.timeout = _as_float(github_data.get("timeout"), github.timeout)
        github.max_retries = _as_int(github_data.get("max_retries"), github.max_retries)
        github.retry_delay = _as_float(github_data.get("retry_delay"), github.retry_delay)
        github.rate_limit_warning_threshold = _as_int(
            github_data.get("rate_limit_warning_threshold"),
            github.rate_limit_warning_threshold,
        )
        github.fork_settle_delay = _as_float(
            github_data.get("fork_settle_delay"), github.fork_settle_delay
        )

    translation = TranslationSettings()
    translation_data = _as_dict(data.get("translation"))
    if translation_data:
        translation.service = (_as_str(translation_data.get("service")) or translation.service).lower()
        translation.api_key = _as_str(translation_data.get("api_key"))
        translation.api_url = _as_str(translation_data.get("api_url"))
        translation.model = _as_str(translation_data.get("model"))
        translation.base_url = _as_str(translation_data.get("base_url"))
        translation.request_timeout = _as_float(
            translation_data.get("request_timeout"), translation.request_timeout
        )

    limits = LimitSettings()
    limits_data = _as_dict(data.get("limits"))
    if limits_data:
        limits.init_per_window = _as_int(limits_data.get("init_per_window"), limits.init_per_window)
        limits.init_window_seconds = _as_float(
            limits_data.get("init_window_seconds"), limits.init_window_seconds
        )
        limits.metadata_update_attempts = _as_int(
            limits_data.get("metadata_update_attempts"), limits.metadata_update_attempts
        )

    settings = Settings(
        root=root,
        projects_dir=root / projects_dir_str,
        environment=environment,
        admin_users=_as_str_list(data.get("admin_users")),
        github=github,
        translation=translation,
        limits=limits,
    )
    _apply_environment(settings, env)

    if settings.environment not in ENVIRONMENTS:
        raise ConfigError(
            f"Unknown environment '{settings.environment}'. Expected one of: {', '.join(ENVIRONMENTS)}"
        )
    if settings.translation.service not in ("deepl", "llm"):
        raise ConfigError(f"Unknown translation service '{settings.translation.service}'")
    return settings


def _apply_environment(settings: Settings, env: Mapping[str, str]) -> None:
    admin_token = env.get("GITHUB_ADMIN_TOKEN")
    if admin_token:
        settings.github.admin_token = admin_token
    deepl_key = env.get("DEEPL_API_KEY")
    if deepl_key and settings.translation.service == "deepl":
        settings.translation.api_key = deepl_key
    admin_users = env.get("TRANSHUB_ADMIN_USERS") or env.get("ADMIN_USERS")
    if admin_users:
        settings.admin_users = [user.strip() for user in admin_users.split(",") if user.strip()]
    environment = env.get("TRANSHUB_ENV")
    if environment:
        settings.environment = environment.strip().lower()
    projects_dir = env.get("TRANSHUB_PROJECTS_DIR")
    if projects_dir:
        settings.projects_dir = Path(projects_dir).expanduser().resolve()


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "GitHubSettings",
    "LimitSettings",
    "Settings",
    "TranslationSettings",
    "load_settings",
]
