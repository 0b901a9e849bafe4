"""
Runtime configuration.

Values come from environment variables prefixed with SCHOOLDASH_. The APP_ENV
variable selects a set of defaults (development, testing, production) the
same way a per-environment settings module would; explicit variables always
win over those defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional


ENV_PREFIX = "SCHOOLDASH_"


@dataclass(frozen=True)
class Config:
    env: str
    api_base_url: str
    user_role: str
    user_id: str
    instructor_id: int
    timeout: float
    details_timeout: float
    settings_path: Path
    log_level: str

    def with_overrides(self, **changes: object) -> "Config":
        """Return a copy with the non-None keyword values applied."""
        clean = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **clean)


_ENV_DEFAULTS: dict[str, dict[str, str]] = {
    "development": {"LOG_LEVEL": "DEBUG"},
    "testing": {"LOG_LEVEL": "WARNING", "TIMEOUT": "5", "DETAILS_TIMEOUT": "5"},
    "production": {"LOG_LEVEL": "INFO"},
}


def resolve_env(raw: Optional[str]) -> str:
    env = (raw or "development").strip().lower()
    if env in {"prod", "production"}:
        return "production"
    if env in {"test", "testing"}:
        return "testing"
    return "development"


def _default_settings_path() -> Path:
    return Path.home() / ".schooldash" / "academic-calendar-settings.json"


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Build a Config from the process environment (or the given mapping).

    Numeric values that do not parse fall back to their defaults.
    """
    environ = os.environ if environ is None else environ
    env = resolve_env(environ.get("APP_ENV"))
    env_defaults = _ENV_DEFAULTS[env]

    def get(key: str, default: str) -> str:
        value = environ.get(ENV_PREFIX + key)
        if value is None or not value.strip():
            return env_defaults.get(key, default)
        return value.strip()

    def get_number(key: str, default: str, cast):
        try:
            return cast(get(key, default))
        except ValueError:
            return cast(env_defaults.get(key, default))

    settings_raw = get("SETTINGS_PATH", "")
    settings_path = Path(settings_raw).expanduser() if settings_raw else _default_settings_path()

    return Config(
        env=env,
        api_base_url=get("API_BASE_URL", "http://localhost:3000").rstrip("/"),
        user_role=get("USER_ROLE", "ADMIN"),
        user_id=get("USER_ID", "1"),
        instructor_id=get_number("INSTRUCTOR_ID", "7", int),
        timeout=get_number("TIMEOUT", "30", float),
        details_timeout=get_number("DETAILS_TIMEOUT", "15", float),
        settings_path=settings_path,
        log_level=get("LOG_LEVEL", "INFO").upper(),
    )
