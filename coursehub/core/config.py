from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getint(name: str, default: str) -> int:
    raw = _getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    # Course detail entries are invalidated on every structural change;
    # the TTL only bounds staleness when an invalidation is missed.
    course_cache_ttl: int = 3600
    # Upper bound on how long a progress mutation may hold the
    # per-(user, course) lock when it is backed by Redis.
    progress_lock_timeout: int = 10

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    port = _getint("PORT", "8000")
    course_cache_ttl = _getint("COURSE_CACHE_TTL", "3600")
    progress_lock_timeout = _getint("PROGRESS_LOCK_TIMEOUT", "10")

    if course_cache_ttl <= 0:
        raise ValueError(
            f"COURSE_CACHE_TTL must be positive (got {course_cache_ttl})"
        )
    if progress_lock_timeout <= 0:
        raise ValueError(
            f"PROGRESS_LOCK_TIMEOUT must be positive (got {progress_lock_timeout})"
        )

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        course_cache_ttl=course_cache_ttl,
        progress_lock_timeout=progress_lock_timeout,
    )


SETTINGS = load_settings()
