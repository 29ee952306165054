from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

# Categories the course validator accepts unless COURSE_CATEGORIES overrides them.
# The storefront has advertised other categories (Data Science, Finance, ...);
# which list wins is a deployment decision, not a code one.
DEFAULT_COURSE_CATEGORIES: tuple[str, ...] = (
    "Programming",
    "Design",
    "Business",
    "Marketing",
    "Other",
)


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    data_dir: str | None = None
    course_categories: tuple[str, ...] = DEFAULT_COURSE_CATEGORIES
    provider_latency_scale: float = 1.0
    payment_timeout_minutes: int = 30
    seed_admin_email: str = "admin@coursegate.local"
    seed_admin_password: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def store_backend(self) -> str:
        """Which document store the process will use: sql | json | memory."""
        if self.database_url:
            return "sql"
        if self.data_dir:
            return "json"
        return "memory"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    log_json = _parse_bool("LOG_JSON", _getenv("LOG_JSON", "false"))

    categories_raw = _getenv("COURSE_CATEGORIES", "")
    if categories_raw:
        categories = tuple(c.strip() for c in categories_raw.split(",") if c.strip())
        if not categories:
            raise ValueError("COURSE_CATEGORIES must list at least one category")
    else:
        categories = DEFAULT_COURSE_CATEGORIES

    latency_raw = _getenv("PROVIDER_LATENCY_SCALE", "1.0")
    try:
        latency_scale = float(latency_raw)
    except ValueError:
        raise ValueError(
            f"PROVIDER_LATENCY_SCALE must be a number (got {latency_raw!r})"
        ) from None
    if latency_scale < 0:
        raise ValueError(
            f"PROVIDER_LATENCY_SCALE must be >= 0 (got {latency_raw!r})"
        )

    timeout_raw = _getenv("PAYMENT_TIMEOUT_MINUTES", "30")
    try:
        payment_timeout = int(timeout_raw)
    except ValueError:
        raise ValueError(
            f"PAYMENT_TIMEOUT_MINUTES must be an integer (got {timeout_raw!r})"
        ) from None
    if payment_timeout <= 0:
        raise ValueError(
            f"PAYMENT_TIMEOUT_MINUTES must be positive (got {timeout_raw!r})"
        )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json,
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        data_dir=_getenv("DATA_DIR", "") or None,
        course_categories=categories,
        provider_latency_scale=latency_scale,
        payment_timeout_minutes=payment_timeout,
        seed_admin_email=_getenv("SEED_ADMIN_EMAIL", "admin@coursegate.local").lower(),
        seed_admin_password=_getenv("SEED_ADMIN_PASSWORD", "") or None,
    )


SETTINGS = load_settings()
