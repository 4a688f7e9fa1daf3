"""
Environment-driven settings.

create_app() loads `.env` (python-dotenv) before calling load_config(), so
values in that file behave exactly like exported variables.
"""

import logging
import os
from dataclasses import dataclass

PRODUCTION_ENVS = ("prod", "production")
DEFAULT_SECRET_KEY = "change-me"
_TRUTHY = ("1", "true", "yes", "on")


def _env(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_flag(name: str) -> bool:
    return _env(name).lower() in _TRUTHY


def _log_level(raw: str) -> str:
    level = raw.upper()
    return level if isinstance(logging.getLevelName(level), int) else "INFO"


@dataclass(frozen=True)
class StorageSettings:
    backend: str
    local_dir: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    def missing_s3_vars(self) -> list[str]:
        if self.backend != "s3":
            return []
        required = {
            "S3_ENDPOINT": self.s3_endpoint,
            "S3_BUCKET": self.s3_bucket,
            "S3_ACCESS_KEY_ID": self.s3_access_key_id,
            "S3_SECRET_ACCESS_KEY": self.s3_secret_access_key,
        }
        return [name for name, value in required.items() if not value]


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    site_name: str
    log_level: str

    use_mock_data: bool
    media_max_bytes: int
    session_days: int
    login_rate_limit: int
    login_rate_window: int

    storage: StorageSettings

    @property
    def is_production(self) -> bool:
        return self.env.lower() in PRODUCTION_ENVS

    def production_problems(self) -> list[str]:
        """Reasons this configuration must not serve production traffic."""
        if not self.is_production:
            return []
        problems = []
        if not self.database_url:
            problems.append("DATABASE_URL is required in production.")
        elif self.database_url.startswith("sqlite"):
            problems.append("DATABASE_URL must be Postgres in production (not sqlite).")
        if self.secret_key in ("", DEFAULT_SECRET_KEY):
            problems.append("SECRET_KEY must be set to a strong value in production (not default).")
        return problems


def load_settings() -> Settings:
    return Settings(
        secret_key=_env("SECRET_KEY", DEFAULT_SECRET_KEY),
        env=_env("ENV", "development"),
        database_url=_env("DATABASE_URL", "sqlite:///cms.db"),
        site_name=_env("SITE_NAME", "Unit Economics Consulting"),
        log_level=_log_level(_env("LOG_LEVEL", "INFO")),
        use_mock_data=_env_flag("USE_MOCK_DATA"),
        media_max_bytes=_env_int("MEDIA_MAX_BYTES", 10 * 1024 * 1024),
        session_days=_env_int("SESSION_DAYS", 7),
        login_rate_limit=_env_int("LOGIN_RATE_LIMIT", 5),
        login_rate_window=_env_int("LOGIN_RATE_WINDOW", 300),
        storage=StorageSettings(
            backend=_env("STORAGE_BACKEND", "local").lower(),
            local_dir=_env("LOCAL_STORAGE_DIR"),
            s3_endpoint=_env("S3_ENDPOINT"),
            s3_region=_env("S3_REGION", "nyc3"),
            s3_bucket=_env("S3_BUCKET"),
            s3_access_key_id=_env("S3_ACCESS_KEY_ID"),
            s3_secret_access_key=_env("S3_SECRET_ACCESS_KEY"),
        ),
    )


def load_config(settings: Settings | None = None) -> dict:
    s = settings or load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "SITE_NAME": s.site_name,
        "LOG_LEVEL": s.log_level,
        "USE_MOCK_DATA": s.use_mock_data,
        "MEDIA_MAX_BYTES": s.media_max_bytes,
        "SESSION_DAYS": s.session_days,
        "LOGIN_RATE_LIMIT": s.login_rate_limit,
        "LOGIN_RATE_WINDOW": s.login_rate_window,
        "STORAGE_BACKEND": s.storage.backend,
        "LOCAL_STORAGE_DIR": s.storage.local_dir,
        "S3_ENDPOINT": s.storage.s3_endpoint,
        "S3_REGION": s.storage.s3_region,
        "S3_BUCKET": s.storage.s3_bucket,
        "S3_ACCESS_KEY_ID": s.storage.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.storage.s3_secret_access_key,
        # Session cookie: HttpOnly always, Secure behind production TLS.
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": s.is_production,
        # Whole request body; the per-file media limit is MEDIA_MAX_BYTES.
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
    }
