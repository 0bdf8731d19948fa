"""
Configuration helpers for the Carte backend.

Settings are read once from the environment at process start; services and
stores call ``get_settings()`` instead of touching os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
import os

_DEV_TOKEN_SECRET = "carte-development-token-secret-change-me"


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    database_url: str
    token_secret: str
    token_ttl_seconds: int
    token_algorithm: str
    password_min_length: int
    password_mixed_case: bool
    password_alpha_num: bool
    password_special_char: bool
    password_check_previous: bool
    log_level: str


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _bool(value: str | None, default: bool = False) -> bool:
        if value is None:
            return default
        return value.strip().lower() in {"1", "true", "yes", "on"}

    app_env = (os.getenv("APP_ENV") or "dev").lower()
    token_secret = os.getenv("TOKEN_SECRET", "")
    if not token_secret:
        if app_env == "prod":
            raise RuntimeError("TOKEN_SECRET must be configured in production.")
        token_secret = _DEV_TOKEN_SECRET

    return Settings(
        app_env=app_env,
        database_url=os.getenv("DATABASE_URL", "sqlite:///carte.db"),
        token_secret=token_secret,
        token_ttl_seconds=_int(os.getenv("TOKEN_TTL_SECONDS", "3600"), 3600),
        token_algorithm=os.getenv("TOKEN_ALGORITHM", "HS256"),
        password_min_length=_int(os.getenv("PASSWORD_MIN_LENGTH", "8"), 8),
        password_mixed_case=_bool(os.getenv("PASSWORD_MIXED_CASE"), False),
        password_alpha_num=_bool(os.getenv("PASSWORD_ALPHA_NUM"), False),
        password_special_char=_bool(os.getenv("PASSWORD_SPECIAL_CHAR"), False),
        password_check_previous=_bool(os.getenv("PASSWORD_CHECK_PREVIOUS"), True),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
