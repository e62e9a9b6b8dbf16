import os
from collections.abc import Mapping
from typing import NamedTuple

from dotenv import load_dotenv


load_dotenv()

BUILD_VAR_PREFIX = "DENTALSYNC_"
PLACEHOLDER_SUPABASE_URL = "YOUR_SUPABASE_URL"
PLACEHOLDER_SUPABASE_ANON_KEY = "YOUR_SUPABASE_ANON_KEY"
DEFAULT_LOCAL_STORE_SECRET = "change-me"


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def get_env_var(name: str, fallback: str = "", overrides: Mapping[str, str] | None = None) -> str:
    """Resolve a setting from runtime overrides, the environment, then build-time variables.

    Build-time variables carry the ``DENTALSYNC_`` prefix. The first non-empty
    value wins; ``fallback`` is returned when nothing is set.
    """
    if overrides and overrides.get(name):
        return overrides[name]

    value = os.environ.get(name)
    if value:
        return value

    value = os.environ.get(f"{BUILD_VAR_PREFIX}{name}")
    if value:
        return value

    return fallback


class ConnectionDescriptor(NamedTuple):
    url: str
    key: str


def resolve_connection(overrides: Mapping[str, str] | None = None) -> ConnectionDescriptor:
    return ConnectionDescriptor(
        url=get_env_var("SUPABASE_URL", PLACEHOLDER_SUPABASE_URL, overrides),
        key=get_env_var("SUPABASE_ANON_KEY", PLACEHOLDER_SUPABASE_ANON_KEY, overrides),
    )


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOCAL_DATABASE_URL = os.getenv("LOCAL_DATABASE_URL", "sqlite:///./dentalsync.db")
LOCAL_STORE_SECRET = os.getenv("LOCAL_STORE_SECRET", DEFAULT_LOCAL_STORE_SECRET)

REALTIME_ENABLED = _get_bool(os.getenv("REALTIME_ENABLED"), default=True)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:4200").split(",")
    if origin.strip()
]


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and LOCAL_STORE_SECRET == DEFAULT_LOCAL_STORE_SECRET:
        raise RuntimeError("LOCAL_STORE_SECRET must be set in production.")
