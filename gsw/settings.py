from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    poll_interval_s: int = _env_int("GSW_POLL_INTERVAL_S", 5)
    db_path: str = os.getenv("GSW_DB_PATH", "gsw-events.db")
    journal_max_rows: int = _env_int("GSW_JOURNAL_MAX_ROWS", 10000)

    # Container labels
    label_prefix: str = os.getenv("GSW_LABEL_PREFIX", "wisdom-oss")

    # Gateway
    kong_admin_url: str = os.getenv("KONG_ADMIN_URL", "http://api-gateway:8001")
    gateway_timeout_s: int = _env_int("GSW_GATEWAY_TIMEOUT_S", 10)
    managed_tag: str = os.getenv("GSW_MANAGED_TAG", "wisdom")
    target_port: int = _env_int("GSW_TARGET_PORT", 8000)

    # Global authentication
    enable_auth_bootstrap: bool = _env_bool("GSW_ENABLE_AUTH_BOOTSTRAP", True)
    auth_plugin: str = os.getenv("GSW_AUTH_PLUGIN", "kong-internal-db-auth")
    introspection_url: str | None = os.getenv("INTROSPECTION_URL")


settings = Settings()
