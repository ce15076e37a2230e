"""Runtime settings.

Every knob is read from an environment variable and falls back to its
default when the variable is unset or cannot be parsed.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return max(int(raw), minimum)
    except ValueError:
        return default


def _env_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return max(float(raw), minimum)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Discovery bounds, cache TTLs and transport tuning."""

    max_catalogs: int = 10
    max_schemas_per_catalog: int = 5
    catalog_cache_ttl: float = 300.0
    validation_cache_ttl: float = 300.0
    min_request_interval: float = 0.3
    max_retries: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 8.0
    http_timeout: int = 30
    sdk_retry_timeout: int = 1
    config_path: str | None = None
    agreements_path: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            max_catalogs=_env_int("MAX_CATALOGS", cls.max_catalogs),
            max_schemas_per_catalog=_env_int(
                "MAX_SCHEMAS_PER_CATALOG", cls.max_schemas_per_catalog
            ),
            catalog_cache_ttl=_env_float(
                "DBCOMPLY_CATALOG_CACHE_TTL", cls.catalog_cache_ttl
            ),
            validation_cache_ttl=_env_float(
                "DBCOMPLY_VALIDATION_CACHE_TTL", cls.validation_cache_ttl
            ),
            min_request_interval=_env_float(
                "DBCOMPLY_MIN_REQUEST_INTERVAL", cls.min_request_interval
            ),
            max_retries=_env_int("DBCOMPLY_MAX_RETRIES", cls.max_retries),
            backoff_base=_env_float("DBCOMPLY_BACKOFF_BASE", cls.backoff_base),
            backoff_max=_env_float("DBCOMPLY_BACKOFF_MAX", cls.backoff_max),
            http_timeout=_env_int("DBCOMPLY_HTTP_TIMEOUT", cls.http_timeout, minimum=1),
            sdk_retry_timeout=_env_int(
                "DBCOMPLY_SDK_RETRY_TIMEOUT", cls.sdk_retry_timeout, minimum=1
            ),
            config_path=os.getenv("DBCOMPLY_CONFIG") or None,
            agreements_path=os.getenv("DBCOMPLY_AGREEMENTS") or None,
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )
