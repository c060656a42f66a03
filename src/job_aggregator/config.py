from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

MODULE_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_STATE_DB_PATH = MODULE_ROOT / "data" / "state.sqlite"


class ProviderOverride(BaseModel):
    enabled: bool | None = None
    priority: int | None = None
    api_key: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)


class Settings(BaseModel):
    state_db_path: Path = Field(default=DEFAULT_STATE_DB_PATH)
    request_timeout_seconds: float = Field(default=20.0, gt=0.0)
    user_agent: str = "job-aggregator/0.1"
    cache_ttl_seconds: float = Field(default=900.0, ge=0.0)
    max_concurrent_requests: int = Field(default=20, ge=1)
    rate_limit_requests: int = Field(default=15, ge=1)
    rate_limit_period_seconds: float = Field(default=60.0, gt=0.0)
    degraded_latency_ms: float = Field(default=5000.0, gt=0.0)
    failure_threshold: int = Field(default=3, ge=1)
    health_retention_days: float = Field(default=7.0, gt=0.0)
    alert_check_interval_seconds: float = Field(default=300.0, gt=0.0)
    board_verify_interval_seconds: float = Field(default=21600.0, gt=0.0)
    max_alerts: int = Field(default=10, ge=1)
    slack_webhook_url: str = ""
    jooble_api_key: str = ""
    studios_path: Path | None = None
    provider_overrides: dict[str, ProviderOverride] = Field(default_factory=dict)

    @field_validator("slack_webhook_url")
    @classmethod
    def _validate_webhook_url(cls, value: str) -> str:
        if value and not value.startswith("https://"):
            raise ValueError("SLACK_WEBHOOK_URL must use https://")
        return value


def _env_value(environ: Mapping[str, str], key: str) -> str:
    return environ.get(key, "").strip()


def _parse_overrides(raw: str) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"PROVIDER_OVERRIDES_JSON is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError("PROVIDER_OVERRIDES_JSON must be a JSON object keyed by provider name")
    return parsed


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    source = os.environ if environ is None else environ
    studios_path = _env_value(source, "STUDIOS_PATH")
    try:
        payload = {
            "state_db_path": Path(_env_value(source, "STATE_DB_PATH") or DEFAULT_STATE_DB_PATH),
            "request_timeout_seconds": float(_env_value(source, "REQUEST_TIMEOUT_SECONDS") or "20"),
            "user_agent": _env_value(source, "USER_AGENT") or "job-aggregator/0.1",
            "cache_ttl_seconds": float(_env_value(source, "CACHE_TTL_SECONDS") or "900"),
            "max_concurrent_requests": int(_env_value(source, "MAX_CONCURRENT_REQUESTS") or "20"),
            "rate_limit_requests": int(_env_value(source, "RATE_LIMIT_REQUESTS") or "15"),
            "rate_limit_period_seconds": float(_env_value(source, "RATE_LIMIT_PERIOD_SECONDS") or "60"),
            "degraded_latency_ms": float(_env_value(source, "DEGRADED_LATENCY_MS") or "5000"),
            "failure_threshold": int(_env_value(source, "FAILURE_THRESHOLD") or "3"),
            "health_retention_days": float(_env_value(source, "HEALTH_RETENTION_DAYS") or "7"),
            "alert_check_interval_seconds": float(
                _env_value(source, "ALERT_CHECK_INTERVAL_SECONDS") or "300"
            ),
            "board_verify_interval_seconds": float(
                _env_value(source, "BOARD_VERIFY_INTERVAL_SECONDS") or "21600"
            ),
            "max_alerts": int(_env_value(source, "MAX_ALERTS") or "10"),
            "slack_webhook_url": _env_value(source, "SLACK_WEBHOOK_URL"),
            "jooble_api_key": _env_value(source, "JOOBLE_API_KEY"),
            "studios_path": Path(studios_path) if studios_path else None,
            "provider_overrides": _parse_overrides(_env_value(source, "PROVIDER_OVERRIDES_JSON")),
        }
        return Settings(**payload)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


def mask_secret(value: str, visible_prefix: int = 3, visible_suffix: int = 2) -> str:
    if not value:
        return ""
    if len(value) <= visible_prefix + visible_suffix:
        return "*" * len(value)
    hidden = "*" * (len(value) - visible_prefix - visible_suffix)
    return f"{value[:visible_prefix]}{hidden}{value[-visible_suffix:]}"
