"""Shared pipeline configuration utilities.

Centralises reading of ~/.insight_pipeline/configuration.json so the
service, the CLI and embedding applications share one implementation.

Example configuration.json:

    {
      "storage": {"use_store": true, "redis_url": "redis://localhost:6379/0",
                  "key_prefix": "lg:", "state_ttl_seconds": 86400,
                  "result_ttl_seconds": 604800},
      "execution": {"max_steps": 100, "timeout_seconds": 300},
      "logging": {"level": "INFO", "format": "auto"}
    }
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from insight_pipeline.graph.executor import DEFAULT_MAX_STEPS
from insight_pipeline.storage.run_store import (
    DEFAULT_KEY_PREFIX,
    DEFAULT_RESULT_TTL_SECONDS,
    DEFAULT_STATE_TTL_SECONDS,
)

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

PIPELINE_CONFIG_FILE = Path.home() / ".insight_pipeline" / "configuration.json"


def get_pipeline_config() -> dict[str, Any]:
    """Load configuration from ~/.insight_pipeline/configuration.json."""
    config_file = Path(os.environ.get("PIPELINE_CONFIG_FILE", PIPELINE_CONFIG_FILE))
    if not config_file.exists():
        return {}
    try:
        with open(config_file, encoding="utf-8-sig") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def _section(name: str) -> dict[str, Any]:
    return get_pipeline_config().get(name, {}) or {}


def get_redis_url() -> str | None:
    """Redis URL from PIPELINE_REDIS_URL or the storage section; None means in-memory."""
    return os.environ.get("PIPELINE_REDIS_URL") or _section("storage").get("redis_url")


def get_use_store() -> bool:
    value = _section("storage").get("use_store", True)
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no", "off", "")
    return bool(value)


def get_key_prefix() -> str:
    return _section("storage").get("key_prefix", DEFAULT_KEY_PREFIX)


def get_state_ttl_seconds() -> int:
    return int(_section("storage").get("state_ttl_seconds", DEFAULT_STATE_TTL_SECONDS))


def get_result_ttl_seconds() -> int:
    return int(_section("storage").get("result_ttl_seconds", DEFAULT_RESULT_TTL_SECONDS))


def get_max_steps() -> int:
    return int(_section("execution").get("max_steps", DEFAULT_MAX_STEPS))


def get_timeout_seconds() -> float | None:
    value = _section("execution").get("timeout_seconds")
    return float(value) if value is not None else None


def get_log_level() -> str:
    return os.environ.get("PIPELINE_LOG_LEVEL") or _section("logging").get("level", "INFO")


def get_log_format() -> str:
    return _section("logging").get("format", "auto")


# ---------------------------------------------------------------------------
# PipelineConfig – consumed by PipelineService and the CLI
# ---------------------------------------------------------------------------


@dataclass
class PipelineConfig:
    """Pipeline configuration loaded from ~/.insight_pipeline/configuration.json."""

    use_store: bool = field(default_factory=get_use_store)
    redis_url: str | None = field(default_factory=get_redis_url)
    key_prefix: str = field(default_factory=get_key_prefix)
    state_ttl_seconds: int = field(default_factory=get_state_ttl_seconds)
    result_ttl_seconds: int = field(default_factory=get_result_ttl_seconds)
    max_steps: int = field(default_factory=get_max_steps)
    default_timeout_seconds: float | None = field(default_factory=get_timeout_seconds)
    log_level: str = field(default_factory=get_log_level)
    log_format: str = field(default_factory=get_log_format)
