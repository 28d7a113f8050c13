"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from xportal.models.config import (
    APIConfig,
    GatewayConfig,
    LogConfig,
    TraceConfig,
    XPortalConfig,
)

_NAMESPACE_RE = re.compile(r"^[a-z0-9]([-a-z0-9]{0,61}[a-z0-9])?$")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"XPORTAL_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_namespace(value: str) -> str:
    if not _NAMESPACE_RE.match(value):
        raise ValueError(f"Invalid namespace name: {value!r}")
    return value


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> XPortalConfig:
    """Load configuration from XPORTAL_* environment variables."""
    return XPortalConfig(
        gateway=GatewayConfig(
            kube_context=_env("KUBE_CONTEXT", ""),
            request_timeout=_env_int("REQUEST_TIMEOUT", 30, min_val=5, max_val=120),
        ),
        trace=TraceConfig(
            max_depth=_env_int("TRACE_MAX_DEPTH", 10, min_val=1, max_val=50),
            default_namespace=_validate_namespace(_env("TRACE_DEFAULT_NAMESPACE", "default")),
            include_packages=_env_bool("TRACE_INCLUDE_PACKAGES", True),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
