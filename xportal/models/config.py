"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class GatewayConfig:
    """Kubernetes API gateway configuration."""

    kube_context: str = ""
    request_timeout: int = 30


@dataclass
class TraceConfig:
    """Trace assembler configuration."""

    max_depth: int = 10
    default_namespace: str = "default"
    include_packages: bool = True


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class XPortalConfig:
    """Top-level xportal configuration."""

    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    trace: TraceConfig = field(default_factory=TraceConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
