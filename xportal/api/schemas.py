"""Pydantic response models for the REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error envelope returned for every non-2xx response."""

    error: str
    detail: str = ""


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str


class ClaimListResponse(BaseModel):
    count: int
    claims: list[dict[str, Any]] = Field(default_factory=list)


class NamespaceSummaryResponse(BaseModel):
    namespace: str
    total: int
    ready: int
    synced: int
    claims: list[str] = Field(default_factory=list)
