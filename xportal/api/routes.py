"""REST API route handlers.

Dependencies (gateway, assembler) are read from ``request.app.state``,
populated by ``create_app``.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from xportal.api.schemas import (
    ClaimListResponse,
    ErrorResponse,
    HealthResponse,
    NamespaceSummaryResponse,
)
from xportal.catalog.claims import ClaimNotFoundError, get_claim, list_claims, summarize_claims
from xportal.gateway.base import FetchError
from xportal.observability.logging import get_logger
from xportal.trace.assembler import TraceError

_log = get_logger("api.routes")

router = APIRouter()


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, detail=detail).model_dump())


def _gateway_error(exc: FetchError) -> JSONResponse:
    _log.warning("gateway_error", status_code=exc.status_code, path=exc.path, error=exc.message)
    return _error(502, "CLUSTER_UNAVAILABLE", exc.message)


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    from xportal import __version__

    return HealthResponse(version=__version__)


@router.get("/claims", response_model=ClaimListResponse, responses={502: {"model": ErrorResponse}})
async def claims(
    request: Request,
    namespace: str | None = Query(default=None, max_length=63),
) -> ClaimListResponse | JSONResponse:
    try:
        items = await list_claims(request.app.state.gateway, namespace=namespace)
    except FetchError as exc:
        return _gateway_error(exc)
    return ClaimListResponse(count=len(items), claims=items)


@router.get(
    "/claims/summary",
    response_model=list[NamespaceSummaryResponse],
    responses={502: {"model": ErrorResponse}},
)
async def claims_summary(
    request: Request,
    namespace: str | None = Query(default=None, max_length=63),
) -> list[NamespaceSummaryResponse] | JSONResponse:
    try:
        items = await list_claims(request.app.state.gateway, namespace=namespace)
    except FetchError as exc:
        return _gateway_error(exc)
    return [
        NamespaceSummaryResponse(
            namespace=s.namespace,
            total=s.total,
            ready=s.ready,
            synced=s.synced,
            claims=s.claims,
        )
        for s in summarize_claims(items, namespace=namespace)
    ]


@router.get(
    "/claims/{kind}/{namespace}/{name}/trace",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def claim_trace(request: Request, kind: str, namespace: str, name: str) -> JSONResponse:
    gateway = request.app.state.gateway
    try:
        claim = await get_claim(gateway, kind, name, namespace)
    except ClaimNotFoundError as exc:
        return _error(404, "UNKNOWN_CLAIM_KIND", str(exc))
    except FetchError as exc:
        if exc.not_found:
            return _error(404, "CLAIM_NOT_FOUND", f"{kind}/{namespace}/{name} not found")
        return _gateway_error(exc)

    try:
        trace = await request.app.state.assembler.assemble_trace(claim)
    except TraceError as exc:
        return _error(422, "TRACE_FAILED", str(exc))
    return JSONResponse(content=trace.to_dict())
