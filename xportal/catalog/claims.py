"""Claim discovery through CompositeResourceDefinitions.

Every XRD that offers claim names is one claim type; its claims live at
``/apis/<group>/<first served version>/<claim plural>``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from xportal.gateway.base import ResourceGateway
from xportal.models.resources import ConditionType, condition_is_true
from xportal.observability.logging import get_logger

_log = get_logger("catalog.claims")

XRDS_PATH = "/apis/apiextensions.crossplane.io/v1/compositeresourcedefinitions"


class ClaimNotFoundError(Exception):
    """Raised when no XRD offers the requested claim kind."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"No XRD found for claim kind {kind}")
        self.kind = kind


@dataclass(frozen=True)
class ClaimType:
    """Where the claims of one XRD are served."""

    kind: str
    group: str
    version: str
    plural: str

    def path(self, namespace: str | None = None, name: str | None = None) -> str:
        prefix = f"/apis/{self.group}/{self.version}"
        if namespace:
            prefix = f"{prefix}/namespaces/{namespace}"
        path = f"{prefix}/{self.plural}"
        return f"{path}/{name}" if name else path


@dataclass
class NamespaceSummary:
    """Ready/Synced counts of the claims in one namespace."""

    namespace: str
    total: int = 0
    ready: int = 0
    synced: int = 0
    claims: list[str] = field(default_factory=list)


def claim_type(xrd: dict[str, Any]) -> ClaimType | None:
    """Return the claim type an XRD serves, or None if it offers no claims."""
    spec = xrd.get("spec") or {}
    claim_names = spec.get("claimNames") or {}
    versions = spec.get("versions") or []
    if not claim_names.get("kind") or not claim_names.get("plural") or not versions:
        return None
    return ClaimType(
        kind=str(claim_names["kind"]),
        group=str(spec.get("group", "")),
        version=str(versions[0].get("name", "")),
        plural=str(claim_names["plural"]),
    )


async def list_claim_types(gateway: ResourceGateway) -> list[ClaimType]:
    """List XRDs and return the claim types they offer.

    Raises:
        FetchError: the XRD list itself cannot be fetched.
    """
    xrds = await gateway.fetch(XRDS_PATH)
    types = [claim_type(xrd) for xrd in xrds.get("items") or [] if isinstance(xrd, dict)]
    return [t for t in types if t is not None]


def _annotate(claim: dict[str, Any]) -> dict[str, Any]:
    namespace = (claim.get("metadata") or {}).get("namespace")
    return {**claim, "claimNamespace": namespace}


async def list_claims(gateway: ResourceGateway, namespace: str | None = None) -> list[dict[str, Any]]:
    """Return every claim in the cluster, optionally restricted to *namespace*.

    A claim type whose list fails is logged and skipped.
    """
    types = await list_claim_types(gateway)
    results = await asyncio.gather(*(gateway.try_fetch(t.path(namespace)) for t in types))

    claims: list[dict[str, Any]] = []
    for ctype, result in zip(types, results, strict=True):
        if result.error is not None:
            _log.warning(
                "claim_list_failed",
                kind=ctype.kind,
                status_code=result.error.status_code,
                error=result.error.message,
            )
            continue
        items = result.unwrap_or({}).get("items") or []
        claims.extend(_annotate(c) for c in items if isinstance(c, dict))
    _log.debug("claims_listed", types=len(types), claims=len(claims))
    return claims


async def get_claim(gateway: ResourceGateway, kind: str, name: str, namespace: str | None) -> dict[str, Any]:
    """Fetch one claim by kind, name and namespace.

    Raises:
        ClaimNotFoundError: no XRD offers *kind*.
        FetchError: the XRD list or the claim itself cannot be fetched.
    """
    for ctype in await list_claim_types(gateway):
        if ctype.kind == kind:
            claim = await gateway.fetch(ctype.path(namespace, name))
            return _annotate(claim)
    raise ClaimNotFoundError(kind)


def summarize_claims(claims: list[dict[str, Any]], namespace: str | None = None) -> list[NamespaceSummary]:
    """Group claims by namespace with Ready/Synced counts, sorted by namespace."""
    summaries: dict[str, NamespaceSummary] = {}
    for claim in claims:
        meta = claim.get("metadata") or {}
        ns = str(claim.get("claimNamespace") or meta.get("namespace") or "")
        if namespace and ns != namespace:
            continue
        summary = summaries.setdefault(ns, NamespaceSummary(namespace=ns))
        summary.total += 1
        summary.ready += int(condition_is_true(claim, ConditionType.READY))
        summary.synced += int(condition_is_true(claim, ConditionType.SYNCED))
        summary.claims.append(f"{claim.get('kind', '')}/{meta.get('name', '')}")
    return [summaries[ns] for ns in sorted(summaries)]
