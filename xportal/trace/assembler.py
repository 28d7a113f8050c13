"""Resource trace assembler.

Walks the Crossplane ownership graph for one claim:

    claim -> composite -> composition / revisions
                       -> managed resources -> nested references ...

Only two conditions abort a trace (``TraceError``): the claim has no
composite reference, or the composite cannot be fetched.  Everything else
degrades to an omitted node or an empty list, because a partial trace is
more useful to an operator than none.

Each run owns a ``TraceContext`` holding its visited set.  Identity
registration is a synchronous check-and-insert, so when siblings are fanned
out with ``asyncio.gather`` exactly one of them wins a shared identity.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from xportal.catalog.packages import fetch_package_dependencies
from xportal.gateway.base import FetchResult, ResourceGateway
from xportal.models.resources import (
    CompositionInfo,
    ConnectionSecret,
    FetchedResource,
    PackageInfo,
    ResourceIdentity,
    ResourceReference,
    ResourceTrace,
)
from xportal.observability.logging import get_logger
from xportal.observability.metrics import (
    absorbed_failures_total,
    resource_fetches_total,
    trace_duration_seconds,
    trace_requests_total,
)
from xportal.trace.enrichment import extract_connection_details, fetch_connection_secret, fetch_events
from xportal.trace.paths import DEFAULT_NAMESPACE, resolve_path, rescope_path
from xportal.trace.references import extract_managed_references, extract_references, to_reference
from xportal.trace.status import propagate_status

_log = get_logger("trace.assembler")

DEFAULT_MAX_DEPTH = 10

COMPOSITIONS_PATH = "/apis/apiextensions.crossplane.io/v1/compositions"
COMPOSITION_REVISIONS_PATH = "/apis/apiextensions.crossplane.io/v1/compositionrevisions"
_COMPOSITION_NAME_LABEL = "crossplane.io/composition-name"


class TraceError(Exception):
    """Raised when no meaningful trace can be built for a claim."""

    def __init__(self, message: str, claim: str = "") -> None:
        super().__init__(message)
        self.claim = claim


@dataclass
class TraceContext:
    """Mutable state for one trace run, passed explicitly through the recursion."""

    max_depth: int = DEFAULT_MAX_DEPTH
    default_namespace: str = DEFAULT_NAMESPACE
    visited: set[ResourceIdentity] = field(default_factory=set)

    def claim(self, identity: ResourceIdentity) -> bool:
        """Register *identity*; return False if another branch already holds it."""
        if identity in self.visited:
            return False
        self.visited.add(identity)
        return True


def _dig(obj: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _claim_label(claim: dict[str, Any]) -> str:
    meta = claim.get("metadata") or {}
    return f"{claim.get('kind', '?')}/{meta.get('namespace', '')}/{meta.get('name', '?')}"


def composite_reference(claim: dict[str, Any]) -> ResourceReference:
    """Return the claim's pointer to its composite resource.

    Raises TraceError when the claim carries no usable reference.
    """
    raw = _dig(claim, "spec", "resourceRef") or _dig(claim, "spec", "compositeRef")
    ref = to_reference(raw) if isinstance(raw, dict) else None
    if ref is None:
        raise TraceError("No composite resource reference found in claim", claim=_claim_label(claim))
    return ref


def composition_name(composite: dict[str, Any]) -> str | None:
    name = _dig(composite, "spec", "compositionRef", "name") or _dig(
        composite, "spec", "crossplane", "compositionRef", "name"
    )
    return str(name) if name else None


def _is_revision_of(revision: Any, name: str) -> bool:
    if not isinstance(revision, dict):
        return False
    if _dig(revision, "spec", "compositionRef", "name") == name:
        return True
    labels = _dig(revision, "metadata", "labels") or {}
    return isinstance(labels, dict) and labels.get(_COMPOSITION_NAME_LABEL) == name


class TraceAssembler:
    """Builds a ResourceTrace for a claim through a ResourceGateway.

    Args:
        gateway:           Source of every API object.
        max_depth:         Recursion bound below the managed-resource root set.
        default_namespace: Namespace used when rescoping a cluster-scoped 404.
        include_packages:  Attach the installed package inventory to each trace.
    """

    def __init__(
        self,
        gateway: ResourceGateway,
        max_depth: int = DEFAULT_MAX_DEPTH,
        default_namespace: str = DEFAULT_NAMESPACE,
        include_packages: bool = True,
    ) -> None:
        self._gateway = gateway
        self._max_depth = max_depth
        self._default_namespace = default_namespace
        self._include_packages = include_packages

    def new_context(self) -> TraceContext:
        return TraceContext(max_depth=self._max_depth, default_namespace=self._default_namespace)

    async def assemble_trace(self, claim: dict[str, Any]) -> ResourceTrace:
        """Trace *claim* down to its managed resources.

        Raises:
            TraceError: the claim has no composite reference, or the
                composite fetch failed.
        """
        t_start = time.monotonic()
        try:
            trace = await self._assemble(claim, self.new_context())
        except TraceError as exc:
            trace_requests_total.labels(outcome="error").inc()
            _log.warning("trace_failed", claim=exc.claim, error=str(exc))
            raise
        elapsed = time.monotonic() - t_start
        trace_requests_total.labels(outcome="success").inc()
        trace_duration_seconds.observe(elapsed)
        _log.info(
            "trace_assembled",
            claim=_claim_label(claim),
            managed_resources=len(trace.managed_resources),
            duration_ms=round(elapsed * 1000.0, 1),
        )
        return trace

    async def _assemble(self, claim: dict[str, Any], context: TraceContext) -> ResourceTrace:
        label = _claim_label(claim)
        ref = composite_reference(claim)
        path = resolve_path(ref)
        if path is None:
            raise TraceError(f"Cannot build a path for composite {ref.kind}/{ref.name}", claim=label)

        result = await self._get(path)
        if result.error is not None or result.value is None:
            raise TraceError(f"Failed to fetch composite resource {ref.kind}/{ref.name}: {result.error}", claim=label)
        composite_obj = result.value
        context.claim(ref.identity)

        managed_refs = extract_managed_references(composite_obj)
        _log.debug("managed_references_found", claim=label, count=len(managed_refs))

        (events, secret), composition, packages, managed = await asyncio.gather(
            self._enrich(composite_obj, context),
            self.resolve_composition(composite_obj),
            self._packages(),
            self._expand_all(managed_refs, 0, context),
        )
        composite = FetchedResource(
            object=composite_obj,
            path=path,
            events=events,
            connection_details=extract_connection_details(composite_obj),
            connection_secret=secret,
            propagated_status=propagate_status(managed),
        )
        return ResourceTrace(
            claim=claim,
            composite=composite,
            composition=composition,
            managed_resources=managed,
            packages=packages,
        )

    # ------------------------------------------------------------------
    # Recursive expansion
    # ------------------------------------------------------------------

    async def fetch_resource_and_dependencies(
        self,
        ref: ResourceReference,
        depth: int,
        context: TraceContext,
    ) -> FetchedResource | None:
        """Fetch *ref* and, recursively, everything it references.

        Returns None when the branch is truncated by depth, already visited
        in this run, unaddressable, or unreachable after rescoping.
        """
        if depth >= context.max_depth:
            absorbed_failures_total.labels(reason="max_depth").inc()
            _log.info("max_depth_reached", reference=str(ref.identity), depth=depth)
            return None

        identity = ref.identity
        if not context.claim(identity):
            _log.debug("duplicate_reference_skipped", reference=str(identity))
            return None

        path = resolve_path(ref)
        if path is None:
            absorbed_failures_total.labels(reason="unresolvable_reference").inc()
            _log.warning("reference_unresolvable", reference=str(identity))
            return None

        fetched = await self._fetch_with_rescope(ref, path, context)
        if fetched is None:
            return None
        path, obj = fetched

        child_refs = extract_references(obj)
        (events, secret), dependencies = await asyncio.gather(
            self._enrich(obj, context),
            self._expand_all(child_refs, depth + 1, context),
        )
        return FetchedResource(
            object=obj,
            path=path,
            events=events,
            connection_details=extract_connection_details(obj),
            connection_secret=secret,
            dependencies=dependencies,
            propagated_status=propagate_status(dependencies),
        )

    async def _expand_all(
        self,
        refs: list[ResourceReference],
        depth: int,
        context: TraceContext,
    ) -> tuple[FetchedResource, ...]:
        if not refs:
            return ()
        results = await asyncio.gather(*(self.fetch_resource_and_dependencies(r, depth, context) for r in refs))
        return tuple(r for r in results if r is not None)

    async def _fetch_with_rescope(
        self,
        ref: ResourceReference,
        path: str,
        context: TraceContext,
    ) -> tuple[str, dict[str, Any]] | None:
        """GET *path*; on 404 retry exactly once with the scope flipped."""
        result = await self._get(path)
        if result.value is not None:
            return path, result.value

        error = result.error
        if error is None or not error.not_found:
            absorbed_failures_total.labels(reason="resource_fetch").inc()
            _log.warning(
                "resource_fetch_failed",
                path=path,
                status_code=error.status_code if error else None,
                error=error.message if error else "empty response",
            )
            return None

        retry_path = rescope_path(path, ref.namespace, context.default_namespace)
        if retry_path is None or retry_path == path:
            absorbed_failures_total.labels(reason="resource_not_found").inc()
            _log.info("resource_not_found", path=path)
            return None

        _log.info("resource_rescoped_retry", path=path, retry_path=retry_path)
        retry = await self._get(retry_path)
        if retry.value is not None:
            return retry_path, retry.value

        absorbed_failures_total.labels(reason="resource_not_found").inc()
        _log.info(
            "resource_unavailable_after_rescope",
            path=path,
            retry_path=retry_path,
            status_code=retry.error.status_code if retry.error else None,
        )
        return None

    # ------------------------------------------------------------------
    # Best-effort sub-fetches
    # ------------------------------------------------------------------

    async def _get(self, path: str) -> FetchResult[dict[str, Any]]:
        result = await self._gateway.try_fetch(path)
        if result.error is None:
            outcome = "ok"
        elif result.error.not_found:
            outcome = "not_found"
        else:
            outcome = "error"
        resource_fetches_total.labels(outcome=outcome).inc()
        return result

    async def _enrich(
        self,
        obj: dict[str, Any],
        context: TraceContext,
    ) -> tuple[tuple[dict[str, Any], ...], ConnectionSecret | None]:
        events, secret = await asyncio.gather(
            fetch_events(self._gateway, obj),
            fetch_connection_secret(self._gateway, obj, context.default_namespace),
        )
        return events, secret

    async def resolve_composition(self, composite: dict[str, Any]) -> CompositionInfo | None:
        """Fetch the composite's Composition, its revisions and the active revision.

        Returns None when the composite has no compositionRef or the
        Composition itself cannot be fetched.
        """
        name = composition_name(composite)
        if name is None:
            return None

        composition, revisions, active = await asyncio.gather(
            self._get(f"{COMPOSITIONS_PATH}/{name}"),
            self._get(COMPOSITION_REVISIONS_PATH),
            self._get(f"{COMPOSITION_REVISIONS_PATH}/{name}"),
        )
        if composition.error is not None or composition.value is None:
            absorbed_failures_total.labels(reason="composition").inc()
            _log.warning(
                "composition_fetch_failed",
                composition=name,
                status_code=composition.error.status_code if composition.error else None,
            )
            return None

        if revisions.error is not None:
            absorbed_failures_total.labels(reason="composition_revisions").inc()
            _log.info("composition_revisions_unavailable", composition=name, status_code=revisions.error.status_code)
        items = revisions.unwrap_or({}).get("items") or []
        if active.error is not None:
            _log.debug("active_revision_unavailable", composition=name, status_code=active.error.status_code)

        return CompositionInfo(
            composition=composition.value,
            active_revision=active.value if active.ok else None,
            revisions=tuple(r for r in items if _is_revision_of(r, name)),
        )

    async def _packages(self) -> tuple[PackageInfo, ...]:
        if not self._include_packages:
            return ()
        return await fetch_package_dependencies(self._gateway)
