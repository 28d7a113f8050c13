"""Child-reference extraction from Crossplane resources.

Crossplane places child references in several places depending on version
and resource type.  Each location is one extractor in an ordered table;
``extract_references`` concatenates every extractor's output without
de-duplicating (identity tracking happens during the walk).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from xportal.models.resources import ResourceReference
from xportal.observability.logging import get_logger

_log = get_logger("trace.references")

Extractor = Callable[[dict[str, Any]], list[Any]]


def _dig(obj: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _list_at(*keys: str) -> Extractor:
    def extract(resource: dict[str, Any]) -> list[Any]:
        value = _dig(resource, *keys)
        return list(value) if isinstance(value, list) else []

    extract.__name__ = "_".join(keys)
    return extract


def _connection_detail_refs(resource: dict[str, Any]) -> list[Any]:
    details = _dig(resource, "status", "connectionDetails")
    if not isinstance(details, list):
        return []
    refs: list[Any] = []
    for entry in details:
        if not isinstance(entry, dict) or entry.get("type") != "Reference":
            continue
        for key in ("ref", "reference", "value"):
            if isinstance(entry.get(key), dict | str):
                refs.append(entry[key])
                break
    return refs


SPEC_RESOURCE_REFS = _list_at("spec", "resourceRefs")
TOP_LEVEL_RESOURCE_REFS = _list_at("resourceRefs")
STATUS_RESOURCE_REFS = _list_at("status", "resourceRefs")
STATUS_RESOURCES = _list_at("status", "resources")
STATUS_RESOURCE_REFS_NESTED = _list_at("status", "resource", "refs")
SPEC_CROSSPLANE_RESOURCE_REFS = _list_at("spec", "crossplane", "resourceRefs")
GENERIC_REFERENCES = _list_at("references")

# Where a composite lists the managed resources it composed.
MANAGED_RESOURCE_EXTRACTORS: tuple[Extractor, ...] = (
    SPEC_RESOURCE_REFS,
    TOP_LEVEL_RESOURCE_REFS,
    STATUS_RESOURCE_REFS,
    STATUS_RESOURCES,
    STATUS_RESOURCE_REFS_NESTED,
    SPEC_CROSSPLANE_RESOURCE_REFS,  # Crossplane v2 composites
)

# Every location a resource may point at its children, in precedence order.
REFERENCE_EXTRACTORS: tuple[Extractor, ...] = (
    *MANAGED_RESOURCE_EXTRACTORS,
    _connection_detail_refs,
    GENERIC_REFERENCES,
)


def to_reference(raw: Any) -> ResourceReference | None:
    """Normalise one raw reference entry, or return None if it is unusable.

    Object entries need both ``name`` and ``kind``; string entries must be
    non-empty and are kept as opaque paths.
    """
    if isinstance(raw, str):
        raw = raw.strip()
        return ResourceReference.from_path(raw) if raw else None
    if not isinstance(raw, dict):
        return None
    name = raw.get("name")
    kind = raw.get("kind")
    if not name or not kind:
        return None
    namespace = raw.get("namespace")
    return ResourceReference(
        kind=str(kind),
        api_version=str(raw.get("apiVersion") or ""),
        name=str(name),
        namespace=str(namespace) if namespace else None,
    )


def _collect(resource: dict[str, Any], extractors: Iterable[Extractor]) -> list[ResourceReference]:
    refs: list[ResourceReference] = []
    discarded = 0
    for extractor in extractors:
        for raw in extractor(resource):
            ref = to_reference(raw)
            if ref is None:
                discarded += 1
                continue
            refs.append(ref)
    if discarded:
        _log.debug("references_discarded", count=discarded)
    return refs


def extract_references(resource: dict[str, Any]) -> list[ResourceReference]:
    """Return every child reference found on *resource*, in table order."""
    return _collect(resource, REFERENCE_EXTRACTORS)


def extract_managed_references(composite: dict[str, Any]) -> list[ResourceReference]:
    """Return the managed-resource root set of a composite resource."""
    return _collect(composite, MANAGED_RESOURCE_EXTRACTORS)
