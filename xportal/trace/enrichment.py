"""Per-node enrichment: cluster events and connection-detail metadata.

Every helper here is best-effort.  Failures are logged and mapped to an
explicit default at the call site; none of them can abort a trace branch.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from xportal.gateway.base import FetchResult, ResourceGateway
from xportal.models.resources import ConnectionDetail, ConnectionSecret
from xportal.observability.logging import get_logger
from xportal.observability.metrics import absorbed_failures_total

_log = get_logger("trace.enrichment")


def events_path(namespace: str, name: str = "", kind: str = "") -> str:
    """Events list path, narrowed server-side to one involved object when *name* is given."""
    path = f"/api/v1/namespaces/{namespace}/events" if namespace else "/api/v1/events"
    if not name:
        return path
    selector = f"involvedObject.name={name}"
    if kind:
        selector = f"{selector},involvedObject.kind={kind}"
    return f"{path}?{urlencode({'fieldSelector': selector})}"


def _involves(event: dict[str, Any], name: str, kind: str, uid: str) -> bool:
    involved = event.get("involvedObject") or event.get("involved_object")
    if not isinstance(involved, dict):
        return False
    if involved.get("name") != name or involved.get("kind") != kind:
        return False
    # Events recorded before the object existed carry no uid
    event_uid = involved.get("uid")
    return not uid or not event_uid or event_uid == uid


def _event_sort_key(event: dict[str, Any]) -> str:
    return str(event.get("lastTimestamp") or event.get("eventTime") or event.get("firstTimestamp") or "")


async def fetch_events(gateway: ResourceGateway, obj: dict[str, Any]) -> tuple[dict[str, Any], ...]:
    """Return the events whose involvedObject matches *obj*, oldest first."""
    meta = obj.get("metadata") or {}
    name = str(meta.get("name", ""))
    kind = str(obj.get("kind", ""))
    if not name or not kind:
        return ()
    uid = str(meta.get("uid", "") or "")
    namespace = str(meta.get("namespace", "") or "")

    result: FetchResult[dict[str, Any]] = await gateway.try_fetch(events_path(namespace, name, kind))
    if result.error is not None:
        absorbed_failures_total.labels(reason="events").inc()
        _log.warning(
            "events_fetch_failed",
            kind=kind,
            name=name,
            status_code=result.error.status_code,
            error=result.error.message,
        )
        return ()
    items = result.unwrap_or({}).get("items") or []
    matched = [e for e in items if isinstance(e, dict) and _involves(e, name, kind, uid)]
    matched.sort(key=_event_sort_key)
    return tuple(matched)


def extract_connection_details(obj: dict[str, Any]) -> tuple[ConnectionDetail, ...]:
    """Normalise ``status.connectionDetails`` from list or mapping form."""
    status = obj.get("status")
    raw = status.get("connectionDetails") if isinstance(status, dict) else None
    if raw is None:
        return ()

    details: list[ConnectionDetail] = []
    if isinstance(raw, dict):
        for name, value in raw.items():
            details.append(ConnectionDetail(type="Value", name=str(name), value=value))
    elif isinstance(raw, list):
        for entry in raw:
            if not isinstance(entry, dict) or not entry.get("name"):
                _log.debug("connection_detail_skipped", entry_type=type(entry).__name__)
                continue
            details.append(
                ConnectionDetail(
                    type=str(entry.get("type") or "Value"),
                    name=str(entry["name"]),
                    value=entry.get("value"),
                    sensitive=bool(entry.get("sensitive", False)),
                )
            )
    else:
        absorbed_failures_total.labels(reason="connection_details").inc()
        _log.warning("connection_details_unparseable", value_type=type(raw).__name__)
    return tuple(details)


async def fetch_connection_secret(
    gateway: ResourceGateway,
    obj: dict[str, Any],
    default_namespace: str,
) -> ConnectionSecret | None:
    """Record the key names of the secret named by ``spec.writeConnectionSecretToRef``."""
    spec = obj.get("spec")
    ref = spec.get("writeConnectionSecretToRef") if isinstance(spec, dict) else None
    if not isinstance(ref, dict) or not ref.get("name"):
        return None
    name = str(ref["name"])
    namespace = str(ref.get("namespace") or (obj.get("metadata") or {}).get("namespace") or default_namespace)

    result = await gateway.try_fetch(f"/api/v1/namespaces/{namespace}/secrets/{name}")
    if result.error is not None:
        absorbed_failures_total.labels(reason="connection_secret").inc()
        _log.info(
            "connection_secret_unavailable",
            secret=name,
            namespace=namespace,
            status_code=result.error.status_code,
        )
        return ConnectionSecret(name=name, namespace=namespace)
    data = result.unwrap_or({}).get("data") or {}
    keys = tuple(sorted(data)) if isinstance(data, dict) else ()
    return ConnectionSecret(name=name, namespace=namespace, keys=keys)
