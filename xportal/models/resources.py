"""Trace data structures: references, identities and the assembled tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class PackageType(StrEnum):
    """Crossplane package kinds installed cluster-wide."""

    PROVIDER = "Provider"
    FUNCTION = "Function"
    CONFIGURATION = "Configuration"


class ConditionType(StrEnum):
    """Crossplane status condition types aggregated by the trace."""

    READY = "Ready"
    SYNCED = "Synced"


def condition_is_true(obj: dict[str, Any], condition_type: str) -> bool:
    """Return True if ``status.conditions`` holds *condition_type* with status "True"."""
    status = obj.get("status")
    if not isinstance(status, dict):
        return False
    conditions = status.get("conditions")
    if not isinstance(conditions, list):
        return False
    for cond in conditions:
        if isinstance(cond, dict) and cond.get("type") == condition_type:
            return cond.get("status") == "True"
    return False


@dataclass(frozen=True)
class ResourceIdentity:
    """Visited-set key for a single trace run."""

    kind: str
    api_version: str
    namespace: str
    name: str

    def __str__(self) -> str:
        ns = f"{self.namespace}/" if self.namespace else ""
        return f"{self.kind}.{self.api_version}/{ns}{self.name}"


@dataclass(frozen=True)
class ResourceReference:
    """Pointer from a parent resource to a child that should be fetched.

    Either the structured form (kind, api_version, name, namespace) is set,
    or ``path`` carries an opaque API path taken verbatim.
    """

    kind: str = ""
    api_version: str = ""
    name: str = ""
    namespace: str | None = None
    path: str | None = None

    @classmethod
    def from_path(cls, path: str) -> ResourceReference:
        return cls(path=path)

    @property
    def is_path(self) -> bool:
        return self.path is not None

    @property
    def identity(self) -> ResourceIdentity:
        if self.path is not None:
            return ResourceIdentity(kind="", api_version="", namespace="", name=self.path)
        return ResourceIdentity(
            kind=self.kind,
            api_version=self.api_version,
            namespace=self.namespace or "",
            name=self.name,
        )


@dataclass(frozen=True)
class ConnectionDetail:
    """One normalised entry from ``status.connectionDetails``."""

    type: str
    name: str
    value: Any = None
    sensitive: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "name": self.name, "value": self.value, "sensitive": self.sensitive}


@dataclass(frozen=True)
class ConnectionSecret:
    """Metadata of the secret named by ``spec.writeConnectionSecretToRef``.

    Only key names are kept; secret values never enter the trace.
    """

    name: str
    namespace: str
    keys: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "namespace": self.namespace, "keys": list(self.keys)}


@dataclass(frozen=True)
class PropagatedStatus:
    """Aggregate of the direct dependencies' Ready/Synced conditions."""

    ready: bool = True
    synced: bool = True

    def to_dict(self) -> dict[str, bool]:
        return {"ready": self.ready, "synced": self.synced}


@dataclass(frozen=True)
class FetchedResource:
    """A raw API object augmented with trace metadata.

    ``object`` is the resource exactly as returned by the gateway.
    """

    object: dict[str, Any]
    path: str = ""
    events: tuple[dict[str, Any], ...] = ()
    connection_details: tuple[ConnectionDetail, ...] = ()
    connection_secret: ConnectionSecret | None = None
    dependencies: tuple[FetchedResource, ...] = ()
    propagated_status: PropagatedStatus = field(default_factory=PropagatedStatus)

    @property
    def metadata(self) -> dict[str, Any]:
        meta = self.object.get("metadata")
        return meta if isinstance(meta, dict) else {}

    @property
    def kind(self) -> str:
        return str(self.object.get("kind", ""))

    @property
    def api_version(self) -> str:
        return str(self.object.get("apiVersion", ""))

    @property
    def name(self) -> str:
        return str(self.metadata.get("name", ""))

    @property
    def namespace(self) -> str:
        return str(self.metadata.get("namespace", "") or "")

    @property
    def uid(self) -> str:
        return str(self.metadata.get("uid", "") or "")

    @property
    def ready(self) -> bool:
        return condition_is_true(self.object, ConditionType.READY)

    @property
    def synced(self) -> bool:
        return condition_is_true(self.object, ConditionType.SYNCED)

    def to_dict(self) -> dict[str, Any]:
        """Serialise as the raw object with the trace fields merged in."""
        data: dict[str, Any] = dict(self.object)
        data["events"] = list(self.events)
        data["connectionDetails"] = [d.to_dict() for d in self.connection_details]
        if self.connection_secret is not None:
            data["connectionSecret"] = self.connection_secret.to_dict()
        data["dependencies"] = [d.to_dict() for d in self.dependencies]
        data["propagatedStatus"] = self.propagated_status.to_dict()
        return data


@dataclass(frozen=True)
class CompositionInfo:
    """A Composition with its active revision and every revision sharing its name."""

    composition: dict[str, Any]
    active_revision: dict[str, Any] | None = None
    revisions: tuple[dict[str, Any], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "composition": self.composition,
            "activeRevision": self.active_revision,
            "revisions": list(self.revisions),
        }


@dataclass(frozen=True)
class PackageInfo:
    """An installed provider, function or configuration and its declared dependencies."""

    package_type: PackageType
    name: str
    package: str
    dependencies: tuple[str, ...] = ()
    object: dict[str, Any] = field(default_factory=dict)

    @property
    def healthy(self) -> bool:
        return condition_is_true(self.object, "Healthy")

    def to_dict(self) -> dict[str, Any]:
        return {
            "packageType": self.package_type.value,
            "name": self.name,
            "package": self.package,
            "dependencies": list(self.dependencies),
            "healthy": self.healthy,
        }


@dataclass(frozen=True)
class ResourceTrace:
    """Top-level result of tracing one claim.

    Contract between the trace assembler and every consumer (REST, CLI export).
    """

    claim: dict[str, Any]
    composite: FetchedResource
    composition: CompositionInfo | None = None
    managed_resources: tuple[FetchedResource, ...] = ()
    packages: tuple[PackageInfo, ...] = ()

    @property
    def status(self) -> PropagatedStatus:
        """Propagated status over the managed-resource root set."""
        return PropagatedStatus(
            ready=all(r.ready for r in self.managed_resources),
            synced=all(r.synced for r in self.managed_resources),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "claim": self.claim,
            "composite": self.composite.to_dict(),
            "composition": self.composition.to_dict() if self.composition is not None else None,
            "managedResources": [r.to_dict() for r in self.managed_resources],
            "packages": [p.to_dict() for p in self.packages],
            "propagatedStatus": self.status.to_dict(),
        }
