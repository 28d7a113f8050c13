"""Shared fixtures for xportal tests.

Provides an in-memory ResourceGateway keyed by API path plus factories for
realistic Crossplane objects, so trace tests never touch a real cluster.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any

import pytest

from xportal.gateway.base import FetchError, HTTPMethod, ResourceGateway

# ---------------------------------------------------------------------------
# Fake gateway
# ---------------------------------------------------------------------------


class FakeGateway(ResourceGateway):
    """Serves objects by exact path; unknown paths answer 404.

    A query string is ignored when no entry matches the full path, the way an
    API server that cannot apply a field selector would answer.

    Every request is recorded in ``calls`` so tests can assert on fetch
    counts and retry behaviour.
    """

    def __init__(
        self,
        objects: dict[str, dict[str, Any]] | None = None,
        errors: dict[str, FetchError] | None = None,
    ) -> None:
        self.objects: dict[str, dict[str, Any]] = dict(objects or {})
        self.errors: dict[str, FetchError] = dict(errors or {})
        self.calls: list[str] = []
        self.closed = False

    async def fetch(
        self,
        path: str,
        method: HTTPMethod = "GET",
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        self.calls.append(path)
        # Yield so sibling branches interleave the way real I/O would
        await asyncio.sleep(0)
        if path not in self.errors and path not in self.objects:
            path = path.split("?", 1)[0]
        if path in self.errors:
            raise self.errors[path]
        if path in self.objects:
            return self.objects[path]
        raise FetchError(404, "not found", path=path)

    async def close(self) -> None:
        self.closed = True

    def add(self, path: str, obj: dict[str, Any]) -> dict[str, Any]:
        self.objects[path] = obj
        return obj

    def fail(self, path: str, status_code: int = 500, message: str = "boom") -> None:
        self.errors[path] = FetchError(status_code, message, path=path)

    def count(self, path: str) -> int:
        return Counter(self.calls)[path]


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


# ---------------------------------------------------------------------------
# Object factories
# ---------------------------------------------------------------------------


def conditions(ready: bool = True, synced: bool = True) -> list[dict[str, str]]:
    return [
        {"type": "Ready", "status": "True" if ready else "False"},
        {"type": "Synced", "status": "True" if synced else "False"},
    ]


def make_claim(
    name: str = "my-db",
    namespace: str = "team-a",
    kind: str = "PostgreSQLInstance",
    composite_ref: dict[str, Any] | None = None,
    ready: bool = True,
    synced: bool = True,
) -> dict[str, Any]:
    spec: dict[str, Any] = {}
    if composite_ref is not None:
        spec["resourceRef"] = composite_ref
    return {
        "apiVersion": "database.example.org/v1alpha1",
        "kind": kind,
        "metadata": {"name": name, "namespace": namespace, "uid": f"uid-{name}"},
        "spec": spec,
        "status": {"conditions": conditions(ready, synced)},
    }


def composite_ref(name: str = "my-db-x7k2p", kind: str = "XPostgreSQLInstance") -> dict[str, Any]:
    return {"apiVersion": "database.example.org/v1alpha1", "kind": kind, "name": name}


def make_composite(
    name: str = "my-db-x7k2p",
    kind: str = "XPostgreSQLInstance",
    resource_refs: list[Any] | None = None,
    composition: str | None = None,
    status: dict[str, Any] | None = None,
) -> dict[str, Any]:
    spec: dict[str, Any] = {}
    if resource_refs is not None:
        spec["resourceRefs"] = resource_refs
    if composition is not None:
        spec["compositionRef"] = {"name": composition}
    return {
        "apiVersion": "database.example.org/v1alpha1",
        "kind": kind,
        "metadata": {"name": name, "uid": f"uid-{name}"},
        "spec": spec,
        "status": status or {"conditions": conditions()},
    }


def make_managed(
    kind: str,
    name: str,
    api_version: str = "sql.gcp.example.org/v1beta1",
    namespace: str | None = None,
    ready: bool = True,
    synced: bool = True,
    refs: list[Any] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    metadata: dict[str, Any] = {"name": name, "uid": f"uid-{kind}-{name}"}
    if namespace:
        metadata["namespace"] = namespace
    obj: dict[str, Any] = {
        "apiVersion": api_version,
        "kind": kind,
        "metadata": metadata,
        "spec": {},
        "status": {"conditions": conditions(ready, synced)},
    }
    if refs is not None:
        obj["spec"]["resourceRefs"] = refs
    obj.update(extra)
    return obj


def ref(
    kind: str,
    name: str,
    api_version: str = "sql.gcp.example.org/v1beta1",
    namespace: str | None = None,
) -> dict[str, Any]:
    out = {"apiVersion": api_version, "kind": kind, "name": name}
    if namespace:
        out["namespace"] = namespace
    return out
