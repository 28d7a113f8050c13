"""Installed Crossplane package inventory.

Lists providers, functions and configurations cluster-wide and tags each
with its package type and declared dependencies.  Dependencies come from the
package lock (the package manager's resolved dependency graph), falling back
to ``spec.dependsOn`` for objects that carry it.  Independent of the
per-resource trace walk; every failure degrades to an empty result.
"""

from __future__ import annotations

import asyncio
from typing import Any

from xportal.gateway.base import ResourceGateway
from xportal.models.resources import PackageInfo, PackageType
from xportal.observability.logging import get_logger
from xportal.observability.metrics import absorbed_failures_total

_log = get_logger("catalog.packages")

PACKAGE_PATHS: dict[PackageType, str] = {
    PackageType.PROVIDER: "/apis/pkg.crossplane.io/v1/providers",
    PackageType.FUNCTION: "/apis/pkg.crossplane.io/v1/functions",
    PackageType.CONFIGURATION: "/apis/pkg.crossplane.io/v1/configurations",
}

LOCK_PATH = "/apis/pkg.crossplane.io/v1beta1/locks/lock"

_DEPENDS_ON_KEYS = ("provider", "function", "configuration", "package")


def package_source(package: str) -> str:
    """Strip the tag or digest from an OCI package reference."""
    source = package.split("@", 1)[0]
    slash = source.rfind("/")
    colon = source.rfind(":")
    if colon > slash:
        source = source[:colon]
    return source


def _lock_dependencies(lock: dict[str, Any]) -> dict[str, tuple[str, ...]]:
    deps: dict[str, tuple[str, ...]] = {}
    for entry in lock.get("packages") or []:
        if not isinstance(entry, dict) or not entry.get("source"):
            continue
        names = [
            str(d.get("package"))
            for d in entry.get("dependencies") or []
            if isinstance(d, dict) and d.get("package")
        ]
        deps[package_source(str(entry["source"]))] = tuple(names)
    return deps


def _declared_dependencies(obj: dict[str, Any]) -> tuple[str, ...]:
    spec = obj.get("spec")
    depends_on = spec.get("dependsOn") if isinstance(spec, dict) else None
    if not isinstance(depends_on, list):
        return ()
    names: list[str] = []
    for dep in depends_on:
        if not isinstance(dep, dict):
            continue
        for key in _DEPENDS_ON_KEYS:
            if dep.get(key):
                names.append(str(dep[key]))
                break
    return tuple(names)


async def fetch_package_dependencies(gateway: ResourceGateway) -> tuple[PackageInfo, ...]:
    """Return every installed package with its type and dependency list."""
    types = list(PACKAGE_PATHS)
    results = await asyncio.gather(
        *(gateway.try_fetch(PACKAGE_PATHS[t]) for t in types),
        gateway.try_fetch(LOCK_PATH),
    )
    *package_results, lock_result = results

    if lock_result.error is not None:
        _log.info("package_lock_unavailable", status_code=lock_result.error.status_code)
    lock_deps = _lock_dependencies(lock_result.unwrap_or({}))

    packages: list[PackageInfo] = []
    for package_type, result in zip(types, package_results, strict=True):
        if result.error is not None:
            absorbed_failures_total.labels(reason="packages").inc()
            _log.warning(
                "package_list_failed",
                package_type=package_type.value,
                status_code=result.error.status_code,
                error=result.error.message,
            )
            continue
        for item in result.unwrap_or({}).get("items") or []:
            if not isinstance(item, dict):
                continue
            package = str((item.get("spec") or {}).get("package", ""))
            dependencies = lock_deps.get(package_source(package)) if package else None
            packages.append(
                PackageInfo(
                    package_type=package_type,
                    name=str((item.get("metadata") or {}).get("name", "")),
                    package=package,
                    dependencies=dependencies if dependencies is not None else _declared_dependencies(item),
                    object=item,
                )
            )
    _log.debug("packages_resolved", count=len(packages))
    return tuple(packages)
