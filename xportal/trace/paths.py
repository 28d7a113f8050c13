"""API path construction for resource references.

There is no discovery call behind this: plurals and scopes are guessed from
the reference alone, and a wrong scope guess is corrected by a single
rescoping retry (see ``rescope_path``).
"""

from __future__ import annotations

import dataclasses

from xportal.gateway.base import FetchError
from xportal.gateway.paths import parse_api_path
from xportal.models.resources import ResourceReference

# Provider groups whose managed resources are always cluster-scoped.
CLUSTER_SCOPED_GROUP_MARKERS: tuple[str, ...] = ("aws",)

DEFAULT_NAMESPACE = "default"


def pluralize(kind: str) -> str:
    """Lower-case *kind* and append ``s`` unless it already ends in one."""
    plural = kind.lower()
    return plural if plural.endswith("s") else plural + "s"


def split_api_version(api_version: str) -> tuple[str, str]:
    """Return (group, version); the core group is the empty string."""
    if "/" in api_version:
        group, version = api_version.split("/", 1)
        return group, version
    return "", api_version or "v1"


def resolve_path(ref: ResourceReference) -> str | None:
    """Build the GET path for *ref*, or None when it cannot be addressed."""
    if ref.is_path:
        return ref.path or None
    if not ref.kind or not ref.name:
        return None

    group, version = split_api_version(ref.api_version)
    prefix = f"/apis/{group}/{version}" if group else f"/api/{version}"
    plural = pluralize(ref.kind)

    if any(marker in group for marker in CLUSTER_SCOPED_GROUP_MARKERS):
        return f"{prefix}/{plural}/{ref.name}"
    if ref.namespace:
        return f"{prefix}/namespaces/{ref.namespace}/{plural}/{ref.name}"
    return f"{prefix}/{plural}/{ref.name}"


def rescope_path(path: str, namespace: str | None, default_namespace: str = DEFAULT_NAMESPACE) -> str | None:
    """Flip the scope of a single-object path.

    Namespaced paths become cluster-scoped; cluster-scoped paths gain
    ``namespaces/<namespace or default_namespace>``.  Returns None for list
    paths and anything that is not a Kubernetes resource path.
    """
    try:
        api_path = parse_api_path(path)
    except FetchError:
        return None
    if api_path.is_list:
        return None
    if api_path.namespace is not None:
        return dataclasses.replace(api_path, namespace=None).to_path()
    return dataclasses.replace(api_path, namespace=namespace or default_namespace).to_path()
