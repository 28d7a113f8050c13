"""Parsing of Kubernetes REST paths into their addressing components."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode

from xportal.gateway.base import FetchError


@dataclass(frozen=True)
class APIPath:
    """Components of ``/api[s]/<group>/<version>[/namespaces/<ns>]/<plural>[/<name>]``.

    ``group`` is empty for the core API (``/api/v1``).  A ``fieldSelector`` query
    parameter is kept; any other query parameter is dropped.
    """

    group: str
    version: str
    plural: str
    namespace: str | None = None
    name: str | None = None
    field_selector: str | None = None

    @property
    def core(self) -> bool:
        return self.group == ""

    @property
    def is_list(self) -> bool:
        return self.name is None

    def to_path(self) -> str:
        prefix = f"/api/{self.version}" if self.core else f"/apis/{self.group}/{self.version}"
        if self.namespace:
            prefix = f"{prefix}/namespaces/{self.namespace}"
        path = f"{prefix}/{self.plural}"
        if self.name is not None:
            path = f"{path}/{self.name}"
        if self.field_selector:
            path = f"{path}?{urlencode({'fieldSelector': self.field_selector})}"
        return path


def parse_api_path(path: str) -> APIPath:
    """Split *path* into an APIPath.

    Raises FetchError(400) when the path does not address a Kubernetes resource.
    """
    base, _, query = path.partition("?")
    parts = [p for p in base.split("/") if p]
    if not parts or parts[0] not in ("api", "apis"):
        raise FetchError(400, "path must start with /api or /apis", path=path)

    if parts[0] == "api":
        if len(parts) < 3:
            raise FetchError(400, "core path needs a version and a resource", path=path)
        group, version, rest = "", parts[1], parts[2:]
    else:
        if len(parts) < 4:
            raise FetchError(400, "group path needs a group, version and resource", path=path)
        group, version, rest = parts[1], parts[2], parts[3:]

    namespace: str | None = None
    # "namespaces/<ns>" alone addresses the Namespace object itself
    if rest[0] == "namespaces" and len(rest) >= 3:
        namespace, rest = rest[1], rest[2:]

    if len(rest) > 2:
        raise FetchError(400, "unsupported subresource path", path=path)

    plural = rest[0]
    name = rest[1] if len(rest) == 2 else None
    selectors = parse_qs(query).get("fieldSelector")
    return APIPath(
        group=group,
        version=version,
        plural=plural,
        namespace=namespace,
        name=name,
        field_selector=selectors[0] if selectors else None,
    )
