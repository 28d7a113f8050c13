"""Resource fetch gateway backed by kubernetes-asyncio.

Group paths (``/apis/...``) go through ``CustomObjectsApi``.  Core paths
(``/api/v1/...``) use the typed ``CoreV1Api`` methods for the kinds a trace
reads most; any other core kind is fetched as plain JSON through the
``ApiClient`` itself.
"""

from __future__ import annotations

import asyncio
import dataclasses
from typing import Any

import aiohttp
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio import config as k8s_config  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from xportal.gateway.base import FetchError, HTTPMethod, ResourceGateway
from xportal.gateway.paths import APIPath, parse_api_path
from xportal.models.config import GatewayConfig
from xportal.observability.logging import get_logger

_log = get_logger("gateway.kubernetes")

# plural -> (list namespaced, list all, read namespaced, read cluster)
_CORE_METHODS: dict[str, tuple[str | None, str | None, str | None, str | None]] = {
    "events": ("list_namespaced_event", "list_event_for_all_namespaces", "read_namespaced_event", None),
    "secrets": ("list_namespaced_secret", "list_secret_for_all_namespaces", "read_namespaced_secret", None),
    "configmaps": (
        "list_namespaced_config_map",
        "list_config_map_for_all_namespaces",
        "read_namespaced_config_map",
        None,
    ),
    "namespaces": (None, "list_namespace", None, "read_namespace"),
}


class KubernetesGateway(ResourceGateway):
    """Answers API paths using a kubernetes-asyncio ``ApiClient``.

    Args:
        api_client:      Configured ``kubernetes_asyncio.client.ApiClient``.
        request_timeout: Per-request timeout in seconds.
    """

    def __init__(self, api_client: Any, request_timeout: float = 30.0) -> None:
        self._api_client = api_client
        self._custom = k8s_client.CustomObjectsApi(api_client)
        self._core = k8s_client.CoreV1Api(api_client)
        self._timeout = request_timeout

    async def fetch(
        self,
        path: str,
        method: HTTPMethod = "GET",
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        api_path = parse_api_path(path)
        _log.debug("k8s_request", method=method, path=path)
        try:
            if api_path.core:
                result = await self._core_request(api_path, method, path)
            else:
                result = await self._custom_request(api_path, method, body)
        except ApiException as exc:
            raise FetchError(int(exc.status or 0), str(exc.reason or "API error"), path=path) from exc
        except (aiohttp.ClientError, TimeoutError, asyncio.TimeoutError) as exc:
            raise FetchError(0, f"request failed: {exc}", path=path) from exc

        data = result if isinstance(result, dict) else self._api_client.sanitize_for_serialization(result)
        if not isinstance(data, dict):
            raise FetchError(502, "API server returned a non-object body", path=path)
        return data

    async def _custom_request(
        self,
        api_path: APIPath,
        method: HTTPMethod,
        body: dict[str, Any] | None,
    ) -> Any:
        g, v, plural, ns, name = api_path.group, api_path.version, api_path.plural, api_path.namespace, api_path.name
        kwargs = {"_request_timeout": self._timeout}
        if method == "POST":
            if body is None:
                raise FetchError(400, "POST requires a body")
            if ns:
                return await self._custom.create_namespaced_custom_object(g, v, ns, plural, body, **kwargs)
            return await self._custom.create_cluster_custom_object(g, v, plural, body, **kwargs)
        if name is not None:
            if ns:
                return await self._custom.get_namespaced_custom_object(g, v, ns, plural, name, **kwargs)
            return await self._custom.get_cluster_custom_object(g, v, plural, name, **kwargs)
        list_kwargs = self._list_kwargs(api_path)
        if ns:
            return await self._custom.list_namespaced_custom_object(g, v, ns, plural, **list_kwargs)
        return await self._custom.list_cluster_custom_object(g, v, plural, **list_kwargs)

    async def _core_request(self, api_path: APIPath, method: HTTPMethod, path: str) -> Any:
        if method != "GET":
            raise FetchError(405, f"{method} is not supported for core resources", path=path)
        kwargs = self._list_kwargs(api_path)
        ns, name = api_path.namespace, api_path.name
        list_ns, list_all, read_ns, read_cluster = _CORE_METHODS.get(api_path.plural, (None, None, None, None))

        if name is not None and ns and read_ns:
            return await getattr(self._core, read_ns)(name, ns, _request_timeout=self._timeout)
        if name is not None and not ns and read_cluster:
            return await getattr(self._core, read_cluster)(name, _request_timeout=self._timeout)
        if name is None and ns and list_ns:
            return await getattr(self._core, list_ns)(ns, **kwargs)
        if name is None and not ns and list_all:
            return await getattr(self._core, list_all)(**kwargs)
        return await self._raw_get(api_path)

    async def _raw_get(self, api_path: APIPath) -> Any:
        """GET a core path that has no typed CoreV1Api method, as plain JSON."""
        query = [("fieldSelector", api_path.field_selector)] if api_path.field_selector else []
        return await self._api_client.call_api(
            dataclasses.replace(api_path, field_selector=None).to_path(),
            "GET",
            query_params=query,
            header_params={"Accept": "application/json"},
            response_type="object",
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
            _request_timeout=self._timeout,
        )

    def _list_kwargs(self, api_path: APIPath) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"_request_timeout": self._timeout}
        if api_path.field_selector:
            kwargs["field_selector"] = api_path.field_selector
        return kwargs

    async def close(self) -> None:
        await self._api_client.close()


async def create_gateway(config: GatewayConfig) -> KubernetesGateway:
    """Build a gateway from in-cluster config, falling back to kubeconfig."""
    try:
        k8s_config.load_incluster_config()
        _log.info("k8s client configured from in-cluster service account")
    except k8s_config.ConfigException:
        await k8s_config.load_kube_config(context=config.kube_context or None)
        _log.info("k8s client configured from kubeconfig", context=config.kube_context or "<current>")
    return KubernetesGateway(k8s_client.ApiClient(), request_timeout=float(config.request_timeout))
