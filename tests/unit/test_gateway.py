"""Tests for the kubernetes-asyncio gateway and the FetchResult helpers."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from kubernetes_asyncio.client.exceptions import ApiException

from tests.conftest import FakeGateway
from xportal.gateway.base import FetchError, FetchResult
from xportal.gateway.kubernetes import KubernetesGateway

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_gateway() -> KubernetesGateway:
    api_client = MagicMock()
    api_client.close = AsyncMock()
    api_client.sanitize_for_serialization = MagicMock(side_effect=lambda obj: obj.to_dict())
    gateway = KubernetesGateway(api_client, request_timeout=7)
    gateway._custom = MagicMock()
    gateway._core = MagicMock()
    return gateway


# ---------------------------------------------------------------------------
# FetchResult / try_fetch
# ---------------------------------------------------------------------------


class TestFetchResult:
    def test_ok_value(self) -> None:
        result = FetchResult(value={"a": 1})
        assert result.ok
        assert result.unwrap_or({}) == {"a": 1}

    def test_error_uses_default(self) -> None:
        result: FetchResult[dict] = FetchResult(error=FetchError(500, "boom"))
        assert not result.ok
        assert result.unwrap_or({"items": []}) == {"items": []}

    def test_not_found_flag(self) -> None:
        assert FetchError(404, "nope").not_found
        assert not FetchError(0, "timeout").not_found

    async def test_try_fetch_captures_errors(self) -> None:
        gateway = FakeGateway()
        result = await gateway.try_fetch("/apis/example.org/v1/widgets/w")
        assert result.error is not None
        assert result.error.status_code == 404
        assert result.value is None


# ---------------------------------------------------------------------------
# KubernetesGateway: custom objects
# ---------------------------------------------------------------------------


class TestCustomObjects:
    async def test_get_cluster_object(self) -> None:
        gateway = _make_gateway()
        gateway._custom.get_cluster_custom_object = AsyncMock(return_value={"kind": "Bucket"})

        obj = await gateway.fetch("/apis/s3.aws.crossplane.io/v1beta1/buckets/b1")
        assert obj == {"kind": "Bucket"}
        gateway._custom.get_cluster_custom_object.assert_awaited_once_with(
            "s3.aws.crossplane.io", "v1beta1", "buckets", "b1", _request_timeout=7
        )

    async def test_get_namespaced_object(self) -> None:
        gateway = _make_gateway()
        gateway._custom.get_namespaced_custom_object = AsyncMock(return_value={"kind": "Widget"})

        await gateway.fetch("/apis/example.org/v1/namespaces/team-a/widgets/w1")
        gateway._custom.get_namespaced_custom_object.assert_awaited_once_with(
            "example.org", "v1", "team-a", "widgets", "w1", _request_timeout=7
        )

    async def test_object_named_like_its_plural_is_a_get(self) -> None:
        gateway = _make_gateway()
        gateway._custom.get_cluster_custom_object = AsyncMock(return_value={"kind": "Database"})
        gateway._custom.list_cluster_custom_object = AsyncMock()

        await gateway.fetch("/apis/sql.gcp.example.org/v1beta1/databases/databases")
        gateway._custom.get_cluster_custom_object.assert_awaited_once_with(
            "sql.gcp.example.org", "v1beta1", "databases", "databases", _request_timeout=7
        )
        gateway._custom.list_cluster_custom_object.assert_not_awaited()

    async def test_list_cluster_objects(self) -> None:
        gateway = _make_gateway()
        gateway._custom.list_cluster_custom_object = AsyncMock(return_value={"items": []})

        assert await gateway.fetch("/apis/pkg.crossplane.io/v1/providers") == {"items": []}
        gateway._custom.list_cluster_custom_object.assert_awaited_once_with(
            "pkg.crossplane.io", "v1", "providers", _request_timeout=7
        )

    async def test_post_creates_object(self) -> None:
        gateway = _make_gateway()
        gateway._custom.create_namespaced_custom_object = AsyncMock(return_value={"kind": "Widget"})
        body = {"kind": "Widget"}

        await gateway.fetch("/apis/example.org/v1/namespaces/team-a/widgets", method="POST", body=body)
        gateway._custom.create_namespaced_custom_object.assert_awaited_once_with(
            "example.org", "v1", "team-a", "widgets", body, _request_timeout=7
        )

    async def test_post_without_body_is_rejected(self) -> None:
        gateway = _make_gateway()
        with pytest.raises(FetchError) as exc_info:
            await gateway.fetch("/apis/example.org/v1/widgets", method="POST")
        assert exc_info.value.status_code == 400


# ---------------------------------------------------------------------------
# KubernetesGateway: core resources
# ---------------------------------------------------------------------------


class TestCoreResources:
    async def test_namespaced_events_are_serialised(self) -> None:
        gateway = _make_gateway()
        event_list = MagicMock()
        event_list.to_dict = MagicMock(return_value={"items": [{"reason": "Created"}]})
        gateway._core.list_namespaced_event = AsyncMock(return_value=event_list)

        data = await gateway.fetch("/api/v1/namespaces/team-a/events")
        assert data == {"items": [{"reason": "Created"}]}
        gateway._core.list_namespaced_event.assert_awaited_once_with("team-a", _request_timeout=7)

    async def test_cluster_wide_events(self) -> None:
        gateway = _make_gateway()
        gateway._core.list_event_for_all_namespaces = AsyncMock(return_value={"items": []})
        await gateway.fetch("/api/v1/events")
        gateway._core.list_event_for_all_namespaces.assert_awaited_once_with(_request_timeout=7)

    async def test_read_secret(self) -> None:
        gateway = _make_gateway()
        gateway._core.read_namespaced_secret = AsyncMock(return_value={"data": {"password": "eA=="}})
        data = await gateway.fetch("/api/v1/namespaces/team-a/secrets/db-conn")
        assert data["data"] == {"password": "eA=="}
        gateway._core.read_namespaced_secret.assert_awaited_once_with("db-conn", "team-a", _request_timeout=7)

    async def test_read_namespace(self) -> None:
        gateway = _make_gateway()
        gateway._core.read_namespace = AsyncMock(return_value={"kind": "Namespace"})
        await gateway.fetch("/api/v1/namespaces/team-a")
        gateway._core.read_namespace.assert_awaited_once_with("team-a", _request_timeout=7)

    async def test_other_core_kinds_use_raw_get(self) -> None:
        gateway = _make_gateway()
        gateway._api_client.call_api = AsyncMock(return_value={"kind": "Service"})

        obj = await gateway.fetch("/api/v1/namespaces/team-a/services/db")
        assert obj == {"kind": "Service"}
        gateway._api_client.call_api.assert_awaited_once_with(
            "/api/v1/namespaces/team-a/services/db",
            "GET",
            query_params=[],
            header_params={"Accept": "application/json"},
            response_type="object",
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
            _request_timeout=7,
        )

    async def test_raw_get_passes_field_selector(self) -> None:
        gateway = _make_gateway()
        gateway._api_client.call_api = AsyncMock(return_value={"items": []})

        await gateway.fetch("/api/v1/namespaces/team-a/pods?fieldSelector=status.phase%3DRunning")
        args, kwargs = gateway._api_client.call_api.await_args
        assert args[0] == "/api/v1/namespaces/team-a/pods"
        assert kwargs["query_params"] == [("fieldSelector", "status.phase=Running")]

    async def test_event_field_selector_is_forwarded(self) -> None:
        gateway = _make_gateway()
        gateway._core.list_event_for_all_namespaces = AsyncMock(return_value={"items": []})
        await gateway.fetch("/api/v1/events?fieldSelector=involvedObject.name%3Db1")
        gateway._core.list_event_for_all_namespaces.assert_awaited_once_with(
            field_selector="involvedObject.name=b1", _request_timeout=7
        )

    async def test_core_post_is_405(self) -> None:
        gateway = _make_gateway()
        with pytest.raises(FetchError) as exc_info:
            await gateway.fetch("/api/v1/namespaces/team-a/secrets", method="POST", body={})
        assert exc_info.value.status_code == 405


# ---------------------------------------------------------------------------
# KubernetesGateway: error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    async def test_api_exception_keeps_status(self) -> None:
        gateway = _make_gateway()
        gateway._custom.get_cluster_custom_object = AsyncMock(side_effect=ApiException(status=404, reason="Not Found"))

        with pytest.raises(FetchError) as exc_info:
            await gateway.fetch("/apis/example.org/v1/widgets/w1")
        assert exc_info.value.not_found
        assert exc_info.value.path == "/apis/example.org/v1/widgets/w1"

    async def test_forbidden(self) -> None:
        gateway = _make_gateway()
        gateway._custom.get_cluster_custom_object = AsyncMock(side_effect=ApiException(status=403, reason="Forbidden"))
        with pytest.raises(FetchError) as exc_info:
            await gateway.fetch("/apis/example.org/v1/widgets/w1")
        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Forbidden"

    @pytest.mark.parametrize(
        "exc",
        [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()],
    )
    async def test_transport_failures_are_status_zero(self, exc: Exception) -> None:
        gateway = _make_gateway()
        gateway._custom.get_cluster_custom_object = AsyncMock(side_effect=exc)
        with pytest.raises(FetchError) as exc_info:
            await gateway.fetch("/apis/example.org/v1/widgets/w1")
        assert exc_info.value.status_code == 0

    async def test_non_object_body_is_502(self) -> None:
        gateway = _make_gateway()
        gateway._api_client.sanitize_for_serialization = MagicMock(return_value=["not", "a", "dict"])
        gateway._custom.get_cluster_custom_object = AsyncMock(return_value=object())
        with pytest.raises(FetchError) as exc_info:
            await gateway.fetch("/apis/example.org/v1/widgets/w1")
        assert exc_info.value.status_code == 502

    async def test_invalid_path_never_reaches_client(self) -> None:
        gateway = _make_gateway()
        with pytest.raises(FetchError):
            await gateway.fetch("/healthz")
        gateway._custom.assert_not_called()

    async def test_close_closes_api_client(self) -> None:
        gateway = _make_gateway()
        await gateway.close()
        gateway._api_client.close.assert_awaited_once()
