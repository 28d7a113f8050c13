"""Tests for per-node enrichment helpers."""

from __future__ import annotations

from tests.conftest import FakeGateway, make_managed
from xportal.gateway.paths import parse_api_path
from xportal.models.resources import ConnectionDetail, ConnectionSecret
from xportal.trace.enrichment import (
    events_path,
    extract_connection_details,
    fetch_connection_secret,
    fetch_events,
)


def _event(name: str, kind: str = "Database", uid: str | None = None, **timestamps: str) -> dict:
    involved = {"kind": kind, "name": name}
    if uid is not None:
        involved["uid"] = uid
    return {"involvedObject": involved, **timestamps}


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class TestEvents:
    def test_events_path(self) -> None:
        assert events_path("team-a") == "/api/v1/namespaces/team-a/events"
        assert events_path("") == "/api/v1/events"

    def test_events_path_selects_involved_object(self) -> None:
        assert events_path("", "b1", "Bucket") == (
            "/api/v1/events?fieldSelector=involvedObject.name%3Db1%2CinvolvedObject.kind%3DBucket"
        )

    async def test_cluster_scoped_fetch_is_narrowed(self, gateway: FakeGateway) -> None:
        obj = make_managed("Bucket", "b1", api_version="s3.aws.crossplane.io/v1beta1")
        await fetch_events(gateway, obj)
        assert gateway.calls == [events_path("", "b1", "Bucket")]
        assert parse_api_path(gateway.calls[0]).field_selector == "involvedObject.name=b1,involvedObject.kind=Bucket"

    async def test_filters_by_name_kind_and_uid(self, gateway: FakeGateway) -> None:
        obj = make_managed("Database", "db", namespace="team-a")
        match = _event("db", uid="uid-Database-db", lastTimestamp="2024-01-01T00:00:00Z")
        stale = _event("db", uid="uid-previous-incarnation")
        other_kind = _event("db", kind="User")
        gateway.add(events_path("team-a"), {"items": [match, stale, other_kind]})

        assert await fetch_events(gateway, obj) == (match,)

    async def test_sorted_oldest_first(self, gateway: FakeGateway) -> None:
        obj = make_managed("Database", "db")
        b = _event("db", lastTimestamp="2024-01-01T00:02:00Z")
        a = _event("db", eventTime="2024-01-01T00:01:00Z")
        c = _event("db", firstTimestamp="2024-01-01T00:03:00Z")
        gateway.add(events_path(""), {"items": [c, b, a]})

        assert await fetch_events(gateway, obj) == (a, b, c)

    async def test_failure_is_empty(self, gateway: FakeGateway) -> None:
        gateway.fail(events_path(""), 403, "forbidden")
        assert await fetch_events(gateway, make_managed("Database", "db")) == ()

    async def test_nameless_object_skips_fetch(self, gateway: FakeGateway) -> None:
        assert await fetch_events(gateway, {"kind": "Database", "metadata": {}}) == ()
        assert gateway.calls == []


# ---------------------------------------------------------------------------
# Connection details
# ---------------------------------------------------------------------------


class TestConnectionDetails:
    def test_list_form(self) -> None:
        obj = {
            "status": {
                "connectionDetails": [
                    {"name": "endpoint", "type": "Value", "value": "db.internal"},
                    {"name": "password", "sensitive": True},
                    {"type": "Value"},
                ]
            }
        }
        assert extract_connection_details(obj) == (
            ConnectionDetail(type="Value", name="endpoint", value="db.internal"),
            ConnectionDetail(type="Value", name="password", sensitive=True),
        )

    def test_mapping_form(self) -> None:
        obj = {"status": {"connectionDetails": {"port": "5432"}}}
        assert extract_connection_details(obj) == (ConnectionDetail(type="Value", name="port", value="5432"),)

    def test_absent_or_malformed(self) -> None:
        assert extract_connection_details({}) == ()
        assert extract_connection_details({"status": {"connectionDetails": "garbage"}}) == ()


# ---------------------------------------------------------------------------
# Connection secret
# ---------------------------------------------------------------------------


class TestConnectionSecret:
    async def test_key_names_only(self, gateway: FakeGateway) -> None:
        obj = make_managed("Database", "db")
        obj["spec"]["writeConnectionSecretToRef"] = {"name": "db-conn", "namespace": "team-a"}
        gateway.add("/api/v1/namespaces/team-a/secrets/db-conn", {"data": {"user": "YQ==", "endpoint": "Yg=="}})

        secret = await fetch_connection_secret(gateway, obj, "default")
        assert secret == ConnectionSecret(name="db-conn", namespace="team-a", keys=("endpoint", "user"))

    async def test_namespace_falls_back_to_object_then_default(self, gateway: FakeGateway) -> None:
        namespaced = make_managed("Database", "db", namespace="team-b")
        namespaced["spec"]["writeConnectionSecretToRef"] = {"name": "conn"}
        cluster = make_managed("Database", "db2")
        cluster["spec"]["writeConnectionSecretToRef"] = {"name": "conn"}

        assert (await fetch_connection_secret(gateway, namespaced, "default")).namespace == "team-b"
        assert (await fetch_connection_secret(gateway, cluster, "crossplane-system")).namespace == "crossplane-system"

    async def test_unreadable_secret_keeps_reference(self, gateway: FakeGateway) -> None:
        obj = make_managed("Database", "db")
        obj["spec"]["writeConnectionSecretToRef"] = {"name": "db-conn", "namespace": "team-a"}
        gateway.fail("/api/v1/namespaces/team-a/secrets/db-conn", 403, "forbidden")

        assert await fetch_connection_secret(gateway, obj, "default") == ConnectionSecret(
            name="db-conn", namespace="team-a"
        )

    async def test_no_reference(self, gateway: FakeGateway) -> None:
        assert await fetch_connection_secret(gateway, make_managed("Database", "db"), "default") is None
        assert gateway.calls == []
