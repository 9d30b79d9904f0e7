"""API endpoint tests using FastAPI TestClient.

Dependency overrides swap in the in-memory repositories and a mocked
ROOK client, testing the API layer without Postgres or the network.
"""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from health.api import get_profile_service, get_snapshot_cache, get_upstream_client
from health.profiles import ProfileService
from health.snapshots import SnapshotCache
from main import app
from tests.conftest import (
    DAY,
    USER_ID,
    InMemoryProfileRepository,
    InMemorySnapshotRepository,
    make_upstream,
)


@pytest.fixture
def stack():
    """Overridden dependencies; tests set `stack.upstream` before requesting."""
    state = SimpleNamespace(
        profiles=InMemoryProfileRepository(),
        snapshots=InMemorySnapshotRepository(),
        upstream=make_upstream(200, {"status": "ok"}),
    )
    app.dependency_overrides[get_upstream_client] = lambda: state.upstream
    app.dependency_overrides[get_profile_service] = lambda: ProfileService(
        state.profiles, state.upstream
    )
    app.dependency_overrides[get_snapshot_cache] = lambda: SnapshotCache(
        state.snapshots, state.upstream
    )
    yield state
    app.dependency_overrides.clear()


@pytest.fixture
def client(stack):
    with TestClient(app) as c:
        yield c


class TestPingEndpoint:
    def test_ping(self):
        with TestClient(app) as c:
            resp = c.get("/ping")
            assert resp.status_code == 200
            assert resp.json() == {"status": "pong"}


class TestProfileEndpoints:
    def test_submit_merges_and_passes_upstream_body(self, client, stack, valid_profile_payload):
        stack.upstream = make_upstream(201, {"message": "User information created"})

        resp = client.post("/api/v1/users/info", json=valid_profile_payload)

        assert resp.status_code == 201
        assert resp.json() == {"message": "User information created"}
        assert stack.profiles.rows[USER_ID].height_cm == 180

    def test_submit_invalid_profile_returns_problem_json(
        self, client, stack, valid_profile_payload
    ):
        resp = client.post(
            "/api/v1/users/info", json={**valid_profile_payload, "height_cm_int": "tall"}
        )

        assert resp.status_code == 422
        assert resp.headers["content-type"] == "application/problem+json"
        body = resp.json()
        assert body["title"] == "Validation Error"
        assert body["violations"][0]["field"] == "height_cm_int"
        stack.upstream.request.assert_not_awaited()

    def test_submit_upstream_rejection_keeps_status(self, client, stack, valid_profile_payload):
        stack.upstream = make_upstream(401, {"message": "invalid client credentials"})

        resp = client.post("/api/v1/users/info", json=valid_profile_payload)

        assert resp.status_code == 401
        assert resp.json()["detail"] == "invalid client credentials"
        assert stack.profiles.rows == {}

    def test_time_zone(self, client, stack):
        resp = client.post(
            f"/api/v1/users/{USER_ID}/timezone",
            json={"time_zone": "Europe/Madrid", "offset": "+02:00"},
        )

        assert resp.status_code == 200
        assert stack.profiles.rows[USER_ID].time_zone == "Europe/Madrid"

    def test_stored_profile_shape(self, client, stack):
        stack.profiles.seed(USER_ID, sex="female", height_cm=165)

        resp = client.get(f"/api/v1/users/{USER_ID}/info")

        assert resp.status_code == 200
        body = resp.json()
        assert body["data_structure"] == "user_info"
        assert body["user_information"]["height_cm"] == 165
        stack.upstream.request.assert_not_awaited()

    def test_dated_profile_comes_from_upstream(self, client, stack):
        payload = {"data_structure": "user_info", "user_information": {}}
        stack.upstream = make_upstream(200, payload)

        resp = client.get(f"/api/v1/users/{USER_ID}/info", params={"date": DAY})

        assert resp.status_code == 200
        assert resp.json() == payload


class TestSnapshotEndpoints:
    def test_sleep_summary_cached_after_first_read(self, client, stack):
        stack.upstream = make_upstream(200, {"score": 82})

        params = {"user_id": USER_ID, "date": DAY}
        first = client.get("/api/v1/health/sleep/summary", params=params)
        second = client.get("/api/v1/health/sleep/summary", params=params)

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json() == {"score": 82}
        assert stack.upstream.request.await_count == 1

    def test_events_route_uses_subtype(self, client, stack):
        stack.upstream = make_upstream(200, {"weight_kg": 70})

        resp = client.get(
            "/api/v1/health/body/events/weight", params={"user_id": USER_ID, "date": DAY}
        )

        assert resp.status_code == 200
        assert (USER_ID, "body_weight", DAY) in stack.snapshots.rows

    def test_no_content_is_204_with_empty_body(self, client, stack):
        stack.upstream = make_upstream(204, None)

        resp = client.get(
            "/api/v1/health/physical/summary", params={"user_id": USER_ID, "date": DAY}
        )

        assert resp.status_code == 204
        assert resp.content == b""

    def test_missing_user_id_is_422(self, client, stack):
        resp = client.get("/api/v1/health/sleep/summary", params={"date": DAY})

        assert resp.status_code == 422
        fields = {v["field"] for v in resp.json()["violations"]}
        assert "user_id" in fields
        stack.upstream.request.assert_not_awaited()

    def test_reserved_summary_event_is_422(self, client):
        resp = client.get(
            "/api/v1/health/physical/events/summary", params={"user_id": USER_ID, "date": DAY}
        )
        assert resp.status_code == 422


class TestPassThroughEndpoints:
    def test_upstream_redirect_is_bad_gateway(self, client, stack):
        stack.upstream = make_upstream(302, None)

        resp = client.get(f"/api/v1/users/{USER_ID}/sources/authorized")

        assert resp.status_code == 502
        assert resp.headers["content-type"] == "application/problem+json"
        assert "location" not in resp.headers

    def test_authorized_sources(self, client, stack):
        stack.upstream = make_upstream(200, {"sources": {"Garmin": True}})

        resp = client.get(f"/api/v1/users/{USER_ID}/sources/authorized")

        assert resp.json() == {"sources": {"Garmin": True}}
        stack.upstream.request.assert_awaited_once_with(
            "GET", f"/api/v2/user_id/{USER_ID}/data_sources/authorized", params=None, json=None
        )

    def test_revoke_forwards_data_source(self, client, stack):
        resp = client.post(
            f"/api/v1/users/{USER_ID}/sources/revoke", json={"data_source": "Oura"}
        )

        assert resp.status_code == 200
        stack.upstream.request.assert_awaited_once_with(
            "POST",
            f"/api/v1/user_id/{USER_ID}/data_sources/revoke_auth",
            params=None,
            json={"data_source": "Oura"},
        )

    def test_invalid_user_id_path_rejected(self, client, stack):
        resp = client.get("/api/v1/users/not%20valid!/sources/authorized")

        assert resp.status_code == 422
        assert resp.headers["content-type"] == "application/problem+json"
        stack.upstream.request.assert_not_awaited()

    def test_users_status_page_must_be_positive(self, client):
        resp = client.get(
            "/api/v1/client/users/status", params={"up_to_date": DAY, "page": 0}
        )
        assert resp.status_code == 422


class TestInboundCallbacks:
    def test_webhook_acknowledged(self, client):
        resp = client.post(
            "/api/v1/webhooks/rook",
            json={"user_id": USER_ID, "data_structure": "sleep_summary"},
        )
        assert resp.status_code == 200
        assert resp.json() == {"received": True}

    def test_authorization_callback_redirects(self, client):
        resp = client.get(
            f"/api/v1/callback/client_uuid/abc-123/user_id/{USER_ID}",
            follow_redirects=False,
        )
        assert resp.status_code == 302
        assert resp.headers["location"].endswith("?status=authorized")


class TestRFC9457ErrorFormat:
    def test_error_has_required_fields(self, client):
        resp = client.get("/api/v1/health/body/summary", params={"user_id": USER_ID})
        body = resp.json()
        for key in ("type", "title", "status", "detail", "instance"):
            assert key in body
        assert body["instance"] == "/api/v1/health/body/summary"

    def test_fastapi_422_uses_problem_json_format(self, client):
        resp = client.post("/api/v1/webhooks/rook", json=["not", "an", "object"])
        assert resp.status_code == 422
        body = resp.json()
        assert body["type"] == "https://api.health-gateway.dev/problems/validation-error"
        assert "violations" in body

    def test_request_id_in_response_header(self):
        with TestClient(app) as c:
            resp = c.get("/ping")
            assert "X-Request-ID" in resp.headers

    def test_caller_request_id_is_echoed(self):
        with TestClient(app) as c:
            resp = c.get("/ping", headers={"X-Request-ID": "trace-abc-123"})
            assert resp.headers["X-Request-ID"] == "trace-abc-123"
