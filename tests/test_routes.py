import aiohttp
from fastapi.testclient import TestClient

from main import create_app
from models.session_models import GeoResult
from services.notifier import WebhookNotifier


def _register(client, session_id="abc", **overrides):
    body = {
        "session_id": session_id,
        "label": "Laptop-1",
        "notify_url": "https://hooks.test/abc",
        "message": "scan me",
        "metadata": {"os": "linux"},
    }
    body.update(overrides)
    return client.post("/api/register", json=body)


def test_register_and_get(client):
    response = _register(client)
    assert response.status_code == 200
    assert response.json() == {"success": True, "session_id": "abc"}

    session = client.get("/api/sessions/abc").json()
    assert session["visit_count"] == 0
    assert session["metadata"] == {"os": "linux"}


def test_get_unknown_session_is_404(client):
    response = client.get("/api/sessions/nope")
    assert response.status_code == 404
    assert response.json()["detail"] == "Session not found"


def test_track_unknown_session_is_404(client, registry, geo_resolver):
    response = client.get("/track/nope", follow_redirects=False)
    assert response.status_code == 404
    assert response.text == "Session not found"
    assert registry.size() == 0
    assert geo_resolver.calls == []


def test_track_records_three_visits_in_order(client, notifier):
    _register(client)
    ips = ["203.0.113.1", "203.0.113.2", "203.0.113.3"]

    for ip in ips:
        response = client.get(
            "/track/abc",
            headers={"X-Forwarded-For": f"{ip}, 10.0.0.1", "User-Agent": "pytest-agent"},
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"] == "https://example.org/landing"

    session = client.get("/api/sessions/abc").json()
    assert session["visit_count"] == 3
    assert [visit["ip"] for visit in session["visits"]] == ips
    assert session["visits"][0]["referer"] == "Direct"
    assert session["visits"][0]["location"] == "Lisbon, Lisbon, Portugal"
    assert [number for _, _, number in notifier.dispatched] == [1, 2, 3]
    assert notifier.dispatched[0][1].user_agent == "pytest-agent"


def test_track_falls_back_to_real_ip_header(client, geo_resolver):
    _register(client)
    client.get("/track/abc", headers={"X-Real-IP": "198.51.100.7"}, follow_redirects=False)
    assert geo_resolver.calls == ["198.51.100.7"]


def test_enrich_flow(client):
    _register(client)
    assert client.post("/api/sessions/abc/enrich", json={"screen": "1920x1080"}).status_code == 409
    assert client.post("/api/sessions/nope/enrich", json={}).status_code == 404

    client.get("/track/abc", headers={"X-Forwarded-For": "203.0.113.9"}, follow_redirects=False)
    response = client.post(
        "/api/sessions/abc/enrich",
        json={"screen": "1920x1080", "plugins": 4, "touch": True},
    )
    assert response.status_code == 200
    assert response.json()["visit_count"] == 1

    visit = client.get("/api/sessions/abc").json()["visits"][0]
    assert visit["enrichment"] == {"screen": "1920x1080", "plugins": 4, "touch": True}


def test_reregister_resets_visits(client):
    _register(client)
    client.get("/track/abc", follow_redirects=False)
    _register(client, label="Laptop-2")

    session = client.get("/api/sessions/abc").json()
    assert session["label"] == "Laptop-2"
    assert session["visit_count"] == 0


def test_admin_listing_and_status(client):
    _register(client, "one")
    _register(client, "two", label="Desktop")
    client.get("/track/two", follow_redirects=False)

    listing = client.get("/api/admin/sessions").json()
    assert listing["total_sessions"] == 2
    assert [s["session_id"] for s in listing["sessions"]] == ["one", "two"]
    assert listing["sessions"][1]["visit_count"] == 1
    assert listing["sessions"][1]["label"] == "Desktop"

    status = client.get("/").json()
    assert status["sessions"] == 2
    assert "track" in status["endpoints"]

    health = client.get("/health").json()
    assert health == {"ok": True, "sessions": 2, "sweeper_running": False}


def test_sweeper_task_runs_with_lifespan(registry, geo_resolver, notifier):
    app = create_app(registry=registry, geo_resolver=geo_resolver, notifier=notifier)
    with TestClient(app) as test_client:
        assert test_client.get("/health").json()["sweeper_running"] is True
    assert app.state.sweeper_task.done()


class UnreachableHttpSession:
    """aiohttp stand-in whose every request fails to connect."""

    def __init__(self):
        self.posts = []

    def post(self, url, **kwargs):
        self.posts.append(url)
        raise aiohttp.ClientConnectionError("connection refused")


class UnknownGeoResolver:
    async def resolve(self, ip):
        return GeoResult.unknown()


class SweepingGeoResolver:
    """Expire every session while the lookup is in flight."""

    def __init__(self, registry):
        self.registry = registry

    async def resolve(self, ip):
        self.registry.prune_older_than(float("inf"))
        return GeoResult.unknown()


def test_enrich_stores_any_json_object_unchanged(client):
    _register(client)
    client.get("/track/abc", follow_redirects=False)

    body = {"screen": 1920, "plugins": "5", "cookies_enabled": True, "fonts": ["Arial", "Menlo"]}
    response = client.post("/api/sessions/abc/enrich", json=body)

    assert response.status_code == 200
    visit = client.get("/api/sessions/abc").json()["visits"][0]
    assert visit["enrichment"] == body


def test_enrich_rejects_non_object_body(client):
    _register(client)
    client.get("/track/abc", follow_redirects=False)

    assert client.post("/api/sessions/abc/enrich", json=["screen"]).status_code == 422


def test_track_records_visit_when_downstream_fails(registry):
    http = UnreachableHttpSession()
    app = create_app(
        registry=registry,
        geo_resolver=UnknownGeoResolver(),
        notifier=WebhookNotifier(http),
        start_sweeper=False,
        landing_url="https://example.org/landing",
    )
    with TestClient(app) as test_client:
        _register(test_client)
        response = test_client.get("/track/abc", headers={"X-Forwarded-For": "8.8.8.8"}, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "https://example.org/landing"

    session = registry.get("abc")
    assert session.visit_count == 1
    assert session.visits[0].ip == "8.8.8.8"
    assert session.visits[0].geo.location() == "Unknown"
    assert http.posts == ["https://hooks.test/abc"]


def test_track_returns_404_when_session_swept_during_lookup(registry, notifier):
    app = create_app(
        registry=registry,
        geo_resolver=SweepingGeoResolver(registry),
        notifier=notifier,
        start_sweeper=False,
    )
    with TestClient(app) as test_client:
        _register(test_client)
        response = test_client.get("/track/abc", follow_redirects=False)

        assert response.status_code == 404
        assert response.text == "Session not found"
        assert "abc" not in registry
        assert registry.size() == 0
    assert notifier.dispatched == []
