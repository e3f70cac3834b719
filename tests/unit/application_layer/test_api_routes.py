"""
Unit Tests for API Routes

Tests the FastAPI application end to end with TestClient: the lifespan runs,
the cache lives in a temporary directory and admission uses the in-process
limiter.
"""

import pytest
from fastapi.testclient import TestClient

from og_cache.application.app import create_app
from og_cache.rate_limiting.rate_limiter import FixedWindowRateLimiter
from og_cache.rendering.renderer import ArtifactRenderer, PlaceholderRenderer

KEY = "Hello World-Anonymous-example.com-light"
ADMIN_HEADERS = {"Authorization": "Bearer test-admin-token"}


class FailingRenderer(ArtifactRenderer):
    async def render(self, title, author, website, theme):
        raise RuntimeError("browser crashed")


@pytest.fixture
def renderer():
    return PlaceholderRenderer()


@pytest.fixture
def admission():
    return FixedWindowRateLimiter(window_ms=60000, max_requests=100)


@pytest.fixture
def client(test_settings, renderer, admission):
    app = create_app(settings=test_settings, renderer=renderer, admission=admission)
    with TestClient(app) as test_client:
        yield test_client


def flush_writes(client):
    client.portal.call(client.app.state.cache_manager.write_queue.join)


@pytest.mark.unit
class TestOGImageRoute:
    """Test suite for GET /og."""

    def test_miss_then_fast_hit(self, client, renderer):
        first = client.get("/og", params={"title": "Hello World"})
        second = client.get("/og", params={"title": "Hello World"})

        assert first.status_code == 200
        assert first.headers["content-type"] == "image/jpeg"
        assert first.headers["x-cache-status"] == "MISS"
        assert "last-modified" in first.headers
        assert second.headers["x-cache-status"] == "HIT-FAST"
        assert "last-modified" not in second.headers
        assert first.content == second.content
        assert renderer.render_count == 1

    def test_cache_headers(self, client):
        response = client.get("/og", params={"title": "Hello World"})

        assert response.headers["x-cache-key"] == KEY
        assert response.headers["etag"] == '"HelloWorldAnonymousexamplecomlight"'
        assert response.headers["cache-control"] == "public, max-age=3600, s-maxage=3600"
        assert response.headers["x-authorized"] == "true"
        assert response.headers["content-length"] == str(len(response.content))

    def test_rate_limit_headers(self, client):
        response = client.get("/og", params={"title": "Hello World"})

        assert response.headers["x-ratelimit-limit"] == "100"
        assert response.headers["x-ratelimit-remaining"] == "99"
        assert int(response.headers["x-ratelimit-reset"]) > 0

    def test_persistent_hit_after_fast_tier_cleared(self, client, renderer):
        client.get("/og", params={"title": "Hello World"})
        flush_writes(client)
        client.app.state.cache_manager.fast_tier.clear()

        response = client.get("/og", params={"title": "Hello World"})

        assert response.headers["x-cache-status"] == "HIT-PERSISTENT"
        assert renderer.render_count == 1

    def test_entities_decoded_before_keying(self, client):
        response = client.get("/og", params={"title": "Tom &amp; Jerry", "theme": "dark"})

        assert response.headers["x-cache-key"] == "Tom & Jerry-Anonymous-example.com-dark"

    def test_missing_title_is_400(self, client, renderer):
        response = client.get("/og")

        assert response.status_code == 400
        assert response.json() == {"error": "Title is required and must be a non-empty string"}
        assert renderer.render_count == 0

    def test_invalid_theme_is_400(self, client):
        response = client.get("/og", params={"title": "Hello", "theme": "neon"})

        assert response.status_code == 400
        assert response.json() == {"error": 'Theme must be either "light" or "dark"'}

    def test_render_failure_is_500(self, test_settings, admission):
        app = create_app(settings=test_settings, renderer=FailingRenderer(), admission=admission)
        with TestClient(app) as client:
            response = client.get("/og", params={"title": "Hello"})

        assert response.status_code == 500
        assert response.json() == {
            "error": "Internal server error while generating image",
            "message": "Failed to render image",
        }

    def test_render_failure_hides_message_in_production(self, test_settings, admission):
        settings = test_settings.model_copy(update={"ENVIRONMENT": "production"})
        app = create_app(settings=settings, renderer=FailingRenderer(), admission=admission)
        with TestClient(app) as client:
            response = client.get("/og", params={"title": "Hello"})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error while generating image"}


@pytest.mark.unit
class TestTrustTiers:
    """Test suite for Referer-based trust in production."""

    @pytest.fixture
    def production_client(self, test_settings, renderer, admission):
        settings = test_settings.model_copy(update={"ENVIRONMENT": "production"})
        app = create_app(settings=settings, renderer=renderer, admission=admission)
        with TestClient(app) as test_client:
            yield test_client

    def test_allowed_referer_trusted(self, production_client):
        response = production_client.get(
            "/og",
            params={"title": "Hello World"},
            headers={"Referer": "https://blog.example.com/posts/1"},
        )

        assert response.headers["x-authorized"] == "true"
        assert response.headers["cache-control"] == "public, max-age=3600, s-maxage=3600"

    def test_foreign_referer_untrusted(self, production_client):
        response = production_client.get(
            "/og",
            params={"title": "Hello World"},
            headers={"Referer": "https://scraper.test/"},
        )
        flush_writes(production_client)

        assert response.status_code == 200
        assert response.headers["x-authorized"] == "false"
        assert response.headers["cache-control"] == "public, max-age=300, s-maxage=300"
        manager = production_client.app.state.cache_manager
        assert manager.fast_tier.get(KEY).ttl_seconds == 300
        assert not (manager.persistent_tier.directory / "Hello_World-Anonymous-example_com-light.jpg").exists()


@pytest.mark.unit
class TestAdmission:
    """Test suite for rate limiting on /og."""

    @pytest.fixture
    def admission(self):
        return FixedWindowRateLimiter(window_ms=60000, max_requests=2)

    def test_third_request_is_429(self, client):
        for _ in range(2):
            assert client.get("/og", params={"title": "Hello"}).status_code == 200

        response = client.get("/og", params={"title": "Hello"})

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Too many requests"
        assert body["limit"] == 2
        assert body["remaining"] == 0
        assert body["retry_after"] >= 1
        assert body["reset"] > 1_000_000_000_000
        assert response.headers["retry-after"] == str(body["retry_after"])
        assert response.headers["x-ratelimit-remaining"] == "0"

    def test_invalid_requests_do_not_consume_budget(self, client):
        for _ in range(5):
            assert client.get("/og").status_code == 400

        assert client.get("/og", params={"title": "Hello"}).status_code == 200

    def test_forwarded_identities_limited_separately(self, client):
        for _ in range(2):
            client.get("/og", params={"title": "Hello"}, headers={"X-Forwarded-For": "203.0.113.1"})

        other = client.get("/og", params={"title": "Hello"}, headers={"X-Forwarded-For": "203.0.113.2"})

        assert other.status_code == 200


@pytest.mark.unit
class TestCacheAdminRoutes:
    """Test suite for /cache."""

    def test_status_requires_token(self, client):
        response = client.get("/cache")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_wrong_token_rejected(self, client):
        response = client.delete("/cache", headers={"Authorization": "Bearer wrong"})

        assert response.status_code == 401

    def test_status(self, client):
        client.get("/og", params={"title": "Hello World"})
        flush_writes(client)

        response = client.get("/cache", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["fast_cache"] == {"entries": 1, "max_size": 100, "keys": [KEY]}
        assert body["persistent_cache"] == {
            "entries": 1,
            "keys": ["Hello_World-Anonymous-example_com-light"],
        }

    def test_clear(self, client, renderer):
        client.get("/og", params={"title": "Hello World"})
        flush_writes(client)

        response = client.delete("/cache", headers=ADMIN_HEADERS)

        assert response.json() == {
            "message": "Cache cleared successfully",
            "fast_cleared_entries": 1,
            "persistent_cleared_entries": 1,
        }
        assert client.get("/og", params={"title": "Hello World"}).headers["x-cache-status"] == "MISS"
        assert renderer.render_count == 2

    def test_delete_entry(self, client):
        client.get("/og", params={"title": "Hello World"})
        flush_writes(client)

        response = client.delete("/cache/Hello%20World-Anonymous-example.com-light", headers=ADMIN_HEADERS)

        assert response.json() == {
            "message": "Cache entry deleted",
            "key": KEY,
            "fast_deleted": True,
            "persistent_deleted": True,
        }

    def test_delete_missing_entry(self, client):
        response = client.delete("/cache/nothing-here", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json()["message"] == "Cache entry not found"

    def test_unconfigured_token_rejects(self, test_settings, renderer, admission):
        settings = test_settings.model_copy(update={"ADMIN_TOKEN": None})
        with TestClient(create_app(settings=settings, renderer=renderer, admission=admission)) as client:
            response = client.get("/cache", headers=ADMIN_HEADERS)

        assert response.status_code == 401


@pytest.mark.unit
class TestHealthRoutes:
    """Test suite for health and metrics."""

    def test_health(self, client):
        client.get("/og", params={"title": "Hello"})

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["fast_cache"] == {"size": 1, "max_size": 100}
        assert "timestamp" in body
        assert "version" in body

    def test_health_detailed(self, client):
        response = client.get("/health/detailed")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["sweeper"]["running"] is True
        assert "hit_rate" in body["stats"]

    def test_metrics(self, client):
        client.get("/og", params={"title": "Hello"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "og_cache_lookups_total" in response.text

    def test_root(self, client):
        assert client.get("/").json()["endpoints"]["health"] == "/health"


@pytest.mark.unit
class TestRequestId:
    """Test suite for the request id middleware."""

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-abc"})

        assert response.headers["x-request-id"] == "req-abc"

    def test_request_id_generated(self, client):
        assert client.get("/health").headers["x-request-id"]
