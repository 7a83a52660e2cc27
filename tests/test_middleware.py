"""Tests for the rate limiting request hooks and client key derivation."""

import pytest
from flask import Flask

from shortener.middleware import RateLimitMiddleware, client_key
from shortener.rate_limiter import RateLimiter


@pytest.fixture
def make_app(clock):
    def _make(capacity, window):
        app = Flask(__name__)
        app.calls = []

        @app.route("/x", methods=["GET", "POST"])
        def x():
            app.calls.append("/x")
            return "ok"

        limiter = RateLimiter(capacity=capacity, window=window, clock=clock)
        RateLimitMiddleware(limiter, app)
        return app
    return _make


class TestClientKey:
    def test_prefers_first_forwarded_for_entry(self):
        environ = {
            "HTTP_X_FORWARDED_FOR": " 203.0.113.7 , 10.0.0.1",
            "REMOTE_ADDR": "10.0.0.2",
        }
        assert client_key(environ) == "203.0.113.7"

    def test_blank_forwarded_for_falls_back_to_remote_addr(self):
        environ = {"HTTP_X_FORWARDED_FOR": " , 10.0.0.1", "REMOTE_ADDR": "10.0.0.2"}
        assert client_key(environ) == "10.0.0.2"

    @pytest.mark.parametrize("remote,expected", [
        ("192.0.2.1", "192.0.2.1"),
        ("192.0.2.1:5555", "192.0.2.1"),
        ("::1", "::1"),
        ("[2001:db8::1]:443", "2001:db8::1"),
    ])
    def test_uses_ip_of_remote_addr(self, remote, expected):
        assert client_key({"REMOTE_ADDR": remote}) == expected

    def test_unparseable_remote_addr_used_verbatim(self):
        assert client_key({"REMOTE_ADDR": "unix-socket"}) == "unix-socket"

    def test_missing_remote_addr(self):
        assert client_key({}) == ""


class TestRateLimitMiddleware:
    def test_sets_headers_and_forwards(self, make_app):
        app = make_app(capacity=3, window=60)
        response = app.test_client().get("/x")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "2"
        assert "Retry-After" not in response.headers
        assert app.calls == ["/x"]

    def test_rejects_without_calling_view(self, make_app):
        app = make_app(capacity=1, window=10)
        client = app.test_client()

        client.get("/x")
        response = client.get("/x")
        assert response.status_code == 429
        assert response.get_data(as_text=True).strip() == "rate limit exceeded"
        assert response.headers["X-RateLimit-Limit"] == "1"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["Retry-After"] == "10"
        assert app.calls == ["/x"]

    def test_retry_after_rounds_up(self, make_app, clock):
        app = make_app(capacity=2, window=10)  # 0.2/s
        client = app.test_client()
        client.get("/x")
        client.get("/x")
        clock.advance(2.5)  # needs 2.5s more
        assert client.get("/x").headers["Retry-After"] == "3"

    def test_remaining_strictly_decreases(self, make_app):
        client = make_app(capacity=3, window=60).test_client()
        remaining = [int(client.get("/x").headers["X-RateLimit-Remaining"]) for _ in range(3)]
        assert remaining == [2, 1, 0]
        assert client.get("/x").status_code == 429

    def test_keys_by_forwarded_for(self, make_app):
        client = make_app(capacity=1, window=60).test_client()
        a = {"X-Forwarded-For": "198.51.100.1"}
        b = {"X-Forwarded-For": "198.51.100.2"}
        assert client.get("/x", headers=a).status_code == 200
        assert client.get("/x", headers=b).status_code == 200
        assert client.get("/x", headers=a).status_code == 429

    def test_unknown_route_still_counted(self, make_app):
        client = make_app(capacity=1, window=60).test_client()
        response = client.get("/nowhere")
        assert response.status_code == 404
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert client.get("/x").status_code == 429

    def test_preflight_passes_uncounted(self, make_app):
        app = make_app(capacity=1, window=60)
        client = app.test_client()
        client.get("/x")
        response = client.options("/x", headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
        })
        assert response.status_code == 200
        assert "X-RateLimit-Remaining" not in response.headers
