"""Tests for ASGI and WSGI middleware."""

import io
import json

from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from conftest import auth_headers
from fishcam_api.middleware.asgi import FishcamGateASGIMiddleware
from fishcam_api.middleware.wsgi import FishcamGateWSGIMiddleware


# Test ASGI app
async def asgi_endpoint(request):
    state = getattr(request.state, "fishcam", None)
    return JSONResponse({
        "checked": state.checked if state else False,
        "verified": state.result.verified if state and state.result else False,
        "uid": state.uid if state else None,
    })


def create_asgi_app(gate, require_verified=True):
    """Create test ASGI app with middleware."""
    app = Starlette(routes=[
        Route("/test", asgi_endpoint, methods=["GET", "POST"]),
        Route("/health", asgi_endpoint),
    ])
    app.add_middleware(FishcamGateASGIMiddleware, gate=gate, require_verified=require_verified)
    return app


class TestASGIMiddleware:
    """Tests for FishcamGateASGIMiddleware."""

    def test_verified_request(self, gate):
        """Verified request reaches the handler with the uid attached."""
        client = TestClient(create_asgi_app(gate))

        response = client.post("/test", headers=auth_headers())

        assert response.status_code == 200
        assert response.json() == {"checked": True, "verified": True, "uid": "user-1"}
        assert response.headers["X-Fishcam-Decision"] == "allow"

    def test_missing_credentials_denied(self, gate):
        """Unauthenticated request is rejected before the handler."""
        client = TestClient(create_asgi_app(gate))

        response = client.post("/test")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert response.headers["X-Fishcam-Decision"] == "deny"

    def test_error_body_is_generic(self, gate):
        """The failure reason is never disclosed."""
        client = TestClient(create_asgi_app(gate))

        response = client.post("/test", headers=auth_headers(attestation="forged"))

        assert response.status_code == 401
        assert "attestation" not in response.text.lower()

    def test_observe_mode(self, gate):
        """Observe mode attaches state but lets the request through."""
        client = TestClient(create_asgi_app(gate, require_verified=False))

        response = client.get("/test")

        assert response.status_code == 200
        assert response.json()["checked"] is True
        assert response.json()["verified"] is False
        assert response.headers["X-Fishcam-Decision"] == "observe"

    def test_exempt_path(self, gate, verifier):
        """Exempt paths bypass the gate."""
        client = TestClient(create_asgi_app(gate))

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["checked"] is False
        assert verifier.calls == []


# Test WSGI app
def wsgi_app(environ, start_response):
    state = environ.get("fishcam.gate")
    body = json.dumps({
        "checked": state.checked if state else False,
        "uid": state.uid if state else None,
    }).encode()
    start_response("200 OK", [("Content-Type", "application/json")])
    return [body]


def call_wsgi(app, path="/test", headers=None):
    """Invoke a WSGI app and collect status, headers and body."""
    environ = {
        "REQUEST_METHOD": "POST",
        "PATH_INFO": path,
        "wsgi.input": io.BytesIO(b""),
        "CONTENT_TYPE": "application/json",
    }
    for name, value in (headers or {}).items():
        environ["HTTP_" + name.upper().replace("-", "_")] = value

    captured = {}

    def start_response(status, response_headers, exc_info=None):
        captured["status"] = status
        captured["headers"] = dict(response_headers)

    body = b"".join(app(environ, start_response))
    return captured["status"], captured["headers"], json.loads(body)


class TestWSGIMiddleware:
    """Tests for FishcamGateWSGIMiddleware."""

    def test_verified_request(self, gate):
        """Verified request reaches the app with state in environ."""
        app = FishcamGateWSGIMiddleware(wsgi_app, gate=gate)

        status, headers, body = call_wsgi(app, headers=auth_headers())

        assert status == "200 OK"
        assert body == {"checked": True, "uid": "user-1"}
        assert headers["X-Fishcam-Decision"] == "allow"

    def test_missing_credentials_denied(self, gate):
        """Unauthenticated request returns 401."""
        app = FishcamGateWSGIMiddleware(wsgi_app, gate=gate)

        status, headers, body = call_wsgi(app)

        assert status == "401 Unauthorized"
        assert body == {"error": "Unauthorized"}
        assert headers["X-Fishcam-Decision"] == "deny"

    def test_observe_mode(self, gate):
        """Observe mode passes unverified requests through."""
        app = FishcamGateWSGIMiddleware(wsgi_app, gate=gate, require_verified=False)

        status, headers, body = call_wsgi(app)

        assert status == "200 OK"
        assert body["uid"] is None
        assert headers["X-Fishcam-Decision"] == "observe"

    def test_exempt_path(self, gate, verifier):
        """Exempt paths bypass the gate."""
        app = FishcamGateWSGIMiddleware(wsgi_app, gate=gate)

        status, _, body = call_wsgi(app, path="/health")

        assert status == "200 OK"
        assert body["checked"] is False
        assert verifier.calls == []
