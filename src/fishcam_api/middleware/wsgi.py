"""
WSGI middleware running the two-factor gate (Flask and other WSGI apps).
"""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable

from ..headers import DECISION_HEADER
from ..models import GateState
from ..server.gate import AuthVerificationGate


def _extract_headers(environ: dict[str, Any]) -> dict[str, str]:
    """Extract HTTP headers from WSGI environ."""
    headers: dict[str, str] = {}
    for key, value in environ.items():
        if key.startswith("HTTP_"):
            # HTTP_X_FIREBASE_APPCHECK -> x-firebase-appcheck
            header_name = key[5:].replace("_", "-").lower()
            headers[header_name] = value
        elif key == "CONTENT_TYPE":
            headers["content-type"] = value
        elif key == "CONTENT_LENGTH":
            headers["content-length"] = value
    return headers


class FishcamGateWSGIMiddleware:
    """
    WSGI middleware for identity + attestation verification.

    Attaches gate state to `environ["fishcam.gate"]` with:
    - checked: bool - whether the gate ran (False on exempt paths)
    - result: GateResult | None - gate result if checked

    Args:
        app: WSGI application
        gate: Configured AuthVerificationGate
        require_verified: If True (default), return 401 when either
            credential fails. If False, observe mode.
        exempt_paths: Paths that bypass the gate entirely

    Example (Flask):
        >>> app = Flask(__name__)
        >>> app.wsgi_app = FishcamGateWSGIMiddleware(app.wsgi_app, gate=gate)
        >>>
        >>> @app.route("/login", methods=["POST"])
        >>> def login():
        ...     state = request.environ["fishcam.gate"]
        ...     return {"uid": state.uid}
    """

    def __init__(
        self,
        app: Callable[..., Iterable[bytes]],
        gate: AuthVerificationGate,
        require_verified: bool = True,
        exempt_paths: Iterable[str] = ("/health",),
    ):
        self.app = app
        self.gate = gate
        self.require_verified = require_verified
        self.exempt_paths = frozenset(exempt_paths)

    def __call__(
        self,
        environ: dict[str, Any],
        start_response: Callable[..., Any],
    ) -> Iterable[bytes]:
        if environ.get("PATH_INFO", "/") in self.exempt_paths:
            environ["fishcam.gate"] = GateState(checked=False, result=None)
            return self.app(environ, start_response)

        result = self.gate.authorize_sync(_extract_headers(environ))
        environ["fishcam.gate"] = GateState(checked=True, result=result)

        if self.require_verified and not result.verified:
            return self._error_response(start_response)

        def custom_start_response(
            status: str,
            response_headers: list[tuple[str, str]],
            exc_info: Any = None,
        ) -> Any:
            decision = "allow" if result.verified else "observe"
            response_headers.append((DECISION_HEADER, decision))
            return start_response(status, response_headers, exc_info)

        return self.app(environ, custom_start_response)

    def _error_response(self, start_response: Callable[..., Any]) -> Iterable[bytes]:
        """Return 401 error response."""
        body = json.dumps({"error": "Unauthorized"}).encode("utf-8")
        start_response(
            "401 Unauthorized",
            [
                ("Content-Type", "application/json"),
                ("Content-Length", str(len(body))),
                (DECISION_HEADER, "deny"),
            ],
        )
        return [body]
