"""
ASGI middleware running the two-factor gate (FastAPI/Starlette).
"""

from typing import Any, Callable, Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..headers import DECISION_HEADER
from ..models import GateState
from ..server.gate import AuthVerificationGate


class FishcamGateASGIMiddleware(BaseHTTPMiddleware):
    """
    ASGI middleware for identity + attestation verification.

    Attaches gate state to `request.state.fishcam` with:
    - checked: bool - whether the gate ran (False on exempt paths)
    - result: GateResult | None - gate result if checked

    Args:
        app: ASGI application
        gate: Configured AuthVerificationGate
        require_verified: If True (default), return 401 before the handler
            runs when either credential fails. If False, operate in observe
            mode - attach state but allow all.
        exempt_paths: Paths that bypass the gate entirely

    Example (FastAPI):
        >>> app = FastAPI()
        >>> app.add_middleware(FishcamGateASGIMiddleware, gate=gate)
        >>>
        >>> @app.post("/login")
        >>> async def login(request: Request):
        ...     return {"uid": request.state.fishcam.uid}
    """

    def __init__(
        self,
        app: Any,
        gate: AuthVerificationGate,
        require_verified: bool = True,
        exempt_paths: Iterable[str] = ("/health",),
    ):
        super().__init__(app)
        self.gate = gate
        self.require_verified = require_verified
        self.exempt_paths = frozenset(exempt_paths)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        if request.url.path in self.exempt_paths:
            request.state.fishcam = GateState(checked=False, result=None)
            return await call_next(request)

        headers: dict[str, str] = {}
        for key, value in request.headers.items():
            headers[key.lower()] = value

        result = await self.gate.authorize(headers)
        request.state.fishcam = GateState(checked=True, result=result)

        if self.require_verified and not result.verified:
            # Generic body; the reason only goes to the logs
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized"},
                headers={DECISION_HEADER: "deny"},
            )

        response = await call_next(request)
        response.headers[DECISION_HEADER] = "allow" if result.verified else "observe"
        return response
