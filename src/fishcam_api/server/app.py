"""
FastAPI application exposing the login, upload-request and recognition
endpoints behind the two-factor gate.

Usage:
    # Run with the bundled runner
    fishcam-server

    # Or with uvicorn
    uvicorn fishcam_api.server.app:create_app --factory --port 8080

Environment variables:
    FISHIAL_CLIENT_ID / FISHIAL_CLIENT_SECRET - provider credentials (secret store)
    FUNCTIONS_EMULATOR - "true" skips App Check verification (local only)
    FISHCAM_MESSAGES_FILE - JSON list of login messages
    LOG_LEVEL, PORT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..config import ServerSettings
from ..counters import ActivityCounter, LoggingActivityCounter, increment_safely
from ..errors import AuthFailureReason, AuthorizationError, FishcamError
from ..headers import redact_headers
from ..logging_config import setup_logging
from ..middleware.asgi import FishcamGateASGIMiddleware
from ..models import LOGIN_SUCCESS, GateState
from ..secret_store import EnvSecretStore, SecretStore
from .broker import AccessTokenBroker
from .gate import AuthVerificationGate
from .messages import MessageCatalog
from .provider import FishialClient
from .upload import UploadCoordinator
from .verifier import CredentialVerifier, default_verifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Collaborators shared by the request handlers."""
    coordinator: UploadCoordinator
    catalog: MessageCatalog
    counter: ActivityCounter | None


def _uid(request: Request) -> str:
    state: GateState | None = getattr(request.state, "fishcam", None)
    uid = state.uid if state else None
    if not uid:
        logger.error("Handler reached without a verified uid")
        raise AuthorizationError(AuthFailureReason.IDENTITY_INVALID)
    return uid


async def error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map library errors to stable status codes with generic 5xx bodies."""
    assert isinstance(exc, FishcamError)
    status = exc.status_code
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        message = "Internal server error" if status == 500 else "Upstream service error"
    else:
        logger.info("%s %s rejected (%d): %s", request.method, request.url.path, status, exc)
        message = "Unauthorized" if status == 401 else f"Bad Request: {exc}"
    return JSONResponse(status_code=status, content={"error": message})


async def login(request: Request) -> JSONResponse:
    """Confirm the session and deliver login messages."""
    services: Services = request.app.state.services
    increment_safely(services.counter, "login_requests")
    uid = _uid(request)
    logger.debug("LOGIN headers: %s", redact_headers(dict(request.headers)))

    version = services.coordinator.require_version_header(
        request.headers, counter_name="login_versionCheckFailed",
    )

    logger.info("LOGIN uid %s client version %s", uid, version)
    return JSONResponse({
        "login_result": LOGIN_SUCCESS,
        "messages": services.catalog.to_wire(),
    })


async def upload_request(request: Request) -> JSONResponse:
    """Validate an upload descriptor and relay a signed upload ticket."""
    services: Services = request.app.state.services
    ticket = await services.coordinator.handle_upload_request(
        _uid(request), await request.body(), request.headers,
    )
    return JSONResponse(ticket)


async def recognition_result(request: Request) -> JSONResponse:
    """Relay the recognition result for a previously uploaded image."""
    services: Services = request.app.state.services
    result = await services.coordinator.handle_recognition_request(
        _uid(request), await request.body(), request.headers,
    )
    return JSONResponse(result)


async def health() -> dict:
    return {"status": "ok"}


def create_app(
    settings: ServerSettings | None = None,
    verifier: CredentialVerifier | None = None,
    secrets: SecretStore | None = None,
    counter: ActivityCounter | None = None,
    catalog: MessageCatalog | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Server settings (from the environment if None)
        verifier: Credential backend (Firebase if None)
        secrets: Secret store (environment if None)
        counter: Activity counter (logging-only if None)
        catalog: Login messages (from settings.messages_file or built-in)
    """
    settings = settings or ServerSettings.from_env()
    if verifier is None:
        verifier = default_verifier()
    secrets = secrets or EnvSecretStore()
    counter = counter or LoggingActivityCounter()
    if catalog is None:
        catalog = (
            MessageCatalog.from_file(settings.messages_file)
            if settings.messages_file else MessageCatalog()
        )

    if settings.trust_local_environment:
        logger.warning("Trusted local environment: App Check verification disabled")

    gate = AuthVerificationGate(
        verifier,
        trust_local_environment=settings.trust_local_environment,
        counter=counter,
    )
    broker = AccessTokenBroker(
        secrets,
        auth_url=settings.provider_auth_url,
        timeout_s=settings.timeout_s,
        counter=counter,
    )
    provider = FishialClient(
        api_url=settings.provider_api_url,
        recognition_url=settings.recognition_url,
        timeout_s=settings.timeout_s,
    )
    coordinator = UploadCoordinator(
        broker, provider, version_header=settings.version_header, counter=counter,
    )

    app = FastAPI(title="Fish Identifier Cam API", version="0.1.0")
    app.state.services = Services(coordinator=coordinator, catalog=catalog, counter=counter)
    app.add_middleware(FishcamGateASGIMiddleware, gate=gate, exempt_paths=("/health",))
    app.add_exception_handler(FishcamError, error_handler)

    app.add_api_route("/login", login, methods=["POST"])
    app.add_api_route("/upload_request", upload_request, methods=["POST"])
    app.add_api_route("/recognition_result", recognition_result, methods=["POST"])
    app.add_api_route("/health", health, methods=["GET"])
    return app


def main() -> None:
    import uvicorn

    settings = ServerSettings.from_env()
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
