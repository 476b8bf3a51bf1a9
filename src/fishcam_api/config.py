"""
Environment-driven configuration for the client library and the server.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .headers import DEFAULT_VERSION_HEADER

DEFAULT_PROVIDER_AUTH_URL = "https://api-users.fishial.ai"
DEFAULT_PROVIDER_API_URL = "https://api-users.fishial.ai"
DEFAULT_RECOGNITION_URL = "https://api.fishial.ai"
DEFAULT_API_BASE_URL = "https://us-central1-fish-identifier-cam.cloudfunctions.net"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class ServerSettings:
    """
    Server configuration.

    Attributes:
        provider_auth_url: Base URL of the provider's token endpoint
        provider_api_url: Base URL of the provider's upload endpoint
        recognition_url: Base URL of the provider's recognition endpoint
        version_header: Name of the client-version header
        trust_local_environment: Skip attestation checks (emulator only)
        messages_file: Optional JSON file with login messages
        timeout_s: Upstream request timeout in seconds
        log_level: Root log level
        port: Port for the bundled uvicorn runner
    """
    provider_auth_url: str = DEFAULT_PROVIDER_AUTH_URL
    provider_api_url: str = DEFAULT_PROVIDER_API_URL
    recognition_url: str = DEFAULT_RECOGNITION_URL
    version_header: str = DEFAULT_VERSION_HEADER
    trust_local_environment: bool = False
    messages_file: str | None = None
    timeout_s: float = 30.0
    log_level: str = "info"
    port: int = 8080

    @classmethod
    def from_env(cls) -> "ServerSettings":
        return cls(
            provider_auth_url=os.getenv("FISHIAL_AUTH_URL", DEFAULT_PROVIDER_AUTH_URL),
            provider_api_url=os.getenv("FISHIAL_API_URL", DEFAULT_PROVIDER_API_URL),
            recognition_url=os.getenv("FISHIAL_RECOGNITION_URL", DEFAULT_RECOGNITION_URL),
            version_header=os.getenv("FISHCAM_VERSION_HEADER", DEFAULT_VERSION_HEADER).lower(),
            # Set by the functions emulator; never in production
            trust_local_environment=_env_flag("FUNCTIONS_EMULATOR"),
            messages_file=os.getenv("FISHCAM_MESSAGES_FILE") or None,
            timeout_s=float(os.getenv("FISHCAM_UPSTREAM_TIMEOUT", "30")),
            log_level=os.getenv("LOG_LEVEL", "info"),
            port=int(os.getenv("PORT", "8080")),
        )


@dataclass(frozen=True)
class ClientSettings:
    """
    Client configuration.

    Attributes:
        api_base_url: Base URL of the fishcam server
        app_version: Version string sent in the version header, e.g. "1.0(16)"
        version_header: Name of the client-version header
        user_agent: User-Agent sent with every API call
        timeout_s: Request timeout in seconds
        release_build: Whether debug-only messages are suppressed
    """
    api_base_url: str = DEFAULT_API_BASE_URL
    app_version: str = "0.0(0)"
    version_header: str = "FishIdentifierCam-Version"
    user_agent: str = "FishIdentifierCam/0.0"
    timeout_s: float = 120.0
    release_build: bool = True

    @classmethod
    def from_env(cls) -> "ClientSettings":
        app_version = os.getenv("FISHCAM_APP_VERSION", "0.0(0)")
        return cls(
            api_base_url=os.getenv("FISHCAM_API_URL", DEFAULT_API_BASE_URL),
            app_version=app_version,
            user_agent=os.getenv("FISHCAM_USER_AGENT", f"FishIdentifierCam/{app_version}"),
            timeout_s=float(os.getenv("FISHCAM_TIMEOUT", "120")),
            release_build=not _env_flag("FISHCAM_DEBUG_BUILD"),
        )
