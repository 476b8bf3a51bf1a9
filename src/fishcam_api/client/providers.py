"""
Credential sources for the client: a user identity and an app attestation.

The protocols are what the session bootstrap and the API client depend on.
The Firebase implementations talk to the public REST APIs with httpx:
Identity Toolkit for anonymous sign-in, Secure Token for ID token refresh,
and App Check's debug-token exchange for attestation.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from ..errors import AuthFailed, MalformedResponse, TokenError, TransportError

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"
APP_CHECK_URL = "https://firebaseappcheck.googleapis.com/v1"

# Refresh tokens this long before they expire
EXPIRY_MARGIN_S = 300.0


class Identity(Protocol):
    """An authenticated (possibly anonymous) user."""

    uid: str

    async def get_id_token(self, force_refresh: bool = False) -> str | None: ...


class IdentityProvider(Protocol):
    async def sign_in_anonymously(self) -> Identity | None: ...


class AttestationProvider(Protocol):
    async def get_token(self, force_refresh: bool = False) -> str | None: ...


def _ttl_seconds(value: Any, default: float = 3600.0) -> float:
    """Parse "3600" or "3600s" style durations."""
    if value is None:
        return default
    text = str(value).strip().rstrip("s")
    try:
        return float(text)
    except ValueError:
        return default


def _error_message(response: httpx.Response) -> str:
    """Google-style `{"error": {"message": ...}}` detail, if the body has one."""
    try:
        data = response.json()
    except ValueError:
        return "error"
    error = data.get("error") if isinstance(data, dict) else None
    message = error.get("message") if isinstance(error, dict) else error
    return str(message) if message else "error"


async def _post_json(url: str, timeout_s: float, **kwargs: Any) -> dict[str, Any]:
    try:
        async with httpx.AsyncClient(timeout=timeout_s) as client:
            response = await client.post(url, **kwargs)
    except httpx.HTTPError as e:
        raise TransportError(f"POST {url.split('?')[0]} failed: {type(e).__name__}") from e

    if not response.is_success:
        raise TokenError(
            f"Token service returned {response.status_code}: {_error_message(response)}"
        )

    try:
        data = response.json()
    except ValueError as e:
        raise MalformedResponse(f"Response from {url.split('?')[0]} is not JSON") from e
    if not isinstance(data, dict):
        raise MalformedResponse("Token service response is not a JSON object")
    return data


@dataclass
class FirebaseUser:
    """
    Anonymous Firebase user backed by a refresh token.

    Attributes:
        uid: Firebase user id (localId)
        provider: Provider used to refresh the ID token
        id_token: Cached ID token
        refresh_token: Long-lived refresh token
        expires_at: Unix time the cached ID token expires
    """
    uid: str
    provider: "FirebaseAnonymousIdentityProvider" = field(repr=False)
    id_token: str | None = field(default=None, repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    expires_at: float = 0.0

    async def get_id_token(self, force_refresh: bool = False) -> str | None:
        if not force_refresh and self.id_token and time.time() < self.expires_at - EXPIRY_MARGIN_S:
            return self.id_token
        await self.provider.refresh(self)
        return self.id_token


class FirebaseAnonymousIdentityProvider:
    """
    Anonymous sign-in through the Firebase Auth REST API.

    Args:
        api_key: Firebase web API key
        identity_toolkit_url: Identity Toolkit base URL
        secure_token_url: Secure Token endpoint
        timeout_s: Request timeout in seconds
    """

    def __init__(
        self,
        api_key: str,
        identity_toolkit_url: str = IDENTITY_TOOLKIT_URL,
        secure_token_url: str = SECURE_TOKEN_URL,
        timeout_s: float = 30.0,
    ):
        self.api_key = api_key
        self.identity_toolkit_url = identity_toolkit_url.rstrip("/")
        self.secure_token_url = secure_token_url
        self.timeout_s = timeout_s

    async def sign_in_anonymously(self) -> FirebaseUser:
        try:
            data = await _post_json(
                f"{self.identity_toolkit_url}/accounts:signUp",
                self.timeout_s,
                params={"key": self.api_key},
                json={"returnSecureToken": True},
            )
        except TokenError as e:
            raise AuthFailed(f"Anonymous sign-in failed: {e}") from e

        uid = data.get("localId")
        if not uid:
            raise MalformedResponse("Sign-in response has no localId")
        logger.info("Firebase anonymous user sign-in succeeded")
        return FirebaseUser(
            uid=uid,
            provider=self,
            id_token=data.get("idToken"),
            refresh_token=data.get("refreshToken"),
            expires_at=time.time() + _ttl_seconds(data.get("expiresIn")),
        )

    async def refresh(self, user: FirebaseUser) -> None:
        """Exchange the user's refresh token for a new ID token."""
        if not user.refresh_token:
            raise TokenError("No refresh token for user")
        data = await _post_json(
            self.secure_token_url,
            self.timeout_s,
            params={"key": self.api_key},
            data={"grant_type": "refresh_token", "refresh_token": user.refresh_token},
        )
        user.id_token = data.get("id_token")
        user.refresh_token = data.get("refresh_token") or user.refresh_token
        user.expires_at = time.time() + _ttl_seconds(data.get("expires_in"))


class AppCheckDebugProvider:
    """
    App Check tokens from the debug-token exchange.

    For development builds and CI, where no device attestation is available.

    Args:
        project_id: Firebase project id
        app_id: Firebase app id
        api_key: Firebase web API key
        debug_token: Debug token registered in the Firebase console
        api_url: App Check REST base URL
        timeout_s: Request timeout in seconds
    """

    def __init__(
        self,
        project_id: str,
        app_id: str,
        api_key: str,
        debug_token: str,
        api_url: str = APP_CHECK_URL,
        timeout_s: float = 30.0,
    ):
        self.exchange_url = (
            f"{api_url.rstrip('/')}/projects/{project_id}/apps/{app_id}:exchangeDebugToken"
        )
        self.api_key = api_key
        self.debug_token = debug_token
        self.timeout_s = timeout_s
        self._token: str | None = None
        self._expires_at = 0.0

    async def get_token(self, force_refresh: bool = False) -> str | None:
        if not force_refresh and self._token and time.time() < self._expires_at - EXPIRY_MARGIN_S:
            return self._token

        data = await _post_json(
            self.exchange_url,
            self.timeout_s,
            params={"key": self.api_key},
            json={"debugToken": self.debug_token},
        )
        self._token = data.get("token")
        self._expires_at = time.time() + _ttl_seconds(data.get("ttl"))
        return self._token
