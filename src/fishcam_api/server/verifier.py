"""
Credential verification backend for the request gate.

The gate itself only decides *when* to verify; this module decides *how*.
``FirebaseCredentialVerifier`` checks identity tokens with Firebase Auth and
attestation tokens with Firebase App Check, consuming them through the App
Check REST API so a token validates at most once.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import firebase_admin
import httpx
from firebase_admin import app_check, auth
from firebase_admin.exceptions import FirebaseError

from ..errors import AuthFailureReason, AuthorizationError

logger = logging.getLogger(__name__)

APP_CHECK_API_URL = "https://firebaseappcheck.googleapis.com/v1beta"


class CredentialVerifier(Protocol):
    """Verifies the two independent request credentials."""

    def verify_identity_token(self, token: str) -> dict[str, Any]:
        """Return the decoded claims or raise AuthorizationError(IDENTITY_INVALID)."""
        ...

    def verify_attestation_token(self, token: str, consume: bool = True) -> dict[str, Any]:
        """Return the decoded claims or raise AuthorizationError(ATTESTATION_INVALID)."""
        ...


class FirebaseCredentialVerifier:
    """
    Verifies Firebase ID tokens and App Check tokens.

    Args:
        app: firebase_admin App (default app if None)
        app_check_api_url: Base URL of the App Check REST API
        timeout_s: Timeout for the token consumption call
    """

    def __init__(
        self,
        app: Any = None,
        app_check_api_url: str = APP_CHECK_API_URL,
        timeout_s: float = 10.0,
    ):
        self.app = app
        self.app_check_api_url = app_check_api_url.rstrip("/")
        self.timeout_s = timeout_s

    def _app(self) -> Any:
        return self.app if self.app is not None else firebase_admin.get_app()

    def verify_identity_token(self, token: str) -> dict[str, Any]:
        try:
            claims = auth.verify_id_token(token, app=self.app)
        except (ValueError, FirebaseError) as e:
            logger.info("Identity token rejected: %s", type(e).__name__)
            raise AuthorizationError(
                AuthFailureReason.IDENTITY_INVALID, "Firebase user authorization failed"
            ) from e
        return claims

    def verify_attestation_token(self, token: str, consume: bool = True) -> dict[str, Any]:
        try:
            claims = app_check.verify_token(token, app=self.app)
        except (ValueError, FirebaseError) as e:
            logger.info("App Check token rejected: %s", type(e).__name__)
            raise AuthorizationError(
                AuthFailureReason.ATTESTATION_INVALID, "Firebase App Check verification failed"
            ) from e

        if consume and self._already_consumed(token):
            logger.warning("App Check token replayed")
            raise AuthorizationError(
                AuthFailureReason.ATTESTATION_INVALID, "Firebase App Check verification failed"
            )
        return claims

    def _already_consumed(self, token: str) -> bool:
        """Mark the token consumed upstream and report whether it already was."""
        app = self._app()
        access_token = app.credential.get_access_token().access_token
        url = f"{self.app_check_api_url}/projects/{app.project_id}:verifyAppCheckToken"

        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                response = client.post(
                    url,
                    json={"app_check_token": token},
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            raise AuthorizationError(
                AuthFailureReason.ATTESTATION_INVALID, "App Check consumption unavailable"
            ) from e

        if response.status_code != 200:
            raise AuthorizationError(
                AuthFailureReason.ATTESTATION_INVALID,
                f"App Check consumption failed: {response.status_code}",
            )
        try:
            data = response.json()
        except ValueError as e:
            raise AuthorizationError(
                AuthFailureReason.ATTESTATION_INVALID, "Invalid App Check response"
            ) from e
        return bool(data.get("alreadyConsumed", False))


def default_verifier() -> FirebaseCredentialVerifier:
    """Verifier bound to the default Firebase app, initializing it if needed."""
    try:
        app = firebase_admin.get_app()
    except ValueError:
        # Application default credentials
        app = firebase_admin.initialize_app()
    return FirebaseCredentialVerifier(app=app)
