"""
Exchanges the confidential provider credentials for a short-lived access token.
"""

from __future__ import annotations

import logging

import httpx

from ..config import DEFAULT_PROVIDER_AUTH_URL
from ..counters import ActivityCounter, increment_safely
from ..errors import ConfigurationError, TransportError, UpstreamProtocolError
from ..models import ThirdPartyAccessToken
from ..secret_store import CLIENT_ID_SECRET, CLIENT_SECRET_SECRET, SecretStore

logger = logging.getLogger(__name__)

TOKEN_PATH = "/v1/auth/token"


class AccessTokenBroker:
    """
    Client-credentials exchange against the provider's token endpoint.

    Credentials come from the secret store at call time, never from request
    input, and neither they nor the issued token are logged. There is no
    retry and no cache: each call requests a fresh token.

    Args:
        secrets: Secret store holding FISHIAL_CLIENT_ID / FISHIAL_CLIENT_SECRET
        auth_url: Base URL of the token endpoint
        timeout_s: Request timeout in seconds
        counter: Optional activity counter for failures
    """

    def __init__(
        self,
        secrets: SecretStore,
        auth_url: str = DEFAULT_PROVIDER_AUTH_URL,
        timeout_s: float = 30.0,
        counter: ActivityCounter | None = None,
    ):
        self.secrets = secrets
        self.token_url = f"{auth_url.rstrip('/')}{TOKEN_PATH}"
        self.timeout_s = timeout_s
        self.counter = counter

    def _credentials(self) -> tuple[str, str]:
        client_id = self.secrets.get(CLIENT_ID_SECRET)
        if not client_id:
            logger.error("Provider client id is not set")
            raise ConfigurationError("Provider credentials are not configured")

        client_secret = self.secrets.get(CLIENT_SECRET_SECRET)
        if not client_secret:
            logger.error("Provider client secret is not set")
            raise ConfigurationError("Provider credentials are not configured")

        return client_id, client_secret

    async def get_access_token(self) -> ThirdPartyAccessToken:
        """
        Request an access token.

        Raises:
            ConfigurationError: If a secret is missing
            TransportError: On network errors
            UpstreamProtocolError: If the response shape is not as expected
        """
        try:
            client_id, client_secret = self._credentials()
            logger.debug("Requesting access token from %s", self.token_url)
            try:
                async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                    response = await client.post(
                        self.token_url,
                        json={"client_id": client_id, "client_secret": client_secret},
                        headers={"Content-Type": "application/json"},
                    )
            except httpx.HTTPError as e:
                raise TransportError(f"Token request failed: {type(e).__name__}") from e

            return self._parse_response(response)
        except Exception:
            increment_safely(self.counter, "getFishialAccessToken_internalServerError")
            raise

    def _parse_response(self, response: httpx.Response) -> ThirdPartyAccessToken:
        """Validate the token endpoint response strictly."""
        if not response.is_success:
            raise UpstreamProtocolError(
                f"Token endpoint returned {response.status_code}", status=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamProtocolError("Token response is not JSON") from e

        if not isinstance(data, dict):
            raise UpstreamProtocolError("Token response is not a JSON object")

        token_type = data.get("token_type")
        if token_type != "Bearer":
            raise UpstreamProtocolError(f"Expected Bearer token, got: {token_type!r}")

        access_token = data.get("access_token")
        if not isinstance(access_token, str):
            raise UpstreamProtocolError("Access token is missing or not a string")
        if not access_token:
            raise UpstreamProtocolError("Access token is empty")

        logger.debug("Access token obtained")
        return ThirdPartyAccessToken(token=access_token, token_type=token_type)
