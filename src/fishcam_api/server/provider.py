"""
HTTP client for the identification provider's recognition API.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import DEFAULT_PROVIDER_API_URL, DEFAULT_RECOGNITION_URL
from ..errors import TransportError, UpstreamProtocolError
from ..models import ThirdPartyAccessToken, UploadDescriptor

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/v1/recognition/upload"
RECOGNITION_PATH = "/v1/recognition/image"


class FishialClient:
    """
    Signed-upload and recognition calls against the provider.

    Args:
        api_url: Base URL for the upload endpoint
        recognition_url: Base URL for the recognition endpoint
        timeout_s: Request timeout in seconds
    """

    def __init__(
        self,
        api_url: str = DEFAULT_PROVIDER_API_URL,
        recognition_url: str = DEFAULT_RECOGNITION_URL,
        timeout_s: float = 30.0,
    ):
        self.upload_url = f"{api_url.rstrip('/')}{UPLOAD_PATH}"
        self.recognition_url = f"{recognition_url.rstrip('/')}{RECOGNITION_PATH}"
        self.timeout_s = timeout_s

    async def request_upload(
        self,
        token: ThirdPartyAccessToken,
        descriptor: UploadDescriptor,
    ) -> dict[str, Any]:
        """Ask the provider for a signed upload ticket; returns its body as-is."""
        logger.debug("Requesting signed upload for %s", descriptor.filename)
        return await self._send(
            "POST",
            self.upload_url,
            token,
            json=descriptor.to_dict(),
        )

    async def get_recognition(self, token: ThirdPartyAccessToken, signed_id: str) -> dict[str, Any]:
        """Fetch the recognition result for an uploaded image."""
        return await self._send("GET", self.recognition_url, token, params={"q": signed_id})

    async def _send(
        self,
        method: str,
        url: str,
        token: ThirdPartyAccessToken,
        **kwargs: Any,
    ) -> dict[str, Any]:
        headers = {
            "Accept": "application/json",
            "Authorization": token.authorization,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {type(e).__name__}") from e

        if not response.is_success:
            raise UpstreamProtocolError(
                f"{method} {url} returned {response.status_code}", status=response.status_code
            )
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamProtocolError(f"{method} {url} response is not JSON") from e
        if not isinstance(data, dict):
            raise UpstreamProtocolError(f"{method} {url} response is not a JSON object")
        return data
