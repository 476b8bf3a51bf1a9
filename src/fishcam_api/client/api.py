"""
HTTP client for the fishcam server and the direct-to-storage upload.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import httpx
from PIL import Image

from ..config import ClientSettings
from ..descriptor import create_identification_request
from ..errors import (
    LoginRejected,
    MalformedResponse,
    NoDataInResponse,
    RecognitionTimeout,
    TransportError,
    UploadRequestFailed,
)
from ..headers import credential_headers, redact_headers
from ..models import IdentificationRequest, LoginResponse, SignedUploadTicket
from .providers import AttestationProvider, Identity

logger = logging.getLogger(__name__)


def has_results(result: dict[str, Any]) -> bool:
    """Default readiness check for recognition polling."""
    return bool(result.get("results"))


class FishcamClient:
    """
    Client for the fishcam API.

    Every authenticated call carries a fresh identity token and attestation
    token. The two are fetched concurrently; if either fetch fails the request
    is still sent without that header and the server decides.

    Args:
        settings: Client settings
        attestation: App attestation token source
        identity: Signed-in user (set by the session bootstrap)
        http_client: Optional shared httpx.AsyncClient
    """

    def __init__(
        self,
        settings: ClientSettings,
        attestation: AttestationProvider,
        identity: Identity | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self.attestation = attestation
        self.identity = identity
        self._http = http_client or httpx.AsyncClient(timeout=settings.timeout_s)
        self.base_url = settings.api_base_url.rstrip("/")

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "FishcamClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def _identity_token(self, force_refresh: bool) -> str | None:
        if self.identity is None:
            return None
        try:
            return await self.identity.get_id_token(force_refresh=force_refresh)
        except Exception as e:
            logger.error("Error getting user bearer token: %s", e)
            return None

    async def _attestation_token(self, force_refresh: bool) -> str | None:
        try:
            return await self.attestation.get_token(force_refresh=force_refresh)
        except Exception as e:
            logger.error("Error getting app check token: %s", e)
            return None

    async def credential_headers(self, force_refresh: bool = False) -> dict[str, str]:
        """Fetch both tokens concurrently and build whichever headers we got."""
        identity_token, attestation_token = await asyncio.gather(
            self._identity_token(force_refresh),
            self._attestation_token(force_refresh),
        )
        return credential_headers(identity_token, attestation_token)

    def _base_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json; charset=utf-8",
            "Content-Type": "application/json; charset=utf-8",
            "User-Agent": self.settings.user_agent,
            self.settings.version_header: self.settings.app_version,
        }

    async def _post(
        self,
        path: str,
        json: Any = None,
        credentials: dict[str, str] | None = None,
    ) -> httpx.Response:
        if credentials is None:
            credentials = await self.credential_headers()
        headers = {**self._base_headers(), **credentials}
        url = f"{self.base_url}{path}"
        logger.debug("POST %s headers=%s", url, redact_headers(headers))
        try:
            response = await self._http.post(url, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"POST {path} failed: {type(e).__name__}") from e
        logger.info("POST %s -> %d", path, response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            raise NoDataInResponse()
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(f"Response is not JSON: {e}") from e

    async def submit_login(self, identity_token: str, attestation_token: str) -> LoginResponse:
        """
        POST /login with explicitly supplied tokens.

        Returns the decoded response whatever its login_result; the caller
        decides what a non-success result means.

        Raises:
            TransportError: On network errors
            LoginRejected: On a non-2xx status
            NoDataInResponse: If the body is empty
            MalformedResponse: If the body can't be decoded
        """
        response = await self._post(
            "/login",
            credentials=credential_headers(identity_token, attestation_token),
        )
        return self._decode_login(response)

    async def login(self) -> LoginResponse:
        """POST /login with freshly fetched tokens; raises unless it succeeded."""
        result = self._decode_login(await self._post("/login"))
        if not result.succeeded:
            raise LoginRejected(result.login_result)
        return result

    def _decode_login(self, response: httpx.Response) -> LoginResponse:
        if not response.is_success:
            raise LoginRejected(None, status=response.status_code)
        return LoginResponse.from_dict(self._json(response))

    async def request_upload(self, request: IdentificationRequest) -> SignedUploadTicket:
        """Exchange a descriptor for a signed upload ticket."""
        response = await self._post("/upload_request", json=request.descriptor.to_dict())
        if not response.is_success:
            raise UploadRequestFailed(response.status_code)
        ticket = SignedUploadTicket.from_provider(self._json(response))
        logger.info("Upload ticket received: %s", ticket.signed_id)
        return ticket

    async def upload(self, ticket: SignedUploadTicket, data: bytes) -> None:
        """
        PUT the encoded bytes to the signed URL.

        Uses the ticket headers verbatim with an explicitly empty Content-Type.
        No credentials are attached: the URL itself is the authorization.
        """
        headers = {**ticket.upload_headers, "Content-Type": ""}
        try:
            response = await self._http.put(ticket.upload_url, content=data, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"Upload failed: {type(e).__name__}") from e
        if not response.is_success:
            raise UploadRequestFailed(response.status_code)
        logger.info("Uploaded %d bytes for %s", len(data), ticket.signed_id)

    async def get_recognition_result(self, signed_id: str) -> dict[str, Any]:
        response = await self._post("/recognition_result", json={"signed_id": signed_id})
        if not response.is_success:
            raise UploadRequestFailed(response.status_code)
        data = self._json(response)
        if not isinstance(data, dict):
            raise MalformedResponse("Recognition result is not a JSON object")
        return data

    async def identify(
        self,
        image: bytes | Image.Image,
        poll_interval: float = 2.0,
        max_attempts: int = 30,
        is_ready: Callable[[dict[str, Any]], bool] = has_results,
    ) -> dict[str, Any]:
        """
        Run the whole identification: descriptor, ticket, upload, polling.

        Raises:
            UnrecognizedFormat: If the image can't be encoded
            RecognitionTimeout: If no result is ready after max_attempts polls
        """
        request = create_identification_request(image)
        ticket = await self.request_upload(request)
        await self.upload(ticket, request.data)

        for attempt in range(max_attempts):
            result = await self.get_recognition_result(ticket.signed_id)
            if is_ready(result):
                return result
            logger.debug("Recognition for %s pending (attempt %d)", ticket.signed_id, attempt + 1)
            await asyncio.sleep(poll_interval)

        raise RecognitionTimeout(f"No recognition result for {ticket.signed_id}")
