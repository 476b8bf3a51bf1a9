"""Tests for FishcamClient."""

import json

import httpx
import pytest
from PIL import Image

from fishcam_api.client.api import FishcamClient
from fishcam_api.config import ClientSettings
from fishcam_api.descriptor import create_identification_request
from fishcam_api.errors import (
    LoginRejected,
    MalformedResponse,
    NoDataInResponse,
    RecognitionTimeout,
    TransportError,
    UploadRequestFailed,
)
from fishcam_api.models import SignedUploadTicket

BASE = "https://fishcam.test"
UPLOAD_URL = "https://storage.test/bucket/x.png?sig=1"
SETTINGS = ClientSettings(api_base_url=BASE, app_version="1.0(16)", user_agent="FishIdentifierCam/1.0")
TICKET = {
    "signed-id": "sid-1",
    "direct-upload": {
        "url": UPLOAD_URL,
        "headers": {"Content-MD5": "abc=="},
    },
}
LOGIN_OK = {
    "login_result": "success",
    "messages": [{
        "id": "0x0001",
        "type": "debug",
        "is_one_time": True,
        "app_version": "=1.0(16)",
        "title": "Thank you!",
        "message": "Thank you for using Fishy Identifier Cam",
        "buttons": [{"title": "OK", "action_type": "open_url", "action_data": "https://microsoft.com"}],
    }],
}


class FakeIdentity:
    uid = "user-1"

    def __init__(self, token="id-token", error=None):
        self.token = token
        self.error = error

    async def get_id_token(self, force_refresh=False):
        if self.error:
            raise self.error
        return self.token


class FakeAttestation:
    def __init__(self, token="ac-token", error=None):
        self.token = token
        self.error = error

    async def get_token(self, force_refresh=False):
        if self.error:
            raise self.error
        return self.token


def make_client(identity=None, attestation=None):
    return FishcamClient(
        SETTINGS,
        attestation=attestation or FakeAttestation(),
        identity=identity or FakeIdentity(),
    )


class TestCredentialHeaders:
    """Tests for per-request credential headers."""

    @pytest.mark.asyncio
    async def test_both_tokens(self):
        async with make_client() as client:
            headers = await client.credential_headers()

        assert headers == {"Authorization": "Bearer id-token", "X-Firebase-AppCheck": "ac-token"}

    @pytest.mark.asyncio
    async def test_failed_attestation_omits_header(self):
        """A failed token fetch degrades to a missing header."""
        async with make_client(attestation=FakeAttestation(error=RuntimeError("no device"))) as client:
            headers = await client.credential_headers()

        assert headers == {"Authorization": "Bearer id-token"}

    @pytest.mark.asyncio
    async def test_no_identity(self):
        client = FishcamClient(SETTINGS, attestation=FakeAttestation())
        try:
            headers = await client.credential_headers()
        finally:
            await client.aclose()

        assert headers == {"X-Firebase-AppCheck": "ac-token"}


class TestLogin:
    """Tests for login calls."""

    @pytest.mark.asyncio
    async def test_submit_login(self, mock_http):
        """Login sends explicit tokens and the version header."""
        route = mock_http.post(f"{BASE}/login").respond(json=LOGIN_OK)

        async with make_client() as client:
            result = await client.submit_login("explicit-id", "explicit-ac")

        assert result.succeeded
        assert result.messages[0].id == "0x0001"
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer explicit-id"
        assert request.headers["X-Firebase-AppCheck"] == "explicit-ac"
        assert request.headers["FishIdentifierCam-Version"] == "1.0(16)"
        assert request.headers["User-Agent"] == "FishIdentifierCam/1.0"

    @pytest.mark.asyncio
    async def test_login_not_success(self, mock_http):
        mock_http.post(f"{BASE}/login").respond(json={"login_result": "failure", "messages": []})

        async with make_client() as client:
            with pytest.raises(LoginRejected) as exc_info:
                await client.login()

        assert exc_info.value.login_result == "failure"

    @pytest.mark.asyncio
    async def test_login_http_error(self, mock_http):
        mock_http.post(f"{BASE}/login").respond(status_code=401, json={"error": "Unauthorized"})

        async with make_client() as client:
            with pytest.raises(LoginRejected) as exc_info:
                await client.login()

        assert exc_info.value.status == 401

    @pytest.mark.asyncio
    async def test_empty_body(self, mock_http):
        mock_http.post(f"{BASE}/login").respond(status_code=200, content=b"")

        async with make_client() as client:
            with pytest.raises(NoDataInResponse):
                await client.login()

    @pytest.mark.asyncio
    async def test_malformed_body(self, mock_http):
        mock_http.post(f"{BASE}/login").respond(status_code=200, content=b"{nope")

        async with make_client() as client:
            with pytest.raises(MalformedResponse):
                await client.login()

    @pytest.mark.asyncio
    async def test_network_error(self, mock_http):
        mock_http.post(f"{BASE}/login").mock(side_effect=httpx.ConnectError("offline"))

        async with make_client() as client:
            with pytest.raises(TransportError):
                await client.login()


class TestUpload:
    """Tests for upload ticket and direct upload."""

    @pytest.mark.asyncio
    async def test_request_upload(self, mock_http):
        route = mock_http.post(f"{BASE}/upload_request").respond(json=TICKET)
        request = create_identification_request(Image.new("RGB", (4, 4), "blue"))

        async with make_client() as client:
            ticket = await client.request_upload(request)

        assert ticket.signed_id == "sid-1"
        assert ticket.upload_headers == {"Content-MD5": "abc=="}
        assert json.loads(route.calls.last.request.content) == request.descriptor.to_dict()

    @pytest.mark.asyncio
    async def test_request_upload_rejected(self, mock_http):
        mock_http.post(f"{BASE}/upload_request").respond(status_code=400, json={"error": "Bad Request"})
        request = create_identification_request(Image.new("RGB", (4, 4), "blue"))

        async with make_client() as client:
            with pytest.raises(UploadRequestFailed) as exc_info:
                await client.request_upload(request)

        assert exc_info.value.status == 400

    @pytest.mark.asyncio
    async def test_malformed_ticket(self, mock_http):
        mock_http.post(f"{BASE}/upload_request").respond(json={"signed-id": "sid-1"})
        request = create_identification_request(Image.new("RGB", (4, 4), "blue"))

        async with make_client() as client:
            with pytest.raises(MalformedResponse):
                await client.request_upload(request)

    @pytest.mark.asyncio
    async def test_put_uses_ticket_headers(self, mock_http):
        """PUT carries the ticket headers, an empty Content-Type and no credentials."""
        route = mock_http.put(UPLOAD_URL).respond(status_code=200)
        ticket = SignedUploadTicket.from_provider(TICKET)

        async with make_client() as client:
            await client.upload(ticket, b"png-bytes")

        request = route.calls.last.request
        assert request.content == b"png-bytes"
        assert request.headers["Content-MD5"] == "abc=="
        assert request.headers["Content-Type"] == ""
        assert "Authorization" not in request.headers
        assert "X-Firebase-AppCheck" not in request.headers


class TestIdentify:
    """Tests for the full identification flow."""

    def mock_flow(self, mock_http, results):
        mock_http.post(f"{BASE}/upload_request").respond(json=TICKET)
        mock_http.put(UPLOAD_URL).respond(status_code=200)
        return mock_http.post(f"{BASE}/recognition_result").mock(
            side_effect=[httpx.Response(200, json=r) for r in results]
        )

    @pytest.mark.asyncio
    async def test_polls_until_ready(self, mock_http):
        ready = {"results": [{"name": "Rainbow trout"}]}
        route = self.mock_flow(mock_http, [{"results": []}, ready])

        async with make_client() as client:
            result = await client.identify(Image.new("RGB", (4, 4), "green"), poll_interval=0)

        assert result == ready
        assert route.call_count == 2
        assert json.loads(route.calls.last.request.content) == {"signed_id": "sid-1"}

    @pytest.mark.asyncio
    async def test_gives_up(self, mock_http):
        self.mock_flow(mock_http, [{"results": []}] * 3)

        async with make_client() as client:
            with pytest.raises(RecognitionTimeout):
                await client.identify(
                    Image.new("RGB", (4, 4), "green"), poll_interval=0, max_attempts=3,
                )
