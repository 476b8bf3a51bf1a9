"""
Upload-request coordination: strict body validation, then token brokering and
the provider's signed-upload call.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaError

from ..counters import ActivityCounter, increment_safely
from ..errors import AuthFailureReason, AuthorizationError, ValidationError
from ..headers import DEFAULT_VERSION_HEADER, normalize_headers
from ..models import UploadDescriptor
from .broker import AccessTokenBroker
from .provider import FishialClient

logger = logging.getLogger(__name__)

CONTENT_TYPE_PATTERN = re.compile(r"image/[a-z0-9.+-]+", re.IGNORECASE | re.ASCII)
CHECKSUM_PATTERN = re.compile(r"[A-Za-z0-9+/]{22}==")


class UploadRequestBody(BaseModel):
    """Wire body of POST /upload_request. Unknown and wrong-typed fields fail."""

    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    filename: str
    content_type: str
    byte_size: float = Field(gt=0, allow_inf_nan=False)
    checksum: str

    @field_validator("filename")
    @classmethod
    def _filename_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("blank filename")
        return value

    @field_validator("content_type")
    @classmethod
    def _image_mime_type(cls, value: str) -> str:
        if not CONTENT_TYPE_PATTERN.fullmatch(value):
            raise ValueError("not an image MIME type")
        return value

    @field_validator("checksum")
    @classmethod
    def _base64_md5(cls, value: str) -> str:
        if not CHECKSUM_PATTERN.fullmatch(value):
            raise ValueError("not a base64-encoded MD5")
        return value

    def to_descriptor(self) -> UploadDescriptor:
        byte_size: Any = self.byte_size
        if float(byte_size).is_integer():
            byte_size = int(byte_size)
        return UploadDescriptor(
            filename=self.filename,
            content_type=self.content_type,
            byte_size=byte_size,
            checksum=self.checksum,
        )


class RecognitionRequestBody(BaseModel):
    """Wire body of POST /recognition_result."""

    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    signed_id: str = Field(min_length=1)


FIELD_MESSAGES = {
    "filename": "'filename' is required and must be a non-empty string",
    "content_type": "'content_type' must be a valid image MIME type",
    "byte_size": "'byte_size' must be a positive number",
    "checksum": "'checksum' must be a base64-encoded MD5 string",
    "signed_id": "'signed_id' is required and must be a non-empty string",
}


def _parse_json_object(body: bytes) -> dict[str, Any]:
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ValidationError("JSON body required") from e
    if not isinstance(data, dict):
        raise ValidationError("JSON body required")
    return data


def _first_error(model: type[BaseModel], error: SchemaError) -> ValidationError:
    """Pick the failure for the earliest declared field; unknown fields come last."""
    order = list(model.model_fields)

    def rank(err: Any) -> int:
        field = str(err["loc"][0]) if err["loc"] else ""
        return order.index(field) if field in order else len(order)

    first = min(error.errors(), key=rank)
    field = str(first["loc"][0]) if first["loc"] else None
    if field in FIELD_MESSAGES:
        return ValidationError(FIELD_MESSAGES[field], field=field)
    return ValidationError(f"Unexpected field '{field}'", field=field)


def parse_upload_body(body: bytes) -> UploadDescriptor:
    """
    Validate an upload_request body.

    Raises:
        ValidationError: For the first failing check, in field order
    """
    data = _parse_json_object(body)
    try:
        return UploadRequestBody.model_validate(data).to_descriptor()
    except SchemaError as e:
        raise _first_error(UploadRequestBody, e) from None


def parse_recognition_body(body: bytes) -> str:
    data = _parse_json_object(body)
    try:
        return RecognitionRequestBody.model_validate(data).signed_id
    except SchemaError as e:
        raise _first_error(RecognitionRequestBody, e) from None


class UploadCoordinator:
    """
    Handles gate-approved upload and recognition requests.

    Args:
        broker: Access token broker for the provider
        provider: Provider API client
        version_header: Name of the required client-version header
        counter: Optional activity counter
    """

    def __init__(
        self,
        broker: AccessTokenBroker,
        provider: FishialClient,
        version_header: str = DEFAULT_VERSION_HEADER,
        counter: ActivityCounter | None = None,
    ):
        self.broker = broker
        self.provider = provider
        self.version_header = version_header.lower()
        self.counter = counter

    def require_version_header(
        self,
        headers: Mapping[str, str],
        counter_name: str = "versionCheckFailed",
    ) -> str:
        """
        Return the client version, or fail as an authorization error.

        A failure is counted once, under ``counter_name``.

        Raises:
            AuthorizationError: If the header is missing or empty
        """
        version = normalize_headers(headers).get(self.version_header, "")
        if not version:
            logger.error("Client version header %s is empty", self.version_header)
            increment_safely(self.counter, counter_name)
            raise AuthorizationError(AuthFailureReason.VERSION_HEADER_MISSING, "Malformed data")
        return version

    async def handle_upload_request(
        self,
        uid: str,
        body: bytes,
        headers: Mapping[str, str],
    ) -> dict[str, Any]:
        """
        Validate the descriptor and relay the provider's signed-upload ticket.

        Returns:
            The provider's response body, unchanged
        """
        increment_safely(self.counter, "upload_requests")
        descriptor = parse_upload_body(body)
        version = self.require_version_header(headers)
        logger.info(
            "Upload request from uid %s (client %s): %s %s %s bytes",
            uid, version, descriptor.filename, descriptor.content_type, descriptor.byte_size,
        )

        token = await self.broker.get_access_token()
        ticket = await self.provider.request_upload(token, descriptor)
        logger.info("Signed upload issued for uid %s", uid)
        return ticket

    async def handle_recognition_request(
        self,
        uid: str,
        body: bytes,
        headers: Mapping[str, str],
    ) -> dict[str, Any]:
        """Relay the provider's recognition result for a signed id."""
        increment_safely(self.counter, "recognition_requests")
        signed_id = parse_recognition_body(body)
        self.require_version_header(headers)

        token = await self.broker.get_access_token()
        result = await self.provider.get_recognition(token, signed_id)
        logger.info("Recognition result relayed for uid %s", uid)
        return result
