"""
Data models for the fishcam upload and identification protocol.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import AuthFailureReason, MalformedResponse

LOGIN_SUCCESS = "success"


@dataclass(frozen=True)
class UploadDescriptor:
    """
    Metadata describing a not-yet-uploaded image.

    Attributes:
        filename: Name the provider will store the file under
        content_type: Image MIME type (image/png, image/jpeg, ...)
        byte_size: Exact length of the encoded bytes
        checksum: Base64 of the MD5 digest of the encoded bytes
    """
    filename: str
    content_type: str
    byte_size: int
    checksum: str

    def to_dict(self) -> dict[str, Any]:
        """Snake_case wire body for the upload_request endpoint."""
        return {
            "filename": self.filename,
            "content_type": self.content_type,
            "byte_size": self.byte_size,
            "checksum": self.checksum,
        }


@dataclass(frozen=True)
class IdentificationRequest:
    """
    A descriptor together with the exact bytes it describes.

    Attributes:
        id: Identifier generated for this request
        descriptor: Upload descriptor sent to the server
        data: Encoded image bytes that must be PUT to the upload URL
    """
    id: str
    descriptor: UploadDescriptor
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class SignedUploadTicket:
    """
    Provider-issued, single-use directive for uploading the raw bytes.

    Attributes:
        signed_id: Identifier used later to fetch the recognition result
        upload_url: Where to PUT the bytes
        upload_headers: Headers that must accompany the PUT verbatim
    """
    signed_id: str
    upload_url: str
    upload_headers: dict[str, str]

    @classmethod
    def from_provider(cls, data: Any) -> "SignedUploadTicket":
        """Build a ticket from the provider body relayed by upload_request."""
        if not isinstance(data, dict):
            raise MalformedResponse("Upload response is not a JSON object")
        direct_upload = data.get("direct-upload")
        signed_id = data.get("signed-id")
        if not isinstance(direct_upload, dict) or not isinstance(signed_id, str) or not signed_id:
            raise MalformedResponse("Upload response is missing signed-id or direct-upload")
        url = direct_upload.get("url")
        headers = direct_upload.get("headers") or {}
        if not isinstance(url, str) or not url or not isinstance(headers, dict):
            raise MalformedResponse("Upload response has an invalid direct-upload section")
        return cls(
            signed_id=signed_id,
            upload_url=url,
            upload_headers={str(k): str(v) for k, v in headers.items()},
        )


@dataclass(frozen=True)
class ThirdPartyAccessToken:
    """Short-lived provider token. Never sent to the client."""
    token: str
    token_type: str = "Bearer"

    @property
    def authorization(self) -> str:
        return f"{self.token_type} {self.token}"


class MessageKind(str, Enum):
    NORMAL = "normal"
    DEBUG_ONLY = "debugOnly"

    @classmethod
    def from_wire(cls, value: str) -> "MessageKind":
        return cls.DEBUG_ONLY if value.lower() == "debug" else cls.NORMAL


@dataclass(frozen=True)
class MessageButton:
    title: str
    action_type: str
    action_data: str

    def to_dict(self) -> dict[str, str]:
        return {
            "title": self.title,
            "action_type": self.action_type,
            "action_data": self.action_data,
        }


@dataclass(frozen=True)
class NotificationMessage:
    """
    Server-pushed notification delivered with the login response.

    Attributes:
        id: Stable message identifier (used for one-time tracking)
        kind: normal or debugOnly
        is_one_time: Show at most once per client
        version_constraint: "<op><version>" with op one of =, <, >
        title: Title text
        body: Message text
        buttons: Ordered button descriptions
        wire_type: The raw "type" string, preserved for re-encoding
    """
    id: str
    kind: MessageKind
    is_one_time: bool
    version_constraint: str
    title: str
    body: str
    buttons: tuple[MessageButton, ...] = ()
    wire_type: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "NotificationMessage":
        """Decode one message from its snake_case wire form."""
        try:
            buttons = tuple(
                MessageButton(
                    title=_require_str(b, "title"),
                    action_type=_require_str(b, "action_type"),
                    action_data=_require_str(b, "action_data"),
                )
                for b in data["buttons"]
            )
            wire_type = _require_str(data, "type")
            is_one_time = data["is_one_time"]
            if not isinstance(is_one_time, bool):
                raise MalformedResponse("is_one_time must be a boolean")
            return cls(
                id=_require_str(data, "id"),
                kind=MessageKind.from_wire(wire_type),
                is_one_time=is_one_time,
                version_constraint=_require_str(data, "app_version"),
                title=_require_str(data, "title"),
                body=_require_str(data, "message"),
                buttons=buttons,
                wire_type=wire_type,
            )
        except (KeyError, TypeError) as e:
            raise MalformedResponse(f"Invalid message: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        wire_type = self.wire_type
        if wire_type is None:
            wire_type = "debug" if self.kind is MessageKind.DEBUG_ONLY else "normal"
        return {
            "id": self.id,
            "type": wire_type,
            "is_one_time": self.is_one_time,
            "app_version": self.version_constraint,
            "title": self.title,
            "message": self.body,
            "buttons": [b.to_dict() for b in self.buttons],
        }


@dataclass(frozen=True)
class LoginResponse:
    """
    Decoded body of a login response.

    Attributes:
        login_result: "success" when the login was accepted
        messages: Notifications to run through the message gate
    """
    login_result: str
    messages: tuple[NotificationMessage, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.login_result == LOGIN_SUCCESS

    @classmethod
    def from_dict(cls, data: Any) -> "LoginResponse":
        if not isinstance(data, dict):
            raise MalformedResponse("Login response is not a JSON object")
        login_result = data.get("login_result")
        if not isinstance(login_result, str):
            raise MalformedResponse("Login response has no login_result")
        raw_messages = data.get("messages") or []
        if not isinstance(raw_messages, list):
            raise MalformedResponse("Login response messages is not a list")
        return cls(
            login_result=login_result,
            messages=tuple(NotificationMessage.from_dict(m) for m in raw_messages),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "login_result": self.login_result,
            "messages": [m.to_dict() for m in self.messages],
        }


@dataclass
class GateResult:
    """
    Outcome of the two-factor request gate.

    Attributes:
        verified: Whether both credentials checked out
        uid: Verified subject identifier when verified
        reason: Failure category when not verified
        error: Internal failure detail (logged, never returned to callers)
    """
    verified: bool
    uid: str | None = None
    reason: AuthFailureReason | None = None
    error: str | None = None


@dataclass
class GateState:
    """
    Gate state attached to requests.

    Attributes:
        checked: Whether the gate ran for this request (False on exempt paths)
        result: Gate result if checked
    """
    checked: bool
    result: GateResult | None = None

    @property
    def uid(self) -> str | None:
        if self.result is not None and self.result.verified:
            return self.result.uid
        return None


def _require_str(data: Any, key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise MalformedResponse(f"{key} must be a string")
    return value
