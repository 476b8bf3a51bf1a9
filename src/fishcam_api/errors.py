"""
Error taxonomy shared by the client library and the server application.

Every error carries a ``status_code`` used by the HTTP boundary when the error
has to be turned into a response.
"""

from __future__ import annotations

from enum import Enum


class FishcamError(Exception):
    """Base class for all fishcam-api errors."""

    status_code = 500


class TransportError(FishcamError):
    """Network failure or timeout. Never retried by this library."""

    status_code = 502


class TokenError(FishcamError):
    """A credential could not be obtained or was malformed."""

    status_code = 401


class TokenUnexpectedlyNil(TokenError):
    """A token source returned nothing and reported no error."""

    def __init__(self, token_kind: str):
        super().__init__(f"{token_kind} token is unexpectedly nil, but no error was reported")
        self.token_kind = token_kind


class AuthFailed(FishcamError):
    """Establishing an identity (e.g. anonymous sign-in) failed."""

    status_code = 401


class LoginRejected(FishcamError):
    """The login endpoint answered, but not with a success marker."""

    status_code = 401

    def __init__(self, login_result: str | None, status: int | None = None):
        detail = f"login_result={login_result!r}"
        if status is not None:
            detail = f"HTTP {status}, {detail}"
        super().__init__(f"Login rejected ({detail})")
        self.login_result = login_result
        self.status = status


class ResponseError(FishcamError):
    """A response body could not be used."""

    status_code = 502


class NoDataInResponse(ResponseError):
    """The response had no body at all."""

    def __init__(self, message: str = "No data in response"):
        super().__init__(message)


class MalformedResponse(ResponseError):
    """The response body was present but could not be decoded."""


class ValidationError(FishcamError):
    """Malformed client input."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class AuthFailureReason(str, Enum):
    AUTH_HEADER_MISSING = "auth_header_missing"
    IDENTITY_INVALID = "identity_invalid"
    ATTESTATION_INVALID = "attestation_invalid"
    VERSION_HEADER_MISSING = "version_header_missing"


class AuthorizationError(FishcamError):
    """Missing or invalid credential."""

    status_code = 401

    def __init__(self, reason: AuthFailureReason, message: str | None = None):
        super().__init__(message or reason.value)
        self.reason = reason


class UpstreamProtocolError(FishcamError):
    """The third-party provider answered with something we did not expect."""

    status_code = 502

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ConfigurationError(FishcamError):
    """Server misconfiguration, such as a missing secret."""

    status_code = 500


class UnrecognizedFormat(FishcamError):
    """The image could not be encoded as PNG or JPEG."""

    status_code = 400

    def __init__(self) -> None:
        super().__init__(
            "We don't recognize the image format of this photo. Please try as JPEG or PNG"
        )


class BootstrapCancelled(FishcamError):
    """The session bootstrap was cancelled while a step was in flight."""


class UploadRequestFailed(FishcamError):
    """The upload_request endpoint did not return a ticket."""

    status_code = 502

    def __init__(self, status: int):
        super().__init__(f"Upload request failed with HTTP {status}")
        self.status = status


class RecognitionTimeout(FishcamError):
    """Polling gave up before the provider produced a result."""

    status_code = 504
