"""
Fishcam API

Backend and client library for photo-based fish identification: credential
verification, upload ticket brokering, and login notification messages.
"""

from .errors import (
    AuthFailureReason,
    AuthorizationError,
    FishcamError,
    TransportError,
    UnrecognizedFormat,
    ValidationError,
)
from .models import (
    GateResult,
    IdentificationRequest,
    LoginResponse,
    NotificationMessage,
    SignedUploadTicket,
    UploadDescriptor,
)
from .descriptor import create_identification_request, encode_image
from .message_gate import MessageGate, passes_version_check
from .headers import credential_headers, parse_bearer_token

__version__ = "0.1.0"

__all__ = [
    "AuthFailureReason",
    "AuthorizationError",
    "FishcamError",
    "GateResult",
    "IdentificationRequest",
    "LoginResponse",
    "MessageGate",
    "NotificationMessage",
    "SignedUploadTicket",
    "TransportError",
    "UnrecognizedFormat",
    "UploadDescriptor",
    "ValidationError",
    "create_identification_request",
    "credential_headers",
    "encode_image",
    "parse_bearer_token",
    "passes_version_check",
]
