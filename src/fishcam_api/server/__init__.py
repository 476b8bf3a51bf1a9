"""
Server side: request gate, token broker, provider client and upload handling.

The FastAPI application lives in ``fishcam_api.server.app``.
"""

from .broker import AccessTokenBroker
from .gate import AuthVerificationGate
from .messages import MessageCatalog
from .provider import FishialClient
from .upload import UploadCoordinator, parse_upload_body
from .verifier import CredentialVerifier, FirebaseCredentialVerifier

__all__ = [
    "AccessTokenBroker",
    "AuthVerificationGate",
    "CredentialVerifier",
    "FirebaseCredentialVerifier",
    "FishialClient",
    "MessageCatalog",
    "UploadCoordinator",
    "parse_upload_body",
]
