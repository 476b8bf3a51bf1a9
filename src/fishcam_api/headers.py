"""
Credential header names, bearer parsing and log-safe header rendering.
"""

from typing import Mapping


AUTHORIZATION_HEADER = "authorization"
ATTESTATION_HEADER = "x-firebase-appcheck"
DEFAULT_VERSION_HEADER = "fishidentifiercam-version"
DECISION_HEADER = "X-Fishcam-Decision"

BEARER_PREFIX = "Bearer "

# Headers whose values must never reach the logs
SENSITIVE_HEADERS = frozenset({
    "cookie",
    "authorization",
    "proxy-authorization",
    ATTESTATION_HEADER,
})


def normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Lowercase header names for case-insensitive lookup."""
    return {k.lower(): v for k, v in headers.items()}


def parse_bearer_token(authorization: str | None) -> str | None:
    """
    Extract the token from an ``Authorization: Bearer <token>`` value.

    The scheme match is exact and case-sensitive.

    Examples:
        >>> parse_bearer_token("Bearer abc.def")
        'abc.def'
        >>> parse_bearer_token("Basic Zm9vOmJhcg==") is None
        True
        >>> parse_bearer_token("Bearer ") is None
        True
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def credential_headers(
    identity_token: str | None,
    attestation_token: str | None,
) -> dict[str, str]:
    """
    Build the two credential headers, omitting any token that is missing.
    """
    headers: dict[str, str] = {}
    if identity_token:
        headers["Authorization"] = f"{BEARER_PREFIX}{identity_token}"
    if attestation_token:
        headers["X-Firebase-AppCheck"] = attestation_token
    return headers


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """
    Copy of ``headers`` that is safe to log.

    Examples:
        >>> redact_headers({"Authorization": "Bearer x", "Accept": "*/*"})
        {'Authorization': '[REDACTED]', 'Accept': '*/*'}
    """
    return {
        k: "[REDACTED]" if k.lower() in SENSITIVE_HEADERS else v
        for k, v in headers.items()
    }
