"""
Two-factor request gate: identity token plus attestation token.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from ..counters import ActivityCounter, increment_safely
from ..errors import AuthFailureReason, AuthorizationError
from ..headers import (
    ATTESTATION_HEADER,
    AUTHORIZATION_HEADER,
    normalize_headers,
    parse_bearer_token,
)
from ..models import GateResult
from .verifier import CredentialVerifier

logger = logging.getLogger(__name__)


def _check_authorization_header(headers: Mapping[str, str]) -> GateResult | None:
    """
    Check the bearer header is present before any verification call.

    Returns None if verification can proceed, or a failed GateResult.
    """
    if parse_bearer_token(headers.get(AUTHORIZATION_HEADER)) is None:
        return GateResult(
            verified=False,
            reason=AuthFailureReason.AUTH_HEADER_MISSING,
            error="Authorization header missing or doesn't begin with 'Bearer '",
        )

    return None


class AuthVerificationGate:
    """
    Validates both request credentials before any handler logic runs.

    Both checks are mandatory: the identity token must carry a subject and,
    outside a trusted local environment, the attestation token must verify
    and be consumed. Nothing is cached across requests.

    Args:
        verifier: Credential verification backend
        trust_local_environment: Skip the attestation check (emulator only)
        counter: Optional activity counter for failures

    Example:
        >>> gate = AuthVerificationGate(FirebaseCredentialVerifier())
        >>> result = await gate.authorize(request.headers)
        >>> if result.verified:
        ...     print(f"Verified user: {result.uid}")
    """

    def __init__(
        self,
        verifier: CredentialVerifier,
        trust_local_environment: bool = False,
        counter: ActivityCounter | None = None,
    ):
        self.verifier = verifier
        self.trust_local_environment = trust_local_environment
        self.counter = counter

    async def authorize(self, headers: Mapping[str, str]) -> GateResult:
        """
        Verify the request credentials asynchronously.

        Verification backends are blocking, so they run in a worker thread.
        """
        normalized = normalize_headers(headers)
        header_error = _check_authorization_header(normalized)
        if header_error is not None:
            return self._fail(header_error)
        return await asyncio.to_thread(self._verify, normalized)

    def authorize_sync(self, headers: Mapping[str, str]) -> GateResult:
        """Verify the request credentials synchronously."""
        normalized = normalize_headers(headers)
        header_error = _check_authorization_header(normalized)
        if header_error is not None:
            return self._fail(header_error)
        return self._verify(normalized)

    def require(self, headers: Mapping[str, str]) -> str:
        """
        Verify synchronously and return the uid.

        Raises:
            AuthorizationError: If either credential is missing or invalid
        """
        result = self.authorize_sync(headers)
        if not result.verified or result.uid is None:
            raise AuthorizationError(
                result.reason or AuthFailureReason.IDENTITY_INVALID, result.error
            )
        return result.uid

    def _verify(self, headers: dict[str, str]) -> GateResult:
        id_token = parse_bearer_token(headers.get(AUTHORIZATION_HEADER))
        assert id_token is not None

        try:
            claims = self.verifier.verify_identity_token(id_token)
            uid = claims.get("uid") or claims.get("sub")
            if not isinstance(uid, str) or not uid:
                raise AuthorizationError(
                    AuthFailureReason.IDENTITY_INVALID,
                    "uid decoded from ID token doesn't exist",
                )

            if self.trust_local_environment:
                logger.info("App Check token not required in local environment - skipped")
            else:
                attestation_token = headers.get(ATTESTATION_HEADER)
                if not attestation_token:
                    raise AuthorizationError(
                        AuthFailureReason.ATTESTATION_INVALID, "App Check token missing"
                    )
                self.verifier.verify_attestation_token(attestation_token, consume=True)

        except AuthorizationError as e:
            return self._fail(GateResult(verified=False, reason=e.reason, error=str(e)))
        except Exception as e:
            # Backend failure: fail closed as an identity problem
            logger.exception("Credential verification backend error")
            return self._fail(GateResult(
                verified=False,
                reason=AuthFailureReason.IDENTITY_INVALID,
                error=f"Verification failed: {e}",
            ))

        logger.info("User auth and App Check verified for uid %s", uid)
        return GateResult(verified=True, uid=uid)

    def _fail(self, result: GateResult) -> GateResult:
        logger.info("Request rejected by gate: %s (%s)", result.reason, result.error)
        increment_safely(self.counter, "gate_authFailed")
        return result
