"""Shared fixtures: an in-process credential verifier and request headers."""

import pytest
import respx

from fishcam_api.counters import InMemoryActivityCounter
from fishcam_api.errors import AuthFailureReason, AuthorizationError
from fishcam_api.server.gate import AuthVerificationGate


class FakeVerifier:
    """
    Accepts identity tokens "id-<uid>" and attestation tokens "ac-<anything>".

    Attestation tokens are single use when consumed, like the real backend.
    """

    def __init__(self):
        self.consumed: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def verify_identity_token(self, token):
        self.calls.append(("identity", token))
        if not token.startswith("id-"):
            raise AuthorizationError(AuthFailureReason.IDENTITY_INVALID, "bad identity token")
        return {"uid": token[3:]}

    def verify_attestation_token(self, token, consume=True):
        self.calls.append(("attestation", token))
        if not token.startswith("ac-") or token in self.consumed:
            raise AuthorizationError(AuthFailureReason.ATTESTATION_INVALID, "bad attestation")
        if consume:
            self.consumed.add(token)
        return {"app_id": "1:123:ios:abc"}


def auth_headers(uid="user-1", attestation="ac-1", version="1.0(16)"):
    """Headers a well-behaved client sends."""
    headers = {
        "Authorization": f"Bearer id-{uid}",
        "X-Firebase-AppCheck": attestation,
    }
    if version is not None:
        headers["FishIdentifierCam-Version"] = version
    return headers


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def counter():
    return InMemoryActivityCounter()


@pytest.fixture
def gate(verifier, counter):
    return AuthVerificationGate(verifier, counter=counter)


@pytest.fixture
def mock_http():
    """respx mock for outbound HTTP calls."""
    with respx.mock(assert_all_called=False) as mock:
        yield mock
