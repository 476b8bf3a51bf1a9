"""
Client session bootstrap: sign in, fetch both credentials, log in.

The bootstrap is an explicit state machine driven by a loop. Steps run
strictly one after another; the first failure is terminal and nothing is
retried here.

    IDLE -> AUTHENTICATING_IDENTITY -> FETCHING_IDENTITY_TOKEN
         -> FETCHING_ATTESTATION_TOKEN -> SUBMITTING_LOGIN
         -> LOGGED_IN | FAILED
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from ..errors import (
    AuthFailed,
    BootstrapCancelled,
    FishcamError,
    LoginRejected,
    TokenError,
    TokenUnexpectedlyNil,
)
from ..message_gate import MessageGate
from ..models import LoginResponse, NotificationMessage
from .api import FishcamClient
from .providers import AttestationProvider, Identity, IdentityProvider

logger = logging.getLogger(__name__)


class BootstrapStep(str, Enum):
    IDLE = "idle"
    AUTHENTICATING_IDENTITY = "authenticating_identity"
    FETCHING_IDENTITY_TOKEN = "fetching_identity_token"
    FETCHING_ATTESTATION_TOKEN = "fetching_attestation_token"
    SUBMITTING_LOGIN = "submitting_login"
    LOGGED_IN = "logged_in"
    FAILED = "failed"


TERMINAL_STEPS = frozenset({BootstrapStep.LOGGED_IN, BootstrapStep.FAILED})


class SessionBootstrap:
    """
    Establishes an authenticated session with the fishcam server.

    Args:
        client: API client; receives the signed-in identity
        identity_provider: Source of the (anonymous) user identity
        attestation_provider: Source of app attestation tokens

    Example:
        >>> bootstrap = SessionBootstrap(client, identity_provider, attestation_provider)
        >>> step = await bootstrap.run()
        >>> if step is BootstrapStep.LOGGED_IN:
        ...     messages = bootstrap.visible_messages(gate)
    """

    def __init__(
        self,
        client: FishcamClient,
        identity_provider: IdentityProvider,
        attestation_provider: AttestationProvider,
    ):
        self.client = client
        self.identity_provider = identity_provider
        self.attestation_provider = attestation_provider

        self.step = BootstrapStep.IDLE
        self.history: list[BootstrapStep] = [BootstrapStep.IDLE]
        self.failure: FishcamError | None = None
        self.login_response: LoginResponse | None = None

        self._identity: Identity | None = None
        self._identity_token: str | None = None
        self._attestation_token: str | None = None

        self._handlers: dict[BootstrapStep, Callable[[], Awaitable[None]]] = {
            BootstrapStep.AUTHENTICATING_IDENTITY: self._authenticate_identity,
            BootstrapStep.FETCHING_IDENTITY_TOKEN: self._fetch_identity_token,
            BootstrapStep.FETCHING_ATTESTATION_TOKEN: self._fetch_attestation_token,
            BootstrapStep.SUBMITTING_LOGIN: self._submit_login,
        }

    @property
    def is_logged_in(self) -> bool:
        return self.step is BootstrapStep.LOGGED_IN

    async def run(self) -> BootstrapStep:
        """
        Drive the state machine to a terminal step.

        Failures are recorded on ``failure`` rather than raised. Cancelling
        the task cancels the in-flight step, records ``BootstrapCancelled``
        and re-raises ``asyncio.CancelledError``.
        """
        if self.step is not BootstrapStep.IDLE:
            raise RuntimeError(f"Bootstrap already ran (step={self.step.value})")

        self._advance(BootstrapStep.AUTHENTICATING_IDENTITY)
        try:
            while self.step not in TERMINAL_STEPS:
                await self._handlers[self.step]()
        except asyncio.CancelledError:
            self._fail(BootstrapCancelled(f"Cancelled during {self.step.value}"))
            raise
        return self.step

    def visible_messages(self, gate: MessageGate) -> list[NotificationMessage]:
        """Login messages that pass the message gate."""
        if self.login_response is None:
            return []
        return gate.visible(self.login_response.messages)

    def _advance(self, step: BootstrapStep) -> None:
        logger.debug("Bootstrap %s -> %s", self.step.value, step.value)
        self.step = step
        self.history.append(step)

    def _fail(self, error: FishcamError) -> None:
        logger.error("Bootstrap failed during %s: %s", self.step.value, error)
        self.failure = error
        self.step = BootstrapStep.FAILED
        self.history.append(BootstrapStep.FAILED)

    async def _authenticate_identity(self) -> None:
        try:
            identity = await self.identity_provider.sign_in_anonymously()
        except FishcamError as e:
            self._fail(e if isinstance(e, AuthFailed) else AuthFailed(str(e)))
            return
        except Exception as e:
            self._fail(AuthFailed(f"Sign-in failed: {e}"))
            return

        if identity is None:
            self._fail(AuthFailed("Sign-in result is unexpectedly nil, but no error was reported"))
            return

        logger.info("Anonymous user sign-in succeeded")
        self._identity = identity
        self.client.identity = identity
        self._advance(BootstrapStep.FETCHING_IDENTITY_TOKEN)

    async def _fetch_identity_token(self) -> None:
        assert self._identity is not None
        token = await self._fetch_token(
            "identity", lambda: self._identity.get_id_token(force_refresh=True)
        )
        if token is not None:
            self._identity_token = token
            self._advance(BootstrapStep.FETCHING_ATTESTATION_TOKEN)

    async def _fetch_attestation_token(self) -> None:
        token = await self._fetch_token(
            "attestation", lambda: self.attestation_provider.get_token(force_refresh=False)
        )
        if token is not None:
            self._attestation_token = token
            self._advance(BootstrapStep.SUBMITTING_LOGIN)

    async def _fetch_token(
        self,
        kind: str,
        fetch: Callable[[], Awaitable[str | None]],
    ) -> str | None:
        try:
            token = await fetch()
        except FishcamError as e:
            self._fail(e)
            return None
        except Exception as e:
            self._fail(TokenError(f"Fetching {kind} token failed: {e}"))
            return None

        if token is None:
            self._fail(TokenUnexpectedlyNil(kind))
        return token

    async def _submit_login(self) -> None:
        assert self._identity_token is not None and self._attestation_token is not None
        try:
            response = await self.client.submit_login(self._identity_token, self._attestation_token)
        except FishcamError as e:
            self._fail(e)
            return

        if not response.succeeded:
            self._fail(LoginRejected(response.login_result))
            return

        logger.info("Login succeeded")
        self.login_response = response
        self._advance(BootstrapStep.LOGGED_IN)
