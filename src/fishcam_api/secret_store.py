"""
Read-only access to confidential configuration values.
"""

from __future__ import annotations

import os
from typing import Mapping, Protocol

CLIENT_ID_SECRET = "FISHIAL_CLIENT_ID"
CLIENT_SECRET_SECRET = "FISHIAL_CLIENT_SECRET"


class SecretStore(Protocol):
    def get(self, name: str) -> str | None: ...


class EnvSecretStore:
    """Secrets injected as environment variables, read at call time."""

    def get(self, name: str) -> str | None:
        return os.environ.get(name)


class StaticSecretStore:
    """Secrets from a fixed mapping."""

    def __init__(self, values: Mapping[str, str]):
        self._values = dict(values)

    def get(self, name: str) -> str | None:
        return self._values.get(name)

    def __repr__(self) -> str:
        return f"StaticSecretStore(names={sorted(self._values)})"
