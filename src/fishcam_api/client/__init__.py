"""
Client side: credential providers, API client and session bootstrap.
"""

from .api import FishcamClient
from .bootstrap import BootstrapStep, SessionBootstrap
from .providers import (
    AppCheckDebugProvider,
    AttestationProvider,
    FirebaseAnonymousIdentityProvider,
    Identity,
    IdentityProvider,
)

__all__ = [
    "AppCheckDebugProvider",
    "AttestationProvider",
    "BootstrapStep",
    "FirebaseAnonymousIdentityProvider",
    "FishcamClient",
    "Identity",
    "IdentityProvider",
    "SessionBootstrap",
]
