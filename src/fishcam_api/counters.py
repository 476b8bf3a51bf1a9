"""
Best-effort activity counters.

Counting never affects a response: ``increment_safely`` logs and swallows any
failure of the underlying store.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Any, Protocol

from firebase_admin import db

logger = logging.getLogger(__name__)

# Realtime-database keys can't be empty or contain ".", "#", "$", "[", "]"
_INVALID_NAME = re.compile(r"[.#$\[\]]")


def validate_counter_name(name: str) -> str:
    if not name or _INVALID_NAME.search(name):
        raise ValueError(f"Invalid counter name: {name!r}")
    return name


class ActivityCounter(Protocol):
    def increment(self, name: str) -> None: ...


class LoggingActivityCounter:
    """Counter that only logs. Default when no store is configured."""

    def increment(self, name: str) -> None:
        validate_counter_name(name)
        logger.info("COUNTER: %s", name)


class InMemoryActivityCounter:
    """Process-local counts."""

    def __init__(self) -> None:
        self.counts: Counter[str] = Counter()

    def increment(self, name: str) -> None:
        self.counts[validate_counter_name(name)] += 1


class FirebaseActivityCounter:
    """
    Counts under ``/metrics/<name>`` in the Firebase Realtime Database.

    Args:
        app: firebase_admin App configured with a databaseURL (default app if None)
        root: Database path the counters live under
    """

    def __init__(self, app: Any = None, root: str = "/metrics"):
        self.app = app
        self.root = root.rstrip("/")

    def increment(self, name: str) -> None:
        ref = db.reference(f"{self.root}/{validate_counter_name(name)}", app=self.app)
        ref.transaction(lambda current: (current or 0) + 1)


def increment_safely(counter: ActivityCounter | None, name: str) -> None:
    """Increment ``name`` on ``counter``; failures are logged, never raised."""
    if counter is None:
        return
    try:
        counter.increment(name)
    except Exception:
        logger.warning("Error incrementing counter %s", name, exc_info=True)
