"""
One-time, version-gated display rule for login notification messages.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from .config import ClientSettings
from .models import MessageKind, NotificationMessage

logger = logging.getLogger(__name__)

_INTEGER = re.compile(r"[+-]?\d+")


class ShownMessageStore(Protocol):
    """Persisted set of message ids that count as already shown."""

    def contains(self, message_id: str) -> bool: ...

    def add(self, message_id: str) -> None: ...


class InMemoryShownMessageStore:
    """Shown-message set held in memory."""

    def __init__(self, ids: set[str] | None = None):
        self.ids: set[str] = set(ids or ())

    def contains(self, message_id: str) -> bool:
        return message_id in self.ids

    def add(self, message_id: str) -> None:
        self.ids.add(message_id)


class FileShownMessageStore:
    """
    Shown-message set persisted as comma-separated ids in a single file.

    Args:
        path: File holding the ids. Created on first write.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> set[str]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return set()
        return {item for item in text.split(",") if item}

    def contains(self, message_id: str) -> bool:
        return message_id in self._load()

    def add(self, message_id: str) -> None:
        ids = self._load()
        if message_id in ids:
            return
        ids.add(message_id)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(",".join(sorted(ids)), encoding="utf-8")


def comparable_version(version: str) -> str:
    """
    Normalize a version string so plain string comparison orders it.

    Parentheses around the build number become a dotted component and every
    integer component is zero-padded to four digits.

    Examples:
        >>> comparable_version("1.0(16)")
        '0001.0000.0016'
        >>> comparable_version("2.10b")
        '0002.10b'
    """
    pieces = version.replace(")", "").replace("(", ".").split(".")
    out = []
    for piece in pieces:
        if not piece:
            continue
        if _INTEGER.fullmatch(piece):
            out.append("%04d" % int(piece))
        else:
            out.append(piece)
    return ".".join(out)


def passes_version_check(app_version: str, constraint: str) -> bool:
    """
    Check ``app_version`` against a ``"<op><version>"`` constraint.

    Constraints shorter than two characters and unknown operators fail.
    """
    if len(constraint) < 2:
        logger.info("Version constraint %r too short", constraint)
        return False

    op, wanted = constraint[0], comparable_version(constraint[1:])
    actual = comparable_version(app_version)
    logger.debug("Comparing app version %s %s %s", actual, op, wanted)

    if op == "=":
        return actual == wanted
    if op == "<":
        return actual < wanted
    if op == ">":
        return actual > wanted

    logger.info("Unknown version comparison %r", op)
    return False


class MessageGate:
    """
    Decides whether a login message should be shown to this client.

    A message whose version check fails is recorded as shown even though it
    was not displayed, so it never shows on this client again, even after an
    upgrade that would satisfy the constraint.

    Args:
        app_version: This client's version string, e.g. "1.0(16)"
        store: Persisted set of previously shown message ids
        release_build: When True, debug-only messages are never shown
    """

    def __init__(self, app_version: str, store: ShownMessageStore, release_build: bool = True):
        self.app_version = app_version
        self.store = store
        self.release_build = release_build

    @classmethod
    def from_settings(cls, settings: ClientSettings, store: ShownMessageStore) -> "MessageGate":
        """Gate for this client build: its version and whether it is a release build."""
        return cls(settings.app_version, store, release_build=settings.release_build)

    def should_show(self, message: NotificationMessage) -> bool:
        if message.kind is MessageKind.DEBUG_ONLY and self.release_build:
            logger.debug("Message %s is debug only, not showing in release build", message.id)
            return False

        if not passes_version_check(self.app_version, message.version_constraint):
            logger.debug("Message %s failed version check, marking shown", message.id)
            if not self.store.contains(message.id):
                self.store.add(message.id)
            return False

        if not message.is_one_time:
            return True

        if self.store.contains(message.id):
            logger.debug("Message %s previously shown", message.id)
            return False

        self.store.add(message.id)
        return True

    def visible(self, messages: list[NotificationMessage] | tuple[NotificationMessage, ...]) -> list[NotificationMessage]:
        """Evaluate each message once, in order, and keep the showable ones."""
        return [m for m in messages if self.should_show(m)]
