"""
Catalog of notification messages delivered with every login response.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from ..errors import ConfigurationError, MalformedResponse
from ..models import MessageButton, MessageKind, NotificationMessage

logger = logging.getLogger(__name__)

DEFAULT_MESSAGES: tuple[NotificationMessage, ...] = (
    NotificationMessage(
        id="0x0001",
        kind=MessageKind.DEBUG_ONLY,
        is_one_time=True,
        version_constraint="=1.0(16)",
        title="Thank you!",
        body="Thank you for using Fishy Identifier Cam",
        buttons=(
            MessageButton(title="Cancel", action_type="dismiss", action_data=""),
            MessageButton(title="OK", action_type="open_url", action_data="https://microsoft.com"),
        ),
        wire_type="debug",
    ),
)


class MessageCatalog:
    """Login messages, in delivery order."""

    def __init__(self, messages: tuple[NotificationMessage, ...] = DEFAULT_MESSAGES):
        self.messages = tuple(messages)

    @classmethod
    def from_file(cls, path: str | Path) -> "MessageCatalog":
        """
        Load messages from a JSON file holding a list of wire-format messages.

        Raises:
            ConfigurationError: If the file is missing or invalid
        """
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ConfigurationError(f"Messages file {path} must hold a JSON list")
            messages = tuple(NotificationMessage.from_dict(m) for m in raw)
        except (OSError, ValueError, MalformedResponse) as e:
            raise ConfigurationError(f"Invalid messages file {path}: {e}") from e
        logger.info("Loaded %d login messages from %s", len(messages), path)
        return cls(messages)

    def to_wire(self) -> list[dict]:
        return [m.to_dict() for m in self.messages]
