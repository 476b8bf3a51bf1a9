"""Tests for the login message display rule."""

import pytest

from fishcam_api.config import ClientSettings
from fishcam_api.message_gate import (
    FileShownMessageStore,
    InMemoryShownMessageStore,
    MessageGate,
    comparable_version,
    passes_version_check,
)
from fishcam_api.models import MessageKind, NotificationMessage
from fishcam_api.server.messages import DEFAULT_MESSAGES


def message(id="0x0002", kind=MessageKind.NORMAL, is_one_time=True, constraint=">0.1"):
    return NotificationMessage(
        id=id,
        kind=kind,
        is_one_time=is_one_time,
        version_constraint=constraint,
        title="Title",
        body="Body",
    )


THANK_YOU = DEFAULT_MESSAGES[0]


class TestVersionCheck:
    """Tests for passes_version_check and comparable_version."""

    def test_comparable_version(self):
        """Build numbers in parentheses become zero-padded components."""
        assert comparable_version("1.0(16)") == "0001.0000.0016"
        assert comparable_version("1.0.") == "0001.0000"

    @pytest.mark.parametrize("app_version,constraint", [
        ("1.0(16)", "=1.0(16)"),
        ("1.0(16)", "<1.0(17)"),
        ("1.0(9)", "<1.0(10)"),
        ("1.1", ">1.0"),
        ("2.0", ">1.10"),
    ])
    def test_passes(self, app_version, constraint):
        assert passes_version_check(app_version, constraint) is True

    @pytest.mark.parametrize("app_version,constraint", [
        ("1.1(2)", "=1.0(16)"),
        ("1.0(16)", ">1.0(16)"),
        ("1.10", "<1.9"),
        ("1.0", "="),
        ("1.0", ""),
        ("1.0", "~1.0"),
    ])
    def test_fails(self, app_version, constraint):
        assert passes_version_check(app_version, constraint) is False


class TestMessageGate:
    """Tests for MessageGate.should_show."""

    def test_debug_message_hidden_in_release(self):
        """Debug-only messages never show in release builds and aren't recorded."""
        store = InMemoryShownMessageStore()
        gate = MessageGate("1.0(16)", store, release_build=True)

        assert gate.should_show(THANK_YOU) is False
        assert not store.contains("0x0001")

    def test_one_time_message_shows_once(self):
        """Matching version shows once, then is remembered."""
        store = InMemoryShownMessageStore()
        gate = MessageGate("1.0(16)", store, release_build=False)

        assert gate.should_show(THANK_YOU) is True
        assert store.contains("0x0001")
        assert gate.should_show(THANK_YOU) is False

    def test_version_mismatch_marks_shown(self):
        """A failed version check records the id even though nothing showed."""
        store = InMemoryShownMessageStore()
        gate = MessageGate("1.1(2)", store, release_build=False)

        assert gate.should_show(THANK_YOU) is False
        assert store.contains("0x0001")
        assert [gate.should_show(THANK_YOU) for _ in range(3)] == [False, False, False]
        assert store.ids == {"0x0001"}

        # Even a matching client version no longer sees it
        assert MessageGate("1.0(16)", store, release_build=False).should_show(THANK_YOU) is False

    def test_from_settings(self):
        """Debug builds configured through settings see debug-only messages."""
        debug = ClientSettings(app_version="1.0(16)", release_build=False)
        release = ClientSettings(app_version="1.0(16)", release_build=True)

        assert MessageGate.from_settings(debug, InMemoryShownMessageStore()).should_show(THANK_YOU) is True
        assert MessageGate.from_settings(release, InMemoryShownMessageStore()).should_show(THANK_YOU) is False

    def test_repeating_message(self):
        """Non-one-time messages show every time."""
        gate = MessageGate("1.0", InMemoryShownMessageStore())
        msg = message(is_one_time=False)

        assert gate.should_show(msg) is True
        assert gate.should_show(msg) is True

    def test_visible_filters_in_order(self):
        """visible keeps showable messages in delivery order."""
        gate = MessageGate("1.0", InMemoryShownMessageStore())
        a = message(id="a")
        b = message(id="b", constraint="<0.5")
        c = message(id="c")

        assert gate.visible([a, b, c]) == [a, c]


class TestFileShownMessageStore:
    """Tests for FileShownMessageStore."""

    def test_missing_file_is_empty(self, tmp_path):
        store = FileShownMessageStore(tmp_path / "shown")
        assert store.contains("0x0001") is False

    def test_persists_across_instances(self, tmp_path):
        """Ids are written comma-separated and read back by a new instance."""
        path = tmp_path / "state" / "shown"
        store = FileShownMessageStore(path)
        store.add("b")
        store.add("a")
        store.add("a")

        assert path.read_text() == "a,b"
        assert FileShownMessageStore(path).contains("b")
