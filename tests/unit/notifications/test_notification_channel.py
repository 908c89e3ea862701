from __future__ import annotations

import io
import json

import pytest

from discord_mcp.notifications import KNOWN_EVENTS, NotificationChannel
from discord_mcp.notifications.dispatcher import MESSAGE_CREATED
from discord_mcp.transport.writer import LineWriter


class _BrokenStream(io.StringIO):
    def write(self, text: str) -> int:
        raise BrokenPipeError("gone")


@pytest.mark.parametrize(
    ("enabled", "allowed", "written"),
    [
        (False, KNOWN_EVENTS, False),
        (True, (), False),
        (True, ("discord/guildMemberAdded",), False),
        (True, (MESSAGE_CREATED,), True),
    ],
)
def test_emit_respects_enable_flag_and_allow_list(
    writer: LineWriter, output: io.StringIO, enabled: bool, allowed: tuple[str, ...], written: bool
) -> None:
    channel = NotificationChannel(writer, enabled=enabled, allowed_events=allowed)

    assert channel.emit(MESSAGE_CREATED, {"message_id": "1"}) is written
    assert bool(output.getvalue()) is written


def test_notification_has_no_id(writer: LineWriter, output: io.StringIO) -> None:
    channel = NotificationChannel(writer, enabled=True, allowed_events=[MESSAGE_CREATED])

    channel.emit(MESSAGE_CREATED, {"message_id": "1"})

    envelope = json.loads(output.getvalue())
    assert envelope == {"jsonrpc": "2.0", "method": MESSAGE_CREATED, "params": {"message_id": "1"}}


def test_write_failure_is_swallowed() -> None:
    channel = NotificationChannel(LineWriter(_BrokenStream()), enabled=True, allowed_events=[MESSAGE_CREATED])

    assert channel.emit(MESSAGE_CREATED, {}) is False
    assert channel.emit(MESSAGE_CREATED, {}) is False
