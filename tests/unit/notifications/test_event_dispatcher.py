from __future__ import annotations

import io
import json

from discord_mcp.notifications import KNOWN_EVENTS, EventDispatcher, NotificationChannel
from discord_mcp.notifications.dispatcher import GUILD_MEMBER_ADDED, MESSAGE_CREATED, MESSAGE_REACTION_ADDED
from discord_mcp.remote import EntityKind
from discord_mcp.remote.state import StateClient
from discord_mcp.transport.writer import LineWriter


def _notifications(output: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in output.getvalue().splitlines()]


def test_state_events_become_notifications(client: StateClient, writer: LineWriter, output: io.StringIO) -> None:
    client.subscribe(EventDispatcher(NotificationChannel(writer, enabled=True, allowed_events=KNOWN_EVENTS)))

    sent = client.mutate_entity(EntityKind.CHANNEL, "300", "send_message", {"content": "hi"})
    client.mutate_entity(EntityKind.MESSAGE, "400", "add_reaction", {"emoji": {"id": None, "name": "🔥"}})
    client.mutate_entity(EntityKind.GUILD, "200", "add_member", {"user": {"id": "555", "username": "newbie"}})

    notifications = _notifications(output)
    assert [item["method"] for item in notifications] == [MESSAGE_CREATED, MESSAGE_REACTION_ADDED, GUILD_MEMBER_ADDED]
    assert notifications[0]["params"] == {
        "guild_id": "200",
        "channel_id": "300",
        "message_id": sent["id"],
        "author_id": "100",
        "content": "hi",
    }
    assert notifications[1]["params"]["emoji"] == {"id": None, "name": "🔥"}
    assert notifications[2]["params"] == {"guild_id": "200", "user": {"id": "555", "username": "newbie"}}


def test_events_outside_allow_list_are_dropped(writer: LineWriter, output: io.StringIO) -> None:
    dispatcher = EventDispatcher(NotificationChannel(writer, enabled=True, allowed_events=[GUILD_MEMBER_ADDED]))

    assert dispatcher("message_create", {"id": "1", "channel_id": "2", "author_id": "3"}) is False
    assert output.getvalue() == ""


def test_unknown_and_malformed_events_are_ignored(writer: LineWriter, output: io.StringIO) -> None:
    dispatcher = EventDispatcher(NotificationChannel(writer, enabled=True, allowed_events=KNOWN_EVENTS))

    assert dispatcher.handle("typing_start", {}) is False
    assert dispatcher.handle("message_create", {"channel_id": "2"}) is False
    assert output.getvalue() == ""
