from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from discord_mcp.permissions import Permission, Scope
from discord_mcp.remote import (
    EntityKind,
    NotConnected,
    RateLimited,
    RemoteClient,
    RemoteError,
    RemoteForbidden,
    RemoteNotFound,
)
from discord_mcp.remote.state import StateClient, load_snapshot
from tests.helpers.snapshot import BOT_ID, EVERYONE_PERMISSIONS, build_snapshot


def test_state_client_satisfies_remote_protocol(client: StateClient) -> None:
    assert isinstance(client, RemoteClient)
    assert client.actor_id == BOT_ID


def test_fetch_returns_copies(client: StateClient) -> None:
    message = client.fetch_entity(EntityKind.MESSAGE, "400")
    message["content"] = "changed"

    assert client.fetch_entity(EntityKind.MESSAGE, "400")["content"] == "hello"


def test_fetch_unknown_entity(client: StateClient) -> None:
    with pytest.raises(RemoteNotFound):
        client.fetch_entity(EntityKind.CHANNEL, "999999")


def test_everyone_role_created_for_guilds_without_one(client: StateClient) -> None:
    role = client.fetch_entity(EntityKind.ROLE, "250")

    assert role["name"] == "@everyone"
    assert role["permissions"] == 0


def test_disconnected_client_refuses_calls(client: StateClient) -> None:
    client.disconnect()

    with pytest.raises(NotConnected):
        client.fetch_entity(EntityKind.GUILD, "200")

    client.connect()
    assert client.fetch_entity(EntityKind.GUILD, "200")["name"] == "Test Guild"


def test_allow_list_forbids_other_guilds() -> None:
    client = StateClient(build_snapshot(), allowed_guilds=["250"])

    with pytest.raises(RemoteForbidden):
        client.fetch_entity(EntityKind.GUILD, "200")
    with pytest.raises(RemoteForbidden):
        client.fetch_entity(EntityKind.CHANNEL, "300")
    with pytest.raises(RemoteForbidden):
        client.fetch_entity(EntityKind.MESSAGE, "400")
    assert client.fetch_entity(EntityKind.CHANNEL, "350")["name"] == "elsewhere"


def test_list_channels_in_position_order(client: StateClient) -> None:
    channels = client.list_entities(EntityKind.CHANNEL, "200")

    assert [channel["id"] for channel in channels] == ["300", "301", "302", "303"]


def test_list_roles_highest_first(client: StateClient) -> None:
    roles = client.list_entities(EntityKind.ROLE, "200")

    assert [role["name"] for role in roles] == ["Admin", "Moderator", "Member", "@everyone"]


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ({}, ["402", "401", "400"]),
        ({"limit": 2}, ["402", "401"]),
        ({"before": "402"}, ["401", "400"]),
        ({"after": "400"}, ["402", "401"]),
        ({"around": "401", "limit": 1}, ["401"]),
    ],
)
def test_message_paging(client: StateClient, query: dict[str, Any], expected: list[str]) -> None:
    messages = client.list_entities(EntityKind.MESSAGE, "300", query)

    assert [message["id"] for message in messages] == expected


def test_send_message_publishes_event(client: StateClient) -> None:
    events: list[tuple[str, dict[str, Any]]] = []
    client.subscribe(lambda event_type, data: events.append((event_type, dict(data))))

    message = client.mutate_entity(EntityKind.CHANNEL, "300", "send_message", {"content": "hi"})

    assert message["author_id"] == BOT_ID
    assert int(message["id"]) > 402
    assert events == [("message_create", {**message, "guild_id": "200"})]


def test_failing_listener_does_not_break_mutation(client: StateClient) -> None:
    def explode(event_type: str, data: Any) -> None:
        raise RuntimeError("listener failure")

    client.subscribe(explode)

    message = client.mutate_entity(EntityKind.CHANNEL, "300", "send_message", {"content": "hi"})

    assert client.fetch_entity(EntityKind.MESSAGE, message["id"])["content"] == "hi"


def test_edit_only_own_messages(client: StateClient) -> None:
    edited = client.mutate_entity(EntityKind.MESSAGE, "401", "edit", {"content": "updated"})

    assert edited["content"] == "updated"
    assert edited["edited_timestamp"] is not None
    with pytest.raises(RemoteForbidden):
        client.mutate_entity(EntityKind.MESSAGE, "400", "edit", {"content": "nope"})


def test_reactions_are_counted_per_user(client: StateClient) -> None:
    emoji = {"id": None, "name": "👍"}
    client.mutate_entity(EntityKind.MESSAGE, "400", "add_reaction", {"emoji": emoji})
    client.mutate_entity(EntityKind.MESSAGE, "400", "add_reaction", {"emoji": emoji})
    message = client.mutate_entity(EntityKind.MESSAGE, "400", "add_reaction", {"emoji": emoji, "user_id": "102"})

    assert message["reactions"] == [{"emoji": emoji, "count": 2, "users": [BOT_ID, "102"]}]


def test_delete_role_removes_it_from_members(client: StateClient) -> None:
    client.mutate_entity(EntityKind.ROLE, "201", "delete", {})

    member = client.fetch_entity(EntityKind.MEMBER, "200/101")
    assert member["roles"] == []
    with pytest.raises(RemoteForbidden):
        client.mutate_entity(EntityKind.ROLE, "200", "delete", {})


def test_add_member_publishes_event(client: StateClient) -> None:
    events: list[str] = []
    client.subscribe(lambda event_type, data: events.append(event_type))

    client.mutate_entity(EntityKind.GUILD, "200", "add_member", {"user": {"id": "555", "username": "newbie"}})

    assert events == ["member_add"]
    assert client.fetch_entity(EntityKind.MEMBER, "200/555")["user"]["username"] == "newbie"


def test_unsupported_mutation(client: StateClient) -> None:
    with pytest.raises(RemoteError):
        client.mutate_entity(EntityKind.USER, BOT_ID, "rename", {})


def test_mutations_are_rate_limited(snapshot: dict[str, Any], clock: Any) -> None:
    client = StateClient(snapshot, rate_limit_per_minute=2, clock=clock)
    client.mutate_entity(EntityKind.CHANNEL, "300", "send_message", {"content": "1"})
    client.mutate_entity(EntityKind.CHANNEL, "300", "send_message", {"content": "2"})

    with pytest.raises(RateLimited) as excinfo:
        client.mutate_entity(EntityKind.CHANNEL, "300", "send_message", {"content": "3"})

    assert excinfo.value.retry_after == pytest.approx(60.0)
    assert excinfo.value.to_dict()["details"]["code"] == "RATE_LIMITED"
    clock.advance(60.0)
    client.mutate_entity(EntityKind.CHANNEL, "300", "send_message", {"content": "3"})


def test_reads_are_not_rate_limited(snapshot: dict[str, Any], clock: Any) -> None:
    client = StateClient(snapshot, rate_limit_per_minute=1, clock=clock)

    for _ in range(5):
        client.fetch_entity(EntityKind.CHANNEL, "300")


def test_channel_mask_applies_overwrites(client: StateClient) -> None:
    assert client.get_capability_bitmask(BOT_ID, Scope.channel("300")) == EVERYONE_PERMISSIONS
    hidden = client.get_capability_bitmask(BOT_ID, Scope.channel("302"))
    assert not hidden & Permission.VIEW_CHANNEL


def test_member_overwrite_grants_access() -> None:
    snapshot = build_snapshot()
    snapshot["channels"][2]["overwrites"].append({"id": BOT_ID, "type": "member", "allow": int(Permission.VIEW_CHANNEL)})
    client = StateClient(snapshot)

    assert client.get_capability_bitmask(BOT_ID, Scope.channel("302")) & Permission.VIEW_CHANNEL


def test_unknown_channel_type_rejected() -> None:
    snapshot = build_snapshot()
    snapshot["channels"].append({"id": "399", "guild_id": "200", "type": "hologram"})

    with pytest.raises(ValueError):
        StateClient(snapshot)


def test_snapshot_loaded_from_yaml(tmp_path: Path) -> None:
    path = tmp_path / "state.yaml"
    path.write_text(yaml.safe_dump(build_snapshot(), allow_unicode=True), encoding="utf-8")

    client = StateClient.from_file(path)

    assert client.fetch_entity(EntityKind.GUILD, "200")["owner_id"] == "999"
    with pytest.raises(FileNotFoundError):
        load_snapshot(tmp_path / "missing.yaml")
