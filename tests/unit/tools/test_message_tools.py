from __future__ import annotations

import pytest

from discord_mcp.remote import EntityKind, RemoteNotFound
from discord_mcp.remote.state import StateClient
from discord_mcp.tools.messages import parse_emoji
from discord_mcp.transport import StdioSession
from discord_mcp.validation import ParameterValidationError
from tests.helpers.rpc import call_tool, initialized_session, payload


@pytest.fixture
def rpc(client: StateClient) -> StdioSession:
    return initialized_session(client)


@pytest.fixture
def moderator_rpc(moderator_client: StateClient) -> StdioSession:
    return initialized_session(moderator_client)


def test_send_message(rpc: StdioSession, client: StateClient) -> None:
    result = call_tool(rpc, "send_message", {"channel_id": "300", "content": "Hello **world**"})

    assert "isError" not in result
    assert result["content"][0]["text"] == "Message sent successfully to <#300>"
    data = payload(result)
    assert data["content"] == "Hello **world**"
    assert data["has_reply"] is False
    assert data["message_url"] == f"https://discord.com/channels/200/300/{data['message_id']}"
    assert client.fetch_entity(EntityKind.MESSAGE, data["message_id"])["author_id"] == "100"


def test_send_reply_to_missing_message(rpc: StdioSession) -> None:
    result = call_tool(rpc, "send_message", {"channel_id": "300", "content": "re", "reply_to": "777"})

    assert result["isError"] is True
    assert payload(result)["error_type"] == "discord_api"


def test_send_tts_requires_capability(rpc: StdioSession) -> None:
    result = call_tool(rpc, "send_message", {"channel_id": "300", "content": "loud", "tts": True})

    assert result["isError"] is True
    assert payload(result)["missing_capability"] == "SEND_TTS_MESSAGES"


def test_send_to_hidden_channel_mentions_viewing(rpc: StdioSession) -> None:
    result = call_tool(rpc, "send_message", {"channel_id": "302", "content": "psst"})

    assert result["isError"] is True
    assert "view this channel" in result["content"][0]["text"]


def test_send_to_direct_message_channel(rpc: StdioSession) -> None:
    result = call_tool(rpc, "send_message", {"channel_id": "310", "content": "hi there"})

    assert "isError" not in result
    assert payload(result)["message_url"].startswith("https://discord.com/channels/@me/310/")


def test_embed_validation_reports_nested_field(rpc: StdioSession) -> None:
    embeds = [{"title": "ok"}, {"fields": [{"name": "n"}]}]

    result = call_tool(rpc, "send_message", {"channel_id": "300", "content": "x", "embeds": embeds})

    assert result["isError"] is True
    assert payload(result)["field"] == "embeds[1].fields[0].value"


def test_get_channel_messages(rpc: StdioSession) -> None:
    result = call_tool(rpc, "get_channel_messages", {"channel_id": "300", "limit": 2})

    data = payload(result)
    assert data["message_count"] == 2
    assert [message["id"] for message in data["messages"]] == ["402", "401"]
    assert data["messages"][0]["author"] == {"id": "101", "username": "alice", "bot": False}
    assert data["query"]["limit"] == 2


def test_get_channel_messages_rejects_two_cursors(rpc: StdioSession) -> None:
    result = call_tool(rpc, "get_channel_messages", {"channel_id": "300", "before": "402", "after": "400"})

    assert result["isError"] is True
    assert payload(result)["kind"] == "conditional_constraint"


def test_edit_own_message(rpc: StdioSession) -> None:
    result = call_tool(rpc, "edit_message", {"channel_id": "300", "message_id": "401", "content": "edited"})

    data = payload(result)
    assert data["new_content"] == "edited"
    assert data["edited_timestamp"]


def test_edit_foreign_message_denied(rpc: StdioSession) -> None:
    result = call_tool(rpc, "edit_message", {"channel_id": "300", "message_id": "400", "content": "edited"})

    assert result["isError"] is True
    assert payload(result)["missing_capability"] == "MANAGE_MESSAGES"


def test_edit_message_in_wrong_channel(rpc: StdioSession) -> None:
    result = call_tool(rpc, "edit_message", {"channel_id": "303", "message_id": "401", "content": "edited"})

    assert result["isError"] is True
    assert payload(result)["details"]["code"] == "NOT_FOUND"


def test_moderator_deletes_foreign_message(moderator_rpc: StdioSession, moderator_client: StateClient) -> None:
    result = call_tool(
        moderator_rpc,
        "delete_message",
        {"channel_id": "300", "message_id": "400", "reason": "spam"},
    )

    data = payload(result)
    assert data["deleted_message_id"] == "400"
    assert data["author_username"] == "alice"
    assert data["deletion_reason"] == "spam"
    with pytest.raises(RemoteNotFound):
        moderator_client.fetch_entity(EntityKind.MESSAGE, "400")


def test_add_unicode_reaction(rpc: StdioSession) -> None:
    result = call_tool(rpc, "add_reaction", {"channel_id": "300", "message_id": "400", "emoji": "👍"})

    data = payload(result)
    assert data["formatted_emoji"] == "👍"
    assert data["is_custom_emoji"] is False


def test_add_custom_reaction_needs_external_emoji(rpc: StdioSession) -> None:
    result = call_tool(rpc, "add_reaction", {"channel_id": "300", "message_id": "400", "emoji": "<:party:123>"})

    assert result["isError"] is True
    assert payload(result)["missing_capability"] == "USE_EXTERNAL_EMOJIS"


def test_add_custom_reaction_in_direct_message_is_denied(rpc: StdioSession) -> None:
    result = call_tool(rpc, "add_reaction", {"channel_id": "310", "message_id": "410", "emoji": "<a:dance:42>"})

    assert result["isError"] is True


@pytest.mark.parametrize(
    ("emoji", "expected"),
    [
        ("🎉", {"id": None, "name": "🎉", "animated": False}),
        ("<:party:123>", {"id": "123", "name": "party", "animated": False}),
        ("<a:dance:42>", {"id": "42", "name": "dance", "animated": True}),
        ("<>", {"id": None, "name": "<>", "animated": False}),
    ],
)
def test_parse_emoji(emoji: str, expected: dict) -> None:
    assert parse_emoji(emoji) == expected


def test_parse_emoji_rejects_malformed_custom_emoji() -> None:
    with pytest.raises(ParameterValidationError) as excinfo:
        parse_emoji("<party>")

    assert excinfo.value.failure.field == "emoji"
