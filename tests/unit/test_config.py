from __future__ import annotations

import stat
from pathlib import Path

import pytest
import yaml

from discord_mcp.config import Config, ConfigError, apply_env, load_config, save_config


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.yaml")

    assert config == Config()
    assert config.discord.max_message_length == 2000
    assert config.events.enabled is False


def test_load_yaml(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "discord": {"allowed_guilds": [200, "250"], "rate_limit_per_minute": 10},
                "server": {"log_level": "WARN"},
                "events": {"enabled": True, "allowed_events": ["discord/messageCreated"]},
            }
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.discord.allowed_guilds == ("200", "250")
    assert config.discord.rate_limit_per_minute == 10
    assert config.server.log_level == "warning"
    assert config.events.allowed_events == ("discord/messageCreated",)


@pytest.mark.parametrize(
    "content",
    [
        "discord: [unclosed",
        "- just\n- a list\n",
        "mcp:\n  version: not-a-version\n",
        "discord:\n  max_message_length: 0\n",
        "events:\n  allowed_events: [discord/typing]\n",
        "surprise: true\n",
    ],
)
def test_invalid_configuration(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)


def test_environment_overrides() -> None:
    environ = {
        "DISCORD_GUILD_ALLOWLIST": "200, 250,",
        "DISCORD_STATE_FILE": "/tmp/state.yaml",
        "LOG_LEVEL": "debug",
        "DISCORD_EVENTS_ENABLED": "yes",
    }

    config = apply_env(Config(), environ)

    assert config.discord.allowed_guilds == ("200", "250")
    assert config.discord.state_file == Path("/tmp/state.yaml")
    assert config.server.log_level == "debug"
    assert config.events.enabled is True


def test_environment_boolean_must_parse() -> None:
    with pytest.raises(ConfigError):
        apply_env(Config(), {"DISCORD_EVENTS_ENABLED": "maybe"})


def test_debug_flag_forces_debug_level() -> None:
    config = Config.from_mapping({"server": {"log_level": "error", "debug": True}})

    assert config.server.effective_level == 10


def test_save_config_round_trip_is_owner_only(tmp_path: Path) -> None:
    config = Config.from_mapping({"discord": {"allowed_guilds": ["200"]}, "mcp": {"version": "2.1.0"}})

    path = save_config(config, tmp_path / "nested" / "config.yaml")

    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert load_config(path) == config
