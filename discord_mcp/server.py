"""Wire the session, gate, registry and notification channel from a :class:`Config`."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TextIO

from discord_mcp.audit import JsonLogWriter
from discord_mcp.config import Config
from discord_mcp.notifications.channel import NotificationChannel
from discord_mcp.notifications.dispatcher import EventDispatcher
from discord_mcp.permissions.gate import PermissionGate
from discord_mcp.registry import ToolRegistry
from discord_mcp.remote.state import StateClient
from discord_mcp.tools import build_registry
from discord_mcp.tools.base import ToolContext
from discord_mcp.transport.stdio import StdioSession
from discord_mcp.transport.writer import LineWriter

__all__ = ["DiscordMcpServer"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class DiscordMcpServer:
    """Assembled server components sharing one output writer."""

    config: Config
    client: StateClient
    writer: LineWriter
    registry: ToolRegistry
    gate: PermissionGate
    notifications: NotificationChannel
    session: StdioSession
    audit_log: JsonLogWriter | None = None

    @classmethod
    def create(
        cls,
        config: Config,
        *,
        stdout: TextIO | None = None,
        client: StateClient | None = None,
    ) -> DiscordMcpServer:
        if client is None:
            settings = config.discord
            kwargs = {
                "allowed_guilds": settings.allowed_guilds,
                "rate_limit_per_minute": settings.rate_limit_per_minute,
            }
            if settings.state_file is not None:
                client = StateClient.from_file(settings.state_file, **kwargs)
            else:
                LOGGER.warning("No state file configured; starting with an empty guild state")
                client = StateClient(None, **kwargs)

        writer = LineWriter(stdout if stdout is not None else sys.stdout)
        registry = build_registry()
        gate = PermissionGate(client)
        notifications = NotificationChannel(
            writer,
            enabled=config.events.enabled,
            allowed_events=config.events.allowed_events,
        )
        client.subscribe(EventDispatcher(notifications))

        audit_log = None
        if config.server.log_dir is not None:
            audit_log = JsonLogWriter.in_directory(config.server.log_dir)

        context = ToolContext(
            client=client,
            gate=gate,
            max_message_length=config.discord.max_message_length,
        )
        session = StdioSession(
            registry,
            context,
            writer,
            server_name=config.mcp.server_name,
            server_version=config.mcp.version,
            audit_log=audit_log,
        )
        LOGGER.info(
            "Server %s %s ready with %d tools",
            config.mcp.server_name,
            config.mcp.version,
            len(registry),
        )
        return cls(
            config=config,
            client=client,
            writer=writer,
            registry=registry,
            gate=gate,
            notifications=notifications,
            session=session,
            audit_log=audit_log,
        )

    def run(self, stdin: Iterable[str] | None = None) -> None:
        try:
            self.session.serve_forever(stdin if stdin is not None else sys.stdin)
        finally:
            self.client.disconnect()
            if self.audit_log is not None:
                self.audit_log.close()
