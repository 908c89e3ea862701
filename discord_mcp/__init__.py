"""Discord MCP bridge package."""

from discord_mcp.cli import main
from discord_mcp.config import Config, load_config
from discord_mcp.server import DiscordMcpServer
from discord_mcp.transport.stdio import SessionState, StdioSession

__all__ = ["Config", "DiscordMcpServer", "SessionState", "StdioSession", "load_config", "main"]
