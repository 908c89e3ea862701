"""Line-delimited JSON-RPC transport."""

from discord_mcp.transport.stdio import SessionState, StdioSession
from discord_mcp.transport.writer import LineWriter

__all__ = ["LineWriter", "SessionState", "StdioSession"]
