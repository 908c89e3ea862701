"""Asynchronous event notifications."""

from discord_mcp.notifications.channel import NotificationChannel
from discord_mcp.notifications.dispatcher import KNOWN_EVENTS, EventDispatcher

__all__ = ["KNOWN_EVENTS", "EventDispatcher", "NotificationChannel"]
