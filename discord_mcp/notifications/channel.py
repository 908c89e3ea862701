from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from discord_mcp.protocol.envelope import Notification
from discord_mcp.transport.writer import LineWriter

__all__ = ["NotificationChannel"]

LOGGER = logging.getLogger(__name__)


class NotificationChannel:
    """Best-effort push of event notifications onto the shared output writer."""

    def __init__(
        self,
        writer: LineWriter,
        *,
        enabled: bool = False,
        allowed_events: Iterable[str] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        self._writer = writer
        self._enabled = bool(enabled)
        self._allowed = frozenset(allowed_events)
        self._logger = logger or LOGGER

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def allowed_events(self) -> frozenset[str]:
        return self._allowed

    def accepts(self, event_name: str) -> bool:
        return self._enabled and event_name in self._allowed

    def emit(self, event_name: str, payload: Mapping[str, Any] | None = None) -> bool:
        """Write ``event_name`` as a notification; return whether a line was written."""

        if not self._enabled:
            return False
        if event_name not in self._allowed:
            self._logger.debug("Dropping notification %s: not in allow-list", event_name)
            return False
        envelope = Notification(method=event_name, params=dict(payload) if payload is not None else None)
        try:
            self._writer.write(envelope.to_dict())
        except OSError as exc:
            self._logger.warning("Failed to deliver notification %s: %s", event_name, exc)
            return False
        return True
