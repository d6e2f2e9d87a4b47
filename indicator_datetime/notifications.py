"""Notification building and display through a notification server."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol

log = logging.getLogger(__name__)

CLOSE_REASON_EXPIRED = 1
CLOSE_REASON_DISMISSED = 2
CLOSE_REASON_CLOSED = 3
CLOSE_REASON_UNDEFINED = 4


@dataclass
class Builder:
    """Describes a notification; populate it, then pass it to Engine.show()."""

    HINT_SNAP = "x-lomiri-snap-decisions"
    HINT_NONSHAPED_ICON = "x-lomiri-non-shaped-icon"
    HINT_AFFIRMATIVE_HINT = "x-lomiri-private-affirmative-tint"
    HINT_REJECTION_TINT = "x-lomiri-private-rejection-tint"
    HINT_INTERACTIVE = "x-lomiri-switch-to-application"

    title: str = ""
    body: str = ""
    icon_name: str = ""
    start_time: int = 0
    # None means the notification server's default timeout
    timeout: timedelta | None = None
    hints: list[str] = field(default_factory=list)
    actions: list[tuple[str, str]] = field(default_factory=list)
    closed_callback: Callable[[str], None] | None = None
    timeout_callback: Callable[[], None] | None = None
    show_notification_bubble: bool = True
    post_to_messaging_menu: bool = False

    def add_hint(self, name: str) -> None:
        """Add a server-specific hint; adding the same hint twice is harmless."""
        if name not in self.hints:
            self.hints.append(name)

    def add_action(self, action: str, label: str) -> None:
        """Add an action button, kept in the order added."""
        self.actions.append((action, label))


class NotificationServer(Protocol):
    """The notification server operations the engine relies on."""

    def supports_actions(self) -> bool: ...

    def notify(self, app_name: str, notification: Builder) -> int: ...

    def close(self, key: int) -> None: ...

    def watch(
        self,
        on_action_invoked: Callable[[int, str], None],
        on_closed: Callable[[int, int], None],
    ) -> None: ...


@dataclass
class _Shown:
    builder: Builder
    action: str = ""


class Engine:
    """Shows notifications and tracks them until they close.

    Closing the engine's remaining notifications invokes their closed callbacks.
    """

    def __init__(self, app_name: str, server: NotificationServer) -> None:
        self.app_name = app_name
        self._server = server
        self._shown: dict[int, _Shown] = {}
        server.watch(self._on_action_invoked, self._on_closed)

    def __enter__(self) -> Engine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close_all()

    def supports_actions(self) -> bool:
        """Whether the server can show action buttons."""
        return bool(self._server.supports_actions())

    def show(self, builder: Builder) -> int:
        """Show a notification; return its key, or zero on failure."""
        try:
            key = self._server.notify(self.app_name, builder)
        except Exception as error:  # server failures are reported, not fatal
            log.warning("Unable to show notification: %s", error)
            return 0
        if key:
            self._shown[key] = _Shown(builder)
        return key or 0

    def close(self, key: int) -> None:
        """Close the notification with ``key`` and run its closed callback."""
        entry = self._shown.pop(key, None)
        if entry is None:
            return
        try:
            self._server.close(key)
        except Exception as error:  # server failures are reported, not fatal
            log.warning("Unable to close notification %d: %s", key, error)
        self._finish(entry, CLOSE_REASON_CLOSED)

    def close_all(self) -> None:
        """Close every notification still showing."""
        for key in list(self._shown):
            self.close(key)

    def _on_action_invoked(self, key: int, action: str) -> None:
        entry = self._shown.get(key)
        if entry is not None:
            entry.action = action

    def _on_closed(self, key: int, reason: int) -> None:
        entry = self._shown.pop(key, None)
        if entry is not None:
            self._finish(entry, reason)

    @staticmethod
    def _finish(entry: _Shown, reason: int) -> None:
        builder = entry.builder
        if reason == CLOSE_REASON_EXPIRED and builder.timeout_callback is not None:
            builder.timeout_callback()
        elif builder.closed_callback is not None:
            builder.closed_callback(entry.action)