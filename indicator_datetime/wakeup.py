"""Wakeup timers: one driven by an in-process scheduler, one by the power daemon."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

from .observable import Signal
from .timezones import BusConnection
from .utils import GETTEXT_DOMAIN

log = logging.getLogger(__name__)

BUS_SCREEN_NAME = "com.canonical.Unity.Screen"
BUS_SCREEN_PATH = "/com/canonical/Unity/Screen"
BUS_SCREEN_INTERFACE = "com.canonical.Unity.Screen"

BUS_POWERD_NAME = "com.lomiri.Repowerd"
BUS_POWERD_PATH = "/com/lomiri/Repowerd"
BUS_POWERD_INTERFACE = "com.lomiri.Repowerd"

BUS_HAPTIC_NAME = "com.lomiri.hfd"
BUS_HAPTIC_PATH = "/com/lomiri/hfd"
BUS_HAPTIC_INTERFACE = "com.lomiri.hfd.Vibrator"

_UINT64_MODULUS = 1 << 64


class ServiceUnknownError(Exception):
    """Raised by a bus connection when the called service is not on the bus."""


class TimerHandle(Protocol):
    """A pending scheduled call that can be cancelled."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback once after a delay in seconds.

    An asyncio event loop satisfies this protocol.
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Scheduler backed by daemon ``threading.Timer`` objects."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


def _local_now() -> datetime:
    return datetime.now().astimezone()


class MainloopWakeupTimer:
    """A one-shot timer that emits ``timeout`` when the wakeup time is reached.

    ``clock`` returns the current time; it must agree with the wakeup times
    given to it about whether datetimes are timezone-aware.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.timeout = Signal()
        self._clock = clock or _local_now
        self._scheduler = scheduler or ThreadingScheduler()
        self._handle: TimerHandle | None = None
        self._wakeup_time: datetime | None = None

    def __enter__(self) -> MainloopWakeupTimer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()

    def set_wakeup_time(self, wakeup_time: datetime | None) -> None:
        """Schedule the timeout for ``wakeup_time``, replacing any earlier one."""
        self._wakeup_time = wakeup_time
        self._rebuild_timer()

    def _rebuild_timer(self) -> None:
        self.cancel()

        if self._wakeup_time is None:
            log.critical("no wakeup time set")
            return

        difference = self._wakeup_time - self._clock()
        difference_usec = difference // timedelta(microseconds=1)
        interval_msec = abs(difference_usec) // 1000
        log.debug(
            "setting wakeup timer to kick at %s, which is in %d seconds",
            self._wakeup_time.strftime("%F %T"),
            interval_msec // 1000,
        )
        self._handle = self._scheduler.call_later(interval_msec / 1000, self._on_timeout)

    def _on_timeout(self) -> None:
        self.cancel()
        self.timeout.emit()

    def cancel(self) -> None:
        """Drop the pending timer, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class PowerdWakeupTimer:
    """Asks the power daemon for a hardware wakeup at the requested time."""

    def __init__(self, bus: BusConnection | None = None) -> None:
        self.timeout = Signal()
        self._wakeup_time: datetime | None = None
        self._bus: BusConnection | None = None
        self._cookie = ""
        self._subscription_id: int | None = None
        self._watch_id: int | None = None
        self._closed = False
        if bus is not None:
            self.on_bus_ready(bus)

    def __enter__(self) -> PowerdWakeupTimer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def set_wakeup_time(self, wakeup_time: datetime | None) -> None:
        """Replace the requested hardware wakeup with one at ``wakeup_time``."""
        self._wakeup_time = wakeup_time
        self._update_cookie()

    def on_bus_ready(self, bus: BusConnection | None) -> None:
        """Start listening to the power daemon on ``bus``."""
        if self._closed:
            return
        if bus is None:
            log.warning("Couldn't get system bus")
            return

        self._bus = bus
        self._subscription_id = bus.subscribe(
            BUS_POWERD_NAME,
            BUS_POWERD_INTERFACE,
            "Wakeup",
            BUS_POWERD_PATH,
            lambda _parameters: self.on_wakeup_signal(BUS_POWERD_NAME),
        )
        self._watch_id = bus.watch_name(
            BUS_POWERD_NAME,
            lambda name: self.on_name_appeared(name, ""),
            lambda _name: None,
        )

    def on_wakeup_signal(self, sender: str) -> None:
        """Handle the daemon's hardware wakeup broadcast."""
        log.debug("%s broadcast a hw wakeup signal", sender)
        self.timeout.emit()

    def on_name_appeared(self, name: str, owner: str = "") -> None:
        """Request a fresh wakeup once the daemon is on the bus."""
        log.debug("%s owns %s now; let's ask for a new cookie", owner, name)
        self._update_cookie()

    def _update_cookie(self) -> None:
        if self._bus is None or self._closed:
            return

        self._clear_current_cookie()

        if self._wakeup_time is None:
            return

        log.debug(
            "calling %s::requestWakeup(%s)",
            BUS_POWERD_NAME,
            self._wakeup_time.strftime("%F %T"),
        )
        unix_time = int(self._wakeup_time.timestamp()) % _UINT64_MODULUS
        try:
            reply = self._bus.call(
                BUS_POWERD_NAME,
                BUS_POWERD_PATH,
                BUS_POWERD_INTERFACE,
                "requestWakeup",
                (GETTEXT_DOMAIN, unix_time),
            )
        except ServiceUnknownError:
            # no power daemon on the desktop, and no hardware wakeups needed there
            log.debug("%s is not available", BUS_POWERD_NAME)
            return
        except Exception as error:  # bus failures are reported, not fatal
            log.warning("Could not set hardware wakeup: %s", error)
            return

        cookie = reply[0] if reply else None
        log.debug("%s::requestWakeup() sent cookie %s", BUS_POWERD_NAME, cookie)
        self._cookie = cookie if cookie is not None else ""

    def _clear_current_cookie(self) -> None:
        if not self._cookie or self._bus is None:
            return
        log.debug("calling %s::clearWakeup(%s)", BUS_POWERD_NAME, self._cookie)
        try:
            self._bus.call(
                BUS_POWERD_NAME,
                BUS_POWERD_PATH,
                BUS_POWERD_INTERFACE,
                "clearWakeup",
                (self._cookie,),
            )
        except Exception as error:  # bus failures are reported, not fatal
            log.warning("Couldn't clear hardware wakeup: %s", error)
        self._cookie = ""

    def close(self) -> None:
        """Clear any pending wakeup and stop listening to the bus."""
        if self._closed:
            return
        self._clear_current_cookie()
        self._closed = True
        if self._bus is not None:
            if self._subscription_id is not None:
                self._bus.unsubscribe(self._subscription_id)
                self._subscription_id = None
            if self._watch_id is not None:
                self._bus.unwatch_name(self._watch_id)
                self._watch_id = None