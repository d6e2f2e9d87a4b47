"""Timezone sources: timedated, geoclue, and a combined live view."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol

from .observable import Property

log = logging.getLogger(__name__)

TIMEDATE1_BUSNAME = "org.freedesktop.timedate1"
TIMEDATE1_PATH = "/org/freedesktop/timedate1"
TIMEDATE1_IFACE = "org.freedesktop.timedate1"
TIMEDATE1_TIMEZONE_PROPERTY = "Timezone"
PROPERTIES_IFACE = "org.freedesktop.DBus.Properties"
PROPERTIES_CHANGED_SIGNAL = "PropertiesChanged"
PROPERTIES_GET_METHOD = "Get"
FALLBACK_TIMEZONE = "Etc/Utc"

GEOCLUE_BUS_NAME = "org.freedesktop.Geoclue.Master"
GEOCLUE_MASTER_PATH = "/org/freedesktop/Geoclue/Master"
GEOCLUE_MASTER_IFACE = "org.freedesktop.Geoclue.Master"
GEOCLUE_CLIENT_IFACE = "org.freedesktop.Geoclue.MasterClient"
GEOCLUE_ADDRESS_IFACE = "org.freedesktop.Geoclue.Address"
GEOCLUE_REQUIREMENTS = (2, 0, False, 1023)


class BusConnection(Protocol):
    """The message-bus operations the timezone sources rely on."""

    def call(
        self,
        bus_name: str,
        object_path: str,
        interface: str,
        method: str,
        args: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...]: ...

    def subscribe(
        self,
        sender: str,
        interface: str,
        signal: str,
        object_path: str,
        callback: Callable[[tuple[Any, ...]], None],
    ) -> int: ...

    def unsubscribe(self, subscription_id: int) -> None: ...

    def watch_name(
        self,
        name: str,
        on_appeared: Callable[[str], None],
        on_vanished: Callable[[str], None],
    ) -> int: ...

    def unwatch_name(self, watch_id: int) -> None: ...


class Timezone:
    """Something that knows a timezone identifier."""

    def __init__(self, zone: str = "") -> None:
        self.timezone: Property[str] = Property(zone)


class TimedatedTimezone(Timezone):
    """Follows the system timezone published by timedate1."""

    def __init__(self, bus: BusConnection) -> None:
        super().__init__(FALLBACK_TIMEZONE)
        self._bus = bus
        self._closed = False
        self._subscription_id = bus.subscribe(
            TIMEDATE1_IFACE,
            PROPERTIES_IFACE,
            PROPERTIES_CHANGED_SIGNAL,
            TIMEDATE1_PATH,
            self._on_properties_changed_signal,
        )
        self._watch_id = bus.watch_name(
            TIMEDATE1_BUSNAME, self.on_name_appeared, self._on_name_vanished
        )

    def __enter__(self) -> TimedatedTimezone:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def on_name_appeared(self, name: str) -> None:
        """Handle the timedate1 service appearing on the bus."""
        log.debug("%s appeared on bus", name)
        self.ask_for_timezone()

    @staticmethod
    def _on_name_vanished(name: str) -> None:
        log.debug("%s not present on bus", name)

    def _on_properties_changed_signal(self, parameters: tuple[Any, ...]) -> None:
        _interface, changed, invalidated = parameters
        self.on_properties_changed(changed, invalidated)

    def on_properties_changed(self, changed: Mapping[str, Any], invalidated: Iterable[str]) -> None:
        """React to timedate1's PropertiesChanged signal."""
        if self._closed:
            return
        if TIMEDATE1_TIMEZONE_PROPERTY in changed:
            zone = changed[TIMEDATE1_TIMEZONE_PROPERTY]
            if zone is not None:
                self._set_timezone(zone)
            else:
                log.warning("no timezone found")
        elif TIMEDATE1_TIMEZONE_PROPERTY in invalidated:
            self.ask_for_timezone()

    def ask_for_timezone(self) -> None:
        """Query timedate1 for its current timezone."""
        if self._closed:
            return
        try:
            result = self._bus.call(
                TIMEDATE1_BUSNAME,
                TIMEDATE1_PATH,
                PROPERTIES_IFACE,
                PROPERTIES_GET_METHOD,
                (TIMEDATE1_IFACE, TIMEDATE1_TIMEZONE_PROPERTY),
            )
        except Exception as error:  # bus failures are reported, not fatal
            log.warning("Couldn't get timezone: %s", error)
            return
        if result is None:
            return
        zone = result[0]
        if zone is not None:
            self._set_timezone(zone)
        else:
            log.warning("no timezone found")

    def _set_timezone(self, zone: str) -> None:
        if not zone:
            log.critical("refusing to set an empty timezone")
            return
        log.debug("set timezone: '%s'", zone)
        self.timezone.value = zone

    def close(self) -> None:
        """Stop watching the bus."""
        if self._closed:
            return
        self._closed = True
        self._bus.unwatch_name(self._watch_id)
        self._bus.unsubscribe(self._subscription_id)


class GeoclueTimezone(Timezone):
    """Follows the timezone of the address reported by geoclue."""

    def __init__(self, bus: BusConnection) -> None:
        super().__init__()
        self._bus = bus
        self._closed = False
        self._client_path = ""
        self._subscriptions: list[int] = []
        self.start()

    def __enter__(self) -> GeoclueTimezone:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _call(
        self, path: str, interface: str, method: str, args: tuple[Any, ...] | None = None
    ) -> tuple[Any, ...] | None:
        if self._closed:
            return None
        try:
            return self._bus.call(GEOCLUE_BUS_NAME, path, interface, method, args)
        except Exception as error:  # bus failures are reported, not fatal
            log.warning("%s failed: %s", method, error)
            return None

    def start(self) -> None:
        """Create a geoclue client and begin tracking its address."""
        created = self._call(GEOCLUE_MASTER_PATH, GEOCLUE_MASTER_IFACE, "Create")
        if created is None:
            return
        self._client_path = created[0]

        self._subscriptions.append(
            self._bus.subscribe(
                GEOCLUE_BUS_NAME,
                GEOCLUE_ADDRESS_IFACE,
                "AddressChanged",
                self._client_path,
                self.set_timezone_from_address,
            )
        )

        if self._call(
            self._client_path, GEOCLUE_CLIENT_IFACE, "SetRequirements", GEOCLUE_REQUIREMENTS
        ) is None:
            return
        if self._call(self._client_path, GEOCLUE_CLIENT_IFACE, "AddressStart") is None:
            return
        address = self._call(self._client_path, GEOCLUE_ADDRESS_IFACE, "GetAddress")
        if address is not None:
            self.set_timezone_from_address(address)

    def set_timezone_from_address(self, address: tuple[Any, ...]) -> None:
        """Take the timezone from a (timestamp, fields, accuracy) address."""
        if (
            not isinstance(address, (tuple, list))
            or len(address) != 3
            or not isinstance(address[1], Mapping)
        ):
            log.critical("unexpected address value: %r", address)
            return
        zone = address[1].get("timezone")
        if zone is not None:
            log.debug("from geoclue, setting timezone to '%s'", zone)
            self.timezone.value = zone

    def close(self) -> None:
        """Drop signal subscriptions and ignore further replies."""
        if self._closed:
            return
        self._closed = True
        for subscription_id in self._subscriptions:
            self._bus.unsubscribe(subscription_id)
        self._subscriptions.clear()


class LiveTimezones(Timezone):
    """Combines the primary timezone with an optional detected one."""

    def __init__(
        self,
        settings: Any,
        primary_timezone: Timezone,
        geo_factory: Callable[[], Timezone],
    ) -> None:
        super().__init__()
        self.timezones: Property[frozenset[str]] = Property(frozenset())
        self._settings = settings
        self._primary = primary_timezone
        self._geo_factory = geo_factory
        self._geo: Timezone | None = None

        self._primary.timezone.changed.connect(lambda _zone: self.update_timezones())
        self._settings.show_detected_location.changed.connect(
            lambda _enabled: self.update_geolocation()
        )
        self.update_geolocation()
        self.update_timezones()

    def update_geolocation(self) -> None:
        """Start or stop geolocation according to the settings."""
        if self._geo is not None:
            close = getattr(self._geo, "close", None)
            if close is not None:
                close()
            self._geo = None

        if self._settings.show_detected_location.value:
            geo = self._geo_factory()
            geo.timezone.changed.connect(lambda _zone: self.update_timezones())
            self._geo = geo

        self.update_timezones()

    def update_timezones(self) -> None:
        """Recompute the current timezone and the set of known zones."""
        primary = self._primary.timezone.value
        detected = self._geo.timezone.value if self._geo is not None else ""

        self.timezone.value = primary or detected
        self.timezones.value = frozenset(zone for zone in (primary, detected) if zone)