"""Shows alarm and calendar-event notifications with sound and haptics."""

from __future__ import annotations

import gettext
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from .notifications import Builder, Engine
from .sound import SoundBuilder
from .utils import GETTEXT_DOMAIN, is_locale_12h

log = logging.getLogger(__name__)

ALARM_DEFAULT_SOUND = "/usr/share/sounds/ayatana/ringtones/Alarm clock.ogg"
CALENDAR_DEFAULT_SOUND = "/usr/share/sounds/ayatana/ringtones/Marimbach.ogg"

ACTION_NONE = "none"
ACTION_SNOOZE = "snooze"
ACTION_SHOW_APP = "show-app"

_URI_PROTOCOL = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]+:")


def _(msg: str) -> str:
    return gettext.dgettext(GETTEXT_DOMAIN, msg)


class AppointmentType(Enum):
    EVENT = "event"
    ALARM = "alarm"


@dataclass
class Alarm:
    """One reminder of an appointment."""

    text: str = ""
    audio_url: str = ""
    time: datetime | None = None


@dataclass
class Appointment:
    """A calendar event or an alarm clock entry."""

    summary: str = ""
    begin: datetime = field(default_factory=datetime.now)
    end: datetime | None = None
    type: AppointmentType = AppointmentType.EVENT
    uid: str = ""
    color: str = ""
    alarms: list[Alarm] = field(default_factory=list)

    @property
    def is_alarm(self) -> bool:
        return self.type is AppointmentType.ALARM


class Response(Enum):
    NONE = "none"
    SNOOZE = "snooze"
    SHOW_APP = "show-app"


@dataclass
class SnapSettings:
    """The user settings that shape how a notification is presented."""

    cal_notification_enabled: bool = True
    cal_notification_sounds: bool = True
    cal_notification_vibrations: bool = True
    cal_notification_bubbles: bool = True
    cal_notification_list: bool = True
    vibrate_silent_mode: bool = False
    alarm_haptic: str = "pulse"
    alarm_volume: int = 50
    alarm_duration: int = 30
    alarm_sound: str = ALARM_DEFAULT_SOUND
    calendar_sound: str = CALENDAR_DEFAULT_SOUND


class AccountsSound(Protocol):
    """The user's system sound preferences."""

    silent_mode: bool
    other_vibrate: bool


def choose_alarm_uri(appointment: Appointment, alarm: Alarm, settings: SnapSettings) -> str:
    """Return the first usable sound as a URI, or "" if none is usable."""
    if appointment.is_alarm:
        candidates = (alarm.audio_url, settings.alarm_sound, ALARM_DEFAULT_SOUND)
    else:
        candidates = (alarm.audio_url, settings.calendar_sound, CALENDAR_DEFAULT_SOUND)

    for candidate in candidates:
        if not candidate:
            continue
        if _URI_PROTOCOL.match(candidate):
            return candidate
        path = Path(candidate)
        if path.exists():
            return path.absolute().as_uri()
    return ""


def response_for_action(appointment: Appointment, action: str) -> Response:
    """Map the action a notification closed with to the user's response."""
    if action == ACTION_SNOOZE or (appointment.is_alarm and not action):
        return Response.SNOOZE
    if action == ACTION_SHOW_APP:
        return Response.SHOW_APP
    return Response.NONE


def _format_time(moment: datetime, fmt: str) -> str:
    hour12 = moment.hour % 12 or 12
    return moment.strftime(fmt.replace("%l", f"{hour12:>2}"))


def _release(*resources: Any) -> None:
    for resource in resources:
        close = getattr(resource, "close", None)
        if callable(close):
            close()


ResponseFunc = Callable[[Appointment, Alarm, Response], None]


class Snap:
    """Presents an appointment's alarm to the user."""

    def __init__(
        self,
        engine: Engine,
        sound_builder: SoundBuilder,
        settings: SnapSettings,
        accounts_sound: AccountsSound | None = None,
        awake_factory: Callable[[str], Any] | None = None,
        haptic_factory: Callable[[bool], Any] | None = None,
        twelve_hour: bool | None = None,
    ) -> None:
        self._engine = engine
        self._sound_builder = sound_builder
        self._settings = settings
        self._accounts_sound = accounts_sound
        self._awake_factory = awake_factory
        self._haptic_factory = haptic_factory
        self._twelve_hour = twelve_hour
        self._notifications: set[int] = set()

    def __enter__(self) -> Snap:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _silent_mode(self) -> bool:
        return self._accounts_sound is not None and bool(self._accounts_sound.silent_mode)

    def _should_vibrate(self) -> bool:
        return self._accounts_sound is not None and bool(self._accounts_sound.other_vibrate)

    def __call__(self, appointment: Appointment, alarm: Alarm, on_response: ResponseFunc) -> None:
        """Show a notification for ``alarm``; report the user's answer to ``on_response``."""
        s = self._settings
        is_alarm = appointment.is_alarm

        if not is_alarm and not s.cal_notification_enabled:
            log.debug("Skipping disabled calendar event '%s' notification", appointment.summary)
            return

        # alarms need dismissing by hand; calendar events neither wait nor loop
        interactive = is_alarm and self._engine.supports_actions()

        awake = None
        if (is_alarm or s.cal_notification_bubbles or s.cal_notification_list) and self._awake_factory:
            awake = self._awake_factory(self._engine.app_name)

        # calendar events are muted in silent mode; alarm clocks never are
        sound = None
        if is_alarm or (s.cal_notification_sounds and not self._silent_mode()):
            sound = self._sound_builder.create(
                "alarm" if is_alarm else "alert",
                choose_alarm_uri(appointment, alarm, s),
                s.alarm_volume,
                interactive,
            )

        haptic = None
        if self._should_vibrate() and (is_alarm or s.cal_notification_vibrations):
            if not self._silent_mode() or s.vibrate_silent_mode:
                if s.alarm_haptic == "pulse" and self._haptic_factory is not None:
                    haptic = self._haptic_factory(is_alarm)

        b = Builder()
        b.body = appointment.summary
        b.icon_name = "alarm-clock" if is_alarm else "calendar-app"
        b.add_hint(Builder.HINT_NONSHAPED_ICON)
        b.start_time = int(appointment.begin.timestamp())

        twelve_hour = self._twelve_hour if self._twelve_hour is not None else is_locale_12h()
        timefmt = _("%a, %l:%M %p") if twelve_hour else _("%a, %H:%M")
        timestr = _format_time(appointment.begin, timefmt)
        titlefmt = _("Alarm %s") if is_alarm else _("Event %s")
        b.title = titlefmt % timestr
        b.timeout = timedelta(minutes=s.alarm_duration)

        if interactive:
            b.add_hint(Builder.HINT_SNAP)
            b.add_hint(Builder.HINT_AFFIRMATIVE_HINT)
            b.add_action(ACTION_NONE, _("OK"))
            b.add_action(ACTION_SNOOZE, _("Snooze"))
        else:
            b.add_hint(Builder.HINT_INTERACTIVE)
            b.add_action(ACTION_SHOW_APP, _("OK"))

        # sound, haptic and awake live as long as the notification does
        def on_closed(action: str) -> None:
            try:
                on_response(appointment, alarm, response_for_action(appointment, action))
            finally:
                _release(sound, haptic, awake)

        b.closed_callback = on_closed

        if not is_alarm:
            def on_timeout() -> None:
                try:
                    on_response(appointment, alarm, Response.SHOW_APP)
                finally:
                    _release(sound, haptic, awake)

            b.timeout_callback = on_timeout

        b.show_notification_bubble = is_alarm or s.cal_notification_bubbles
        b.post_to_messaging_menu = is_alarm or s.cal_notification_list

        key = self._engine.show(b)
        if key:
            self._notifications.add(key)
        else:
            _release(sound, haptic, awake)

    def close(self) -> None:
        """Close every notification this snap has shown."""
        for key in sorted(self._notifications):
            self._engine.close(key)
        self._notifications.clear()