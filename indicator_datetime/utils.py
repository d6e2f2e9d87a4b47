"""Locale checks, location-string parsing and date format selection."""

from __future__ import annotations

import gettext
import locale
from collections.abc import Mapping
from datetime import datetime, time as dtime, timedelta
from enum import Enum

GETTEXT_DOMAIN = "ayatana-indicator-datetime"
TIMEZONE_NAME_KEY = "timezone-name"

_FORMATS_24H = ("%H", "%R", "%T", "%OH", "%k")


class DateProximity(Enum):
    """How close an event is to the current moment."""

    TODAY = "today"
    TOMORROW = "tomorrow"
    WEEK = "week"
    FAR = "far"


def is_locale_12h(t_fmt: str | None = None) -> bool:
    """Return True if the time format uses a 12-hour clock.

    With no argument, the current locale's time format is consulted.
    """
    if t_fmt is None:
        t_fmt = locale.nl_langinfo(locale.T_FMT)
    return not any(token in t_fmt for token in _FORMATS_24H)


def split_settings_location(location: str | None) -> tuple[str | None, str | None]:
    """Split "Zone/Id Human Name" into (zone, name).

    When no name is given, one is derived from the last component of the
    zone, with underscores turned into spaces.
    """
    if location is None:
        return None, None

    stripped = location.strip()
    zone, sep, rest = stripped.partition(" ")
    after = rest.strip() if sep else ""
    if after:
        return zone, after

    name = zone.rsplit("/", 1)[-1].replace("_", " ")
    return zone, name


def get_beautified_timezone_name(timezone: str | None, saved_location: str | None) -> str | None:
    """Prefer the user's saved name when it refers to the same zone."""
    zone, name = split_settings_location(timezone)
    saved_zone, saved_name = split_settings_location(saved_location)
    return saved_name if zone == saved_zone else name


def get_timezone_name(timezone: str | None, settings: Mapping[str, str]) -> str | None:
    """Beautify a timezone using the saved location held in settings."""
    return get_beautified_timezone_name(timezone, settings[TIMEZONE_NAME_KEY])


def get_date_proximity(now: datetime, time: datetime) -> DateProximity:
    """Classify how soon ``time`` happens relative to ``now``."""
    if time - now < timedelta(seconds=-1):
        return DateProximity.FAR

    if time.date() == now.date():
        return DateProximity.TODAY

    if (now + timedelta(days=1)).date() == time.date():
        return DateProximity.TOMORROW

    week = now + timedelta(days=6)
    week_bound = datetime.combine(week.date(), dtime(23, 59, 59, 900000))
    if now.tzinfo is not None:
        week_bound = week_bound.astimezone()
    if time <= week_bound:
        return DateProximity.WEEK

    return DateProximity.FAR


def time_gettext(msg: str) -> str:
    """Translate ``msg`` into the language of the LC_TIME locale."""
    time_locale = locale.setlocale(locale.LC_TIME)
    if not time_locale or time_locale in ("C", "POSIX") or time_locale.startswith("C."):
        return msg
    translation = gettext.translation(GETTEXT_DOMAIN, languages=[time_locale], fallback=True)
    return translation.gettext(msg)


_FULL_DAY_FORMATS = {
    DateProximity.TODAY: "Today",
    DateProximity.TOMORROW: "Tomorrow",
    DateProximity.WEEK: "%A",
    DateProximity.FAR: "%a %d %b",
}

_12H_FORMATS = {
    DateProximity.TODAY: "%l:%M %p",
    DateProximity.TOMORROW: "Tomorrow %l:%M %p",
    DateProximity.WEEK: "%a %l:%M %p",
    DateProximity.FAR: "%a %d %b %l:%M %p",
}

_24H_FORMATS = {
    DateProximity.TODAY: "%H:%M",
    DateProximity.TOMORROW: "Tomorrow %H:%M",
    DateProximity.WEEK: "%a %H:%M",
    DateProximity.FAR: "%a %d %b %H:%M",
}


def generate_full_format_string_at_time(
    now: datetime,
    then: datetime | None,
    then_end: datetime | None,
    twelve_hour: bool | None = None,
) -> str:
    """Pick the strftime format used to show an event starting at ``then``.

    ``twelve_hour`` defaults to the current locale's clock style.
    """
    if then is None:
        return ""

    full_day = then_end is not None and (then_end - then) >= timedelta(days=1)
    prox = get_date_proximity(now, then)

    if full_day:
        table = _FULL_DAY_FORMATS
    else:
        if twelve_hour is None:
            twelve_hour = is_locale_12h()
        table = _12H_FORMATS if twelve_hour else _24H_FORMATS

    result = time_gettext(table[prox])

    if then_end is not None and not full_day and now.utcoffset() != then.utcoffset():
        result += f" {then.tzname()}"

    return result