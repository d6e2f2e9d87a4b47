# indicator_datetime

This library holds the logic behind a date-and-time indicator: format
selection, timezone tracking, wakeup timers, alarm sounds and alarm
notifications. It uses only the standard library. It does not talk to a
message bus, an audio system or a notification server itself. You pass in
objects that do that work, and the library drives them.

## Modules

- `indicator_datetime.utils`
  - `generate_full_format_string_at_time(now, then, then_end, twelve_hour=None)`
    returns the strftime format to use for an upcoming event. Examples:
    `"Today"`, `"%A"`, `"%H:%M"`, `"Tomorrow %l:%M %p"`, `"%a %d %b %H:%M"`.
    If the event is not a full-day event and its UTC offset differs from
    `now`, the timezone abbreviation is appended.
  - `get_date_proximity(now, time)` classifies the event as one of
    `DateProximity.TODAY`, `TOMORROW`, `WEEK` or `FAR`.
  - `is_locale_12h(t_fmt=None)` reports whether a time format, or the
    current locale's time format, uses a 12-hour clock.
  - `split_settings_location("America/Chicago Oklahoma City")` returns
    `("America/Chicago", "Oklahoma City")`. When no name is given, the name
    is taken from the zone: `"America/New_York"` gives `"New York"`.
  - `get_beautified_timezone_name(timezone, saved_location)` returns the
    saved name when both refer to the same zone.
  - `get_timezone_name(timezone, settings)` does the same, reading the saved
    location from the `"timezone-name"` key of a mapping.
  - `time_gettext(msg)` translates `msg` into the language of the LC_TIME
    locale.
- `indicator_datetime.observable`
  - `Signal` has `connect`, `disconnect` and `emit`.
  - `Property` holds a `.value` and emits `changed` whenever it is set to a
    different value.
- `indicator_datetime.timezones`
  - `Timezone` holds a `timezone` property.
  - `TimedatedTimezone(bus)` follows timedate1's `Timezone` property. It
    starts at `"Etc/Utc"`.
  - `GeoclueTimezone(bus)` takes the timezone from geoclue's address reports.
  - `LiveTimezones(settings, primary_timezone, geo_factory)` merges the
    primary zone with a detected one. The detected zone is used only while
    `settings.show_detected_location` is true. It exposes `timezone` and a
    `timezones` frozenset.
- `indicator_datetime.wakeup`
  - `MainloopWakeupTimer(clock=None, scheduler=None)` emits `timeout` at the
    wakeup time. By default it runs on `threading.Timer`. Any object with a
    `call_later(delay, callback)` method can serve as the scheduler, for
    example an asyncio loop.
  - `PowerdWakeupTimer(bus=None)` requests and clears hardware wakeups from
    the power daemon. It re-emits the daemon's `Wakeup` signal as `timeout`.
- `indicator_datetime.sound`
  - `volume_to_gain(volume)` maps a volume in 1–100 to a gain in 0.0–1.0,
    clamping out-of-range values.
  - `Sound` plays a URI on a player. It loops if asked to, and it sets the
    media role when the audio sink is pulsesink.
  - `SoundBuilder` and `DefaultSoundBuilder(player_factory)` create sounds.
- `indicator_datetime.notifications`
  - `Builder` describes a notification: title, body, icon, timeout, hints,
    actions and callbacks.
  - `Engine(app_name, server)` shows notifications and tracks them. When a
    notification closes, `Engine` runs its closed callback, or its timeout
    callback if the notification expired.
- `indicator_datetime.snap`
  - `Snap(engine, sound_builder, settings, ...)` is called with an
    `Appointment`, an `Alarm` and a response callback. It decides whether to
    show the notification, play a sound, vibrate or keep the system awake.
    It follows `SnapSettings` and the user's silent-mode and vibration
    preferences.
  - `choose_alarm_uri` picks the first usable sound. It takes a URI as is,
    and turns an existing file path into a `file:` URI.
  - `response_for_action` maps the closing action to a `Response`.

## Example

```python
from datetime import datetime, timedelta
from indicator_datetime.utils import generate_full_format_string_at_time

now = datetime(2024, 5, 1, 9, 0).astimezone()
then = now + timedelta(hours=4)
print(generate_full_format_string_at_time(now, then, then + timedelta(hours=1), False))
# %H:%M
```

## What it does not do

- The package contains no bus client. `TimedatedTimezone`,
  `GeoclueTimezone` and `PowerdWakeupTimer` need an object that provides
  `call`, `subscribe`, `unsubscribe`, `watch_name` and `unwatch_name`.
- It contains no audio player. `Sound` needs a player object.
- It contains no notification server client. `Engine` needs a server object.
- It does not create screen-wake or vibration objects. `Snap` uses them only
  when you pass in factories for them.
- It reads no settings store and no calendar.
- It provides no command-line program.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```