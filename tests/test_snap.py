import itertools
from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest

from indicator_datetime.notifications import CLOSE_REASON_EXPIRED, Builder, Engine
from indicator_datetime.snap import (
    ALARM_DEFAULT_SOUND,
    CALENDAR_DEFAULT_SOUND,
    Alarm,
    Appointment,
    AppointmentType,
    Response,
    Snap,
    SnapSettings,
    choose_alarm_uri,
    response_for_action,
)
from indicator_datetime.sound import SoundBuilder

APP_NAME = "indicator-datetime-service"


class FakeServer:
    def __init__(self, actions=True):
        self.actions = actions
        self.notified = []
        self.closed = []
        self.on_action = None
        self.on_closed = None
        self._next = 1

    def supports_actions(self):
        return self.actions

    def notify(self, app_name, notification):
        self.notified.append((app_name, notification))
        key = self._next
        self._next += 1
        return key

    def close(self, key):
        self.closed.append(key)

    def watch(self, on_action_invoked, on_closed):
        self.on_action = on_action_invoked
        self.on_closed = on_closed


class FakeSound:
    def __init__(self, role, uri, volume, loop):
        self.role, self.uri, self.volume, self.loop = role, uri, volume, loop
        self.closed = False

    def close(self):
        self.closed = True


class RecordingSoundBuilder(SoundBuilder):
    def __init__(self):
        self.sounds = []

    def create(self, role, uri, volume, loop):
        sound = FakeSound(role, uri, volume, loop)
        self.sounds.append(sound)
        return sound


@dataclass
class FakeAccounts:
    silent_mode: bool = False
    other_vibrate: bool = True


def make_appointments():
    begin = datetime(2014, 12, 25, 0, 0, 0)
    appt = Appointment(summary="Event summary", begin=begin, type=AppointmentType.EVENT,
                       alarms=[Alarm("Event summary", "", begin)])
    ualarm = Appointment(summary="Alarm", begin=begin, type=AppointmentType.ALARM,
                         alarms=[Alarm("Alarm Text", "", begin)])
    return appt, ualarm


def make_snap(settings, accounts=None, actions=True):
    server = FakeServer(actions)
    engine = Engine(APP_NAME, server)
    sounds = RecordingSoundBuilder()
    haptics = []
    awakes = []
    snap = Snap(
        engine,
        sounds,
        settings,
        accounts_sound=accounts,
        awake_factory=lambda name: awakes.append(name) or name,
        haptic_factory=lambda repeat: haptics.append(repeat) or repeat,
        twelve_hour=False,
    )
    return snap, server, sounds, haptics, awakes


@pytest.mark.parametrize(
    "kind,haptic_mode,other_vibrations,cal_enabled",
    list(itertools.product(["event", "alarm"], ["none", "pulse"], [True, False], [True, False])),
)
def test_notification_combinations(kind, haptic_mode, other_vibrations, cal_enabled):
    appt, ualarm = make_appointments()
    target = appt if kind == "event" else ualarm
    icon_name = "calendar-app" if kind == "event" else "alarm-clock"
    prefix = "Event" if kind == "event" else "Alarm"

    settings = SnapSettings(
        cal_notification_enabled=cal_enabled,
        cal_notification_sounds=cal_enabled,
        cal_notification_vibrations=cal_enabled,
        cal_notification_bubbles=cal_enabled,
        cal_notification_list=cal_enabled,
        alarm_haptic=haptic_mode,
    )
    snap, server, _sounds, haptics, _awakes = make_snap(
        settings, FakeAccounts(other_vibrate=other_vibrations)
    )

    expected_notify = target.is_alarm or cal_enabled
    expected_vibrate = expected_notify and other_vibrations and haptic_mode == "pulse"

    snap(target, appt.alarms[0], lambda *args: None)

    assert (len(server.notified) > 0) == expected_notify
    assert (len(haptics) > 0) == expected_vibrate

    if server.notified:
        app_name, b = server.notified[0]
        assert app_name == APP_NAME
        assert b.icon_name == icon_name
        assert b.title.startswith(prefix)
        assert b.body == target.summary


def test_alarm_title_and_interactive_actions():
    _, ualarm = make_appointments()
    snap, server, sounds, _, _ = make_snap(SnapSettings(alarm_duration=4))
    snap(ualarm, ualarm.alarms[0], lambda *args: None)
    _, b = server.notified[0]
    assert b.title == "Alarm Thu, 00:00"
    assert b.timeout == timedelta(minutes=4)
    assert b.actions == [("none", "OK"), ("snooze", "Snooze")]
    assert Builder.HINT_SNAP in b.hints
    assert Builder.HINT_NONSHAPED_ICON in b.hints
    assert sounds.sounds[0].role == "alarm"
    assert sounds.sounds[0].loop is True
    assert b.timeout_callback is None


def test_event_is_not_interactive():
    appt, _ = make_appointments()
    snap, server, sounds, _, _ = make_snap(SnapSettings())
    snap(appt, appt.alarms[0], lambda *args: None)
    _, b = server.notified[0]
    assert b.actions == [("show-app", "OK")]
    assert Builder.HINT_INTERACTIVE in b.hints
    assert sounds.sounds[0].role == "alert"
    assert sounds.sounds[0].loop is False


def test_alarm_without_action_support_does_not_loop():
    _, ualarm = make_appointments()
    snap, server, sounds, _, _ = make_snap(SnapSettings(), actions=False)
    snap(ualarm, ualarm.alarms[0], lambda *args: None)
    _, b = server.notified[0]
    assert b.actions == [("show-app", "OK")]
    assert sounds.sounds[0].loop is False


def test_silent_mode_mutes_events_but_not_alarms():
    appt, ualarm = make_appointments()
    snap, _, sounds, haptics, _ = make_snap(SnapSettings(), FakeAccounts(silent_mode=True))
    snap(appt, appt.alarms[0], lambda *args: None)
    assert sounds.sounds == []
    assert haptics == []
    snap(ualarm, ualarm.alarms[0], lambda *args: None)
    assert [s.role for s in sounds.sounds] == ["alarm"]


def test_vibrate_in_silent_mode_when_enabled():
    _, ualarm = make_appointments()
    snap, _, _, haptics, _ = make_snap(
        SnapSettings(vibrate_silent_mode=True), FakeAccounts(silent_mode=True)
    )
    snap(ualarm, ualarm.alarms[0], lambda *args: None)
    assert haptics == [True]


def test_closed_response_and_resources_released():
    _, ualarm = make_appointments()
    snap, server, sounds, _, _ = make_snap(SnapSettings())
    responses = []
    snap(ualarm, ualarm.alarms[0], lambda a, al, r: responses.append(r))
    server.on_closed(1, 2)
    assert responses == [Response.SNOOZE]
    assert sounds.sounds[0].closed is True


def test_event_timeout_responds_show_app():
    appt, _ = make_appointments()
    snap, server, _, _, _ = make_snap(SnapSettings())
    responses = []
    snap(appt, appt.alarms[0], lambda a, al, r: responses.append(r))
    server.on_closed(1, CLOSE_REASON_EXPIRED)
    assert responses == [Response.SHOW_APP]


def test_close_closes_shown_notifications():
    appt, ualarm = make_appointments()
    snap, server, _, _, _ = make_snap(SnapSettings())
    responses = []
    snap(appt, appt.alarms[0], lambda a, al, r: responses.append(r))
    snap(ualarm, ualarm.alarms[0], lambda a, al, r: responses.append(r))
    snap.close()
    assert server.closed == [1, 2]
    assert responses == [Response.NONE, Response.SNOOZE]


@pytest.mark.parametrize(
    "type_,action,expected",
    [
        (AppointmentType.ALARM, "snooze", Response.SNOOZE),
        (AppointmentType.ALARM, "", Response.SNOOZE),
        (AppointmentType.EVENT, "", Response.NONE),
        (AppointmentType.EVENT, "show-app", Response.SHOW_APP),
        (AppointmentType.ALARM, "none", Response.NONE),
    ],
)
def test_response_for_action(type_, action, expected):
    assert response_for_action(Appointment(type=type_), action) == expected


def test_choose_alarm_uri_prefers_alarm_url():
    appt = Appointment(type=AppointmentType.ALARM)
    alarm = Alarm(audio_url="file:///tmp/ring.ogg")
    assert choose_alarm_uri(appt, alarm, SnapSettings()) == "file:///tmp/ring.ogg"


def test_choose_alarm_uri_converts_existing_file(tmp_path):
    path = tmp_path / "sound.ogg"
    path.write_bytes(b"")
    appt = Appointment(type=AppointmentType.EVENT)
    settings = SnapSettings(calendar_sound=str(path))
    assert choose_alarm_uri(appt, Alarm(audio_url=str(tmp_path / "missing.ogg")), settings) == path.as_uri()


def test_choose_alarm_uri_nothing_usable(tmp_path):
    missing = str(tmp_path / "missing.ogg")
    for type_, default in ((AppointmentType.ALARM, ALARM_DEFAULT_SOUND),
                           (AppointmentType.EVENT, CALENDAR_DEFAULT_SOUND)):
        settings = SnapSettings(alarm_sound=missing, calendar_sound=missing)
        result = choose_alarm_uri(Appointment(type=type_), Alarm(), settings)
        assert result in ("", f"file://{default}".replace(" ", "%20"))
        assert not result.startswith(str(tmp_path))