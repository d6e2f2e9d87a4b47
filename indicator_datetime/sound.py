"""Alarm and alert sound playback, possibly looping."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Protocol

log = logging.getLogger(__name__)

_VOLUME_LO = 1
_VOLUME_HI = 100
_GAIN_LO = 0.0
_GAIN_HI = 1.0

PULSE_SINK = "pulsesink"


class Player(Protocol):
    """A media player that reports end-of-stream and stream-start events."""

    def watch(
        self,
        on_end_of_stream: Callable[[], None],
        on_stream_start: Callable[[], None],
    ) -> None: ...

    def unwatch(self) -> None: ...

    def play(self, uri: str, gain: float) -> None: ...

    def stop(self) -> None: ...

    def seek_to_start(self) -> None: ...

    def audio_sink_name(self) -> str | None: ...

    def set_stream_properties(self, properties: str) -> None: ...


def volume_to_gain(volume: int) -> float:
    """Map a settings volume in [1..100] onto a player gain in [0.0..1.0]."""
    clamped = min(max(volume, _VOLUME_LO), _VOLUME_HI)
    fraction = (clamped - _VOLUME_LO) / (_VOLUME_HI - _VOLUME_LO)
    return _GAIN_LO + fraction * (_GAIN_HI - _GAIN_LO)


class Sound:
    """Plays ``uri`` on ``player`` for the lifetime of the object."""

    def __init__(self, role: str, uri: str, volume: int, loop: bool, player: Player) -> None:
        self.role = role
        self.uri = uri
        self.volume = volume
        self.loop = loop
        self._player = player
        self._closed = False

        player.watch(self.on_end_of_stream, self.on_stream_start)
        log.debug("Playing '%s'", uri)
        player.play(uri, volume_to_gain(volume))

    def __enter__(self) -> Sound:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def on_end_of_stream(self) -> None:
        """Restart playback from the beginning when looping."""
        if self._closed or not self.loop:
            return
        self._player.seek_to_start()

    def on_stream_start(self) -> None:
        """Tag the stream with its media role when playing through pulse."""
        if self._closed:
            return
        if self._player.audio_sink_name() == PULSE_SINK:
            self._player.set_stream_properties(f"props,media.role={self.role}")

    def close(self) -> None:
        """Stop playback and stop listening to the player."""
        if self._closed:
            return
        self._closed = True
        self._player.unwatch()
        self._player.stop()


class SoundBuilder(ABC):
    """Creates sounds; lets callers substitute their own playback."""

    @abstractmethod
    def create(self, role: str, uri: str, volume: int, loop: bool) -> Sound:
        """Start playing a new sound."""


class DefaultSoundBuilder(SoundBuilder):
    """Builds sounds on players made by ``player_factory``."""

    def __init__(self, player_factory: Callable[[], Player]) -> None:
        self._player_factory = player_factory

    def create(self, role: str, uri: str, volume: int, loop: bool) -> Sound:
        return Sound(role, uri, volume, loop, self._player_factory())