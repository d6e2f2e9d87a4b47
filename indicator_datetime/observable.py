"""Minimal signals and change-notifying properties."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class Signal:
    """A list of callbacks invoked in connection order on emit."""

    def __init__(self) -> None:
        self._callbacks: list[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]) -> Callable[..., Any]:
        """Register a callback and return it, so this works as a decorator."""
        self._callbacks.append(callback)
        return callback

    def disconnect(self, callback: Callable[..., Any]) -> None:
        """Remove a callback; raises ValueError if it is not connected."""
        self._callbacks.remove(callback)

    def emit(self, *args: Any) -> None:
        """Call every connected callback with ``args``."""
        for callback in list(self._callbacks):
            callback(*args)

    __call__ = emit

    def __len__(self) -> int:
        return len(self._callbacks)


class Property(Generic[T]):
    """A value that emits ``changed`` whenever it is set to something new."""

    def __init__(self, value: T) -> None:
        self._value = value
        self.changed = Signal()

    @property
    def value(self) -> T:
        return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        if new_value != self._value:
            self._value = new_value
            self.changed.emit(new_value)

    def __repr__(self) -> str:
        return f"Property({self._value!r})"