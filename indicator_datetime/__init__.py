"""Format selection, timezone tracking, wakeup timers, alarm sounds and notifications for a date-and-time indicator."""

__version__ = "0.1.0"