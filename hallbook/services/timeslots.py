"""Helpers for the wall-clock slot grid and 12-hour labels."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from hallbook.domain.models import TimeSlot, format_hhmm, parse_hhmm


def format_time_12h(value: time | str) -> str:
    """``13:30`` -> ``1:30 PM``."""
    if isinstance(value, str):
        value = parse_hhmm(value)
    period = "PM" if value.hour >= 12 else "AM"
    hour = value.hour % 12 or 12
    return f"{hour}:{value.minute:02d} {period}"


def format_time_range_12h(start: time | str, end: time | str) -> str:
    return f"{format_time_12h(start)} - {format_time_12h(end)}"


def time_slots(start: time, end: time, minutes: int) -> list[TimeSlot]:
    """Build the selectable slot grid from *start* to *end*, both inclusive."""
    if minutes <= 0:
        raise ValueError("slot length must be positive")
    if end < start:
        raise ValueError("slot grid end must not precede its start")

    anchor = date(2000, 1, 1)
    current = datetime.combine(anchor, start)
    last = datetime.combine(anchor, end)
    step = timedelta(minutes=minutes)

    slots: list[TimeSlot] = []
    while current <= last:
        slot = current.time()
        slots.append(TimeSlot(value=format_hhmm(slot), label=format_time_12h(slot)))
        current += step
    return slots
