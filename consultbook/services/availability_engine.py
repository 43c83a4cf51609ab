"""Slot generation and conflict detection over wall-clock ``HH:MM`` times.

Everything here is a pure function of its arguments: no database access, no clock
and no timezone conversion. Callers align dates and times to the consultant's
configured timezone before calling in.
"""

import datetime as dt
from collections.abc import Iterable, Sequence

from consultbook.core.exceptions import InvalidConfiguration
from consultbook.schemas.availability import (
    WEEKDAYS,
    BookableSlot,
    SessionSettings,
    TimeOffPeriod,
    TimeRange,
    WorkingHoursConfig,
)

MAX_SLOTS_PER_RANGE = 1000


def parse_hhmm(value: str) -> int:
    """Return minutes since midnight for a ``HH:MM`` string."""
    try:
        hours_text, minutes_text = value.split(":")
        hours, minutes = int(hours_text), int(minutes_text)
    except (AttributeError, ValueError) as exc:
        raise InvalidConfiguration(f"Invalid time {value!r}, expected HH:MM") from exc
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise InvalidConfiguration(f"Invalid time {value!r}, expected HH:MM")
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def weekday_name(day: dt.date) -> str:
    return WEEKDAYS[day.weekday()]


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    # half-open intervals: touching ends do not overlap
    return a_start < b_end and b_start < a_end


def _sorted_ranges(ranges: Iterable[TimeRange]) -> list[tuple[int, int]]:
    return sorted((parse_hhmm(item.start), parse_hhmm(item.end)) for item in ranges)


def validate_availability(
    working_hours: WorkingHoursConfig,
    session_settings: SessionSettings,
    time_off: Sequence[TimeOffPeriod] = (),
) -> None:
    if session_settings.default_duration_minutes <= 0:
        raise InvalidConfiguration("Session duration must be a positive number of minutes")
    if session_settings.buffer_minutes < 0:
        raise InvalidConfiguration("Buffer time must not be negative")
    if session_settings.max_sessions_per_day <= 0:
        raise InvalidConfiguration("Maximum sessions per day must be positive")

    for weekday in WEEKDAYS:
        previous_end: int | None = None
        for start, end in _sorted_ranges(working_hours.for_weekday(weekday).slots):
            if start >= end:
                raise InvalidConfiguration(
                    f"{weekday.capitalize()}: range {format_hhmm(start)}-{format_hhmm(end)} must end after it starts"
                )
            if previous_end is not None and start < previous_end:
                raise InvalidConfiguration(
                    f"{weekday.capitalize()}: range starting at {format_hhmm(start)} overlaps the previous range"
                )
            previous_end = end

    for period in time_off:
        if period.end_date < period.start_date:
            raise InvalidConfiguration("Time off must not end before it starts")


def generate_slots(
    working_hours: WorkingHoursConfig,
    session_settings: SessionSettings,
    target_date: dt.date,
) -> list[BookableSlot]:
    """Expand the working hours of ``target_date``'s weekday into bookable slots.

    Within each range (taken in start order) a slot is emitted every
    ``duration + buffer`` minutes for as long as a full ``duration`` still fits
    before the range ends. Partial slots are dropped. Output keeps range order.
    """
    day = working_hours.for_weekday(weekday_name(target_date))
    if not day.enabled or not day.slots:
        return []

    duration = session_settings.default_duration_minutes
    if duration <= 0:
        raise InvalidConfiguration("Session duration must be a positive number of minutes")
    step = duration + max(session_settings.buffer_minutes, 0)

    slots: list[BookableSlot] = []
    for range_start, range_end in _sorted_ranges(day.slots):
        cursor = range_start
        iterations = 0
        while cursor + duration <= range_end and iterations < MAX_SLOTS_PER_RANGE:
            slots.append(
                BookableSlot(
                    date=target_date,
                    start_time=format_hhmm(cursor),
                    end_time=format_hhmm(cursor + duration),
                    duration_minutes=duration,
                )
            )
            cursor += step
            iterations += 1
    return slots


def filter_available(
    slots: Sequence[BookableSlot],
    booked_intervals: Iterable[TimeRange],
) -> list[BookableSlot]:
    """Drop every slot that intersects a booked interval; order is preserved."""
    booked = [(parse_hhmm(item.start), parse_hhmm(item.end)) for item in booked_intervals]
    if not booked:
        return list(slots)

    available = []
    for slot in slots:
        start, end = parse_hhmm(slot.start_time), parse_hhmm(slot.end_time)
        if not any(intervals_overlap(start, end, b_start, b_end) for b_start, b_end in booked):
            available.append(slot)
    return available


def find_slot(slots: Iterable[BookableSlot], start_time: str, end_time: str) -> BookableSlot | None:
    for slot in slots:
        if slot.start_time == start_time and slot.end_time == end_time:
            return slot
    return None


def is_time_off(day: dt.date, time_off: Iterable[TimeOffPeriod]) -> bool:
    return any(period.covers(day) for period in time_off)
