"""Half-hour time grid shared by every allocation component.

A day is split into 48 slots of 30 minutes. A *global* slot index folds the
day into the same integer: ``day_index * 48 + slot`` with Monday at 0, so the
solver can reason about one flat weekly timeline.
"""

from __future__ import annotations

import re

from allocator.models.schedule import DayOfWeek

SLOT_MINUTES = 30
SLOTS_PER_DAY = 48
DAY_ORDER: tuple[DayOfWeek, ...] = (
    DayOfWeek.monday,
    DayOfWeek.tuesday,
    DayOfWeek.wednesday,
    DayOfWeek.thursday,
    DayOfWeek.friday,
    DayOfWeek.saturday,
    DayOfWeek.sunday,
)
SLOTS_PER_WEEK = SLOTS_PER_DAY * len(DAY_ORDER)

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_grid_time(value: str) -> str:
    """Validate an ``HH:MM`` value that must sit on a half-hour boundary.

    Off-grid times are rejected rather than rounded.
    """
    cleaned = value.strip()
    if not TIME_PATTERN.match(cleaned):
        raise ValueError("Time must be in HH:MM 24-hour format")
    if int(cleaned[3:]) % SLOT_MINUTES:
        raise ValueError("Time must be on a 30-minute boundary (HH:00 or HH:30)")
    return cleaned


def time_to_slot(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 2 + int(minutes) // SLOT_MINUTES


def slot_to_time(slot: int) -> str:
    if not 0 <= slot < SLOTS_PER_DAY:
        raise ValueError(f"Slot {slot} is outside the day range [0, {SLOTS_PER_DAY})")
    hours, half = divmod(slot, 2)
    return f"{hours:02d}:{half * SLOT_MINUTES:02d}"


def day_index(day: DayOfWeek | str) -> int:
    return DAY_ORDER.index(DayOfWeek(day))


def to_global_slot(day: DayOfWeek | str, value: str) -> int:
    return day_index(day) * SLOTS_PER_DAY + time_to_slot(value)


def from_global_slot(index: int) -> tuple[DayOfWeek, str]:
    if not 0 <= index < SLOTS_PER_WEEK:
        raise ValueError(f"Global slot {index} is outside the week range [0, {SLOTS_PER_WEEK})")
    day_position, slot = divmod(index, SLOTS_PER_DAY)
    return DAY_ORDER[day_position], slot_to_time(slot)


def slot_range(day: DayOfWeek | str, start_time: str, end_time: str) -> range:
    """Global slots covered by the half-open window ``[start_time, end_time)``."""
    offset = day_index(day) * SLOTS_PER_DAY
    return range(offset + time_to_slot(start_time), offset + time_to_slot(end_time))
