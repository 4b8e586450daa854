from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from allocator.models.schedule import DayOfWeek
from allocator.services.time_grid import DAY_ORDER, slot_range


@dataclass(frozen=True)
class ResolvedAvailability:
    time_slots: tuple[int, ...]
    days: tuple[DayOfWeek, ...]

    @property
    def is_empty(self) -> bool:
        return not self.time_slots


def resolve_availability(blocks: Iterable[Mapping[str, str]]) -> ResolvedAvailability:
    """Expand weekly availability blocks into sorted global slot indices.

    Overlapping blocks on the same day collapse into their union. ``days`` lists
    every day carrying at least one block, in week order, so the solver can skip
    empty days entirely.
    """
    covered: set[int] = set()
    active_days: set[DayOfWeek] = set()
    for block in blocks:
        day = DayOfWeek(block["day_of_week"])
        active_days.add(day)
        covered.update(slot_range(day, block["start_time"], block["end_time"]))

    return ResolvedAvailability(
        time_slots=tuple(sorted(covered)),
        days=tuple(day for day in DAY_ORDER if day in active_days),
    )
