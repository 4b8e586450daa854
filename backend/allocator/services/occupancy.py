from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from allocator.models.personnel import Personnel
from allocator.models.room import Room
from allocator.models.schedule import DayOfWeek, ScheduledEvent
from allocator.services.time_grid import SLOT_MINUTES, time_to_slot


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval intersection; touching endpoints do not overlap."""
    return start_a < end_b and start_b < end_a


def event_overlaps(event: ScheduledEvent, start_time: str, end_time: str) -> bool:
    return intervals_overlap(
        time_to_slot(event.start_time),
        time_to_slot(event.end_time),
        time_to_slot(start_time),
        time_to_slot(end_time),
    )


@dataclass
class Occupancy:
    room_ids: set[str] = field(default_factory=set)
    personnel_ids: set[str] = field(default_factory=set)


@dataclass
class FreeResources:
    personnel: list[Personnel]
    rooms: list[Room]


def overlapping_events(
    db: Session,
    day: DayOfWeek,
    start_time: str,
    end_time: str,
    *,
    schedule_id: str | None = None,
    exclude_event_id: str | None = None,
) -> list[ScheduledEvent]:
    query = select(ScheduledEvent).where(ScheduledEvent.day_of_week == DayOfWeek(day))
    if schedule_id is not None:
        query = query.where(ScheduledEvent.schedule_instance_id == schedule_id)
    if exclude_event_id is not None:
        query = query.where(ScheduledEvent.id != exclude_event_id)
    query = query.order_by(ScheduledEvent.start_time, ScheduledEvent.id)
    return [event for event in db.execute(query).scalars() if event_overlaps(event, start_time, end_time)]


def collect_occupancy(events: Iterable[ScheduledEvent]) -> Occupancy:
    occupancy = Occupancy()
    for event in events:
        if event.room_id:
            occupancy.room_ids.add(event.room_id)
        occupancy.personnel_ids.update(event.personnel_ids or [])
    return occupancy


def global_occupancy(
    db: Session,
    day: DayOfWeek,
    start_time: str,
    end_time: str,
    *,
    exclude_event_id: str | None = None,
) -> Occupancy:
    # Occupancy spans every schedule instance: a room booked by another term is still booked.
    return collect_occupancy(
        overlapping_events(db, day, start_time, end_time, exclude_event_id=exclude_event_id)
    )


def find_free_resources(
    db: Session,
    day: DayOfWeek,
    start_time: str,
    end_time: str,
    *,
    exclude_event_id: str | None = None,
) -> FreeResources:
    """Personnel and rooms not committed to any event overlapping the window.

    Recomputed from the events table on every call.
    TODO: index events by (day, room/personnel) if event volumes outgrow a per-day scan.
    """
    occupancy = global_occupancy(db, day, start_time, end_time, exclude_event_id=exclude_event_id)

    personnel_query = select(Personnel).order_by(Personnel.name, Personnel.id)
    if occupancy.personnel_ids:
        personnel_query = personnel_query.where(Personnel.id.not_in(occupancy.personnel_ids))
    room_query = select(Room).order_by(Room.name, Room.id)
    if occupancy.room_ids:
        room_query = room_query.where(Room.id.not_in(occupancy.room_ids))

    return FreeResources(
        personnel=list(db.execute(personnel_query).scalars()),
        rooms=list(db.execute(room_query).scalars()),
    )


def find_events_in_slot(db: Session, schedule_id: str, day: DayOfWeek, time: str) -> list[ScheduledEvent]:
    """Events of one schedule occupying the 30-minute slot that starts at ``time``."""
    slot = time_to_slot(time)
    end_minutes = (slot + 1) * SLOT_MINUTES
    slot_end = f"{end_minutes // 60:02d}:{end_minutes % 60:02d}"
    return overlapping_events(db, day, time, slot_end, schedule_id=schedule_id)
