"""Persist a flat solver solution as the schedule's calendar events.

Entries are decoded and checked against the schedule's availability and task
expansion before anything is written. The swap itself (delete old events,
insert new ones, mark the schedule COMPLETED) happens in one transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from allocator.core.exceptions import CommitError, InvalidSolutionError, PreconditionError
from allocator.models.availability import AvailabilityTemplate
from allocator.models.personnel import Personnel
from allocator.models.room import Room
from allocator.models.schedule import ScheduledEvent, ScheduleInstance
from allocator.schemas.solver import SolutionEntry
from allocator.services.audit import log_activity
from allocator.services.availability import resolve_availability
from allocator.services.lifecycle import Transition, apply_transition, check_transition
from allocator.services.task_expander import expand_schedule_tasks, scope_for
from allocator.services.time_grid import SLOTS_PER_DAY, from_global_slot, slot_to_time

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 25


def decode_entry(entry: SolutionEntry) -> dict:
    """Translate global start/end slots back into a day and wall-clock window."""
    day, start_time = from_global_slot(entry.start_slot)
    day_offset = (entry.start_slot // SLOTS_PER_DAY) * SLOTS_PER_DAY
    end_in_day = entry.end_slot - day_offset
    if end_in_day >= SLOTS_PER_DAY:
        raise ValueError(f"slots {entry.start_slot}-{entry.end_slot} cross into the next day")
    scope = scope_for(entry.attendee_level, entry.attendee_id)
    return {
        "activity_template_id": entry.templateId,
        "day_of_week": day,
        "start_time": start_time,
        "end_time": slot_to_time(end_in_day),
        "room_id": entry.room_id,
        "personnel_ids": list(entry.personnel_ids),
        **scope.as_event_columns(),
    }


def _valid_slots(db: Session, schedule: ScheduleInstance) -> set[int]:
    template = None
    if schedule.availability_template_id:
        template = db.get(AvailabilityTemplate, schedule.availability_template_id)
    if template is None:
        raise PreconditionError(
            "Schedule has no availability template; assign one before saving a timetable.",
            details={"schedule_instance_id": schedule.id},
        )
    return set(resolve_availability(template.available_slots).time_slots)


def build_events(db: Session, schedule: ScheduleInstance, entries: Sequence[SolutionEntry]) -> list[ScheduledEvent]:
    """Decode and validate every entry; raises before any row is touched."""
    valid_slots = _valid_slots(db, schedule)
    durations = {task.key: task.duration_slots for task in expand_schedule_tasks(db, schedule.id)}
    known_rooms = set(db.execute(select(Room.id)).scalars())
    known_personnel = set(db.execute(select(Personnel.id)).scalars())

    errors: list[str] = []
    seen_keys: set = set()
    events: list[ScheduledEvent] = []
    for position, entry in enumerate(entries):
        label = f"entry {position} ({entry.templateId}/{entry.attendee_id})"
        key = (entry.templateId, scope_for(entry.attendee_level, entry.attendee_id))
        if key not in durations:
            errors.append(f"{label}: activity and attendee are not part of this schedule")
            continue
        if key in seen_keys:
            errors.append(f"{label}: placed more than once")
            continue
        seen_keys.add(key)

        if entry.end_slot - entry.start_slot != durations[key]:
            errors.append(
                f"{label}: spans {entry.end_slot - entry.start_slot} slots, activity needs {durations[key]}"
            )
            continue
        outside = [slot for slot in range(entry.start_slot, entry.end_slot) if slot not in valid_slots]
        if outside:
            errors.append(f"{label}: slots {outside} are outside the availability template")
            continue
        if entry.room_id is not None and entry.room_id not in known_rooms:
            errors.append(f"{label}: unknown room {entry.room_id}")
            continue
        unknown_personnel = sorted(set(entry.personnel_ids) - known_personnel)
        if unknown_personnel:
            errors.append(f"{label}: unknown personnel {', '.join(unknown_personnel)}")
            continue

        try:
            columns = decode_entry(entry)
        except ValueError as exc:
            errors.append(f"{label}: {exc}")
            continue
        events.append(ScheduledEvent(schedule_instance_id=schedule.id, **columns))

    if errors:
        raise InvalidSolutionError(
            f"Solution rejected: {len(errors)} invalid entr{'y' if len(errors) == 1 else 'ies'}.",
            details={"errors": errors[:MAX_REPORTED_ERRORS], "error_count": len(errors)},
        )
    return events


def commit_solution(
    db: Session,
    schedule: ScheduleInstance,
    entries: Sequence[SolutionEntry],
    *,
    source: str,
    completing_live_solve: bool = False,
) -> int:
    """Atomically replace the schedule's events with ``entries``.

    Returns the number of events written. Either every old event is gone and
    every new one is present with the schedule COMPLETED, or nothing changed.
    """
    check_transition(schedule, Transition.complete, completing_live_solve=completing_live_solve)
    events = build_events(db, schedule, entries)

    try:
        removed = db.execute(
            delete(ScheduledEvent).where(ScheduledEvent.schedule_instance_id == schedule.id)
        ).rowcount
        db.add_all(events)
        db.flush()
        apply_transition(schedule, Transition.complete, completing_live_solve=completing_live_solve)
        log_activity(
            db,
            action="timetable.committed",
            entity_type="schedule_instance",
            entity_id=schedule.id,
            details={"source": source, "events_created": len(events), "events_removed": removed},
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Committing %s solution for schedule %s failed", source, schedule.id)
        raise CommitError(details={"schedule_instance_id": schedule.id}) from exc

    logger.info(
        "Committed %s solution for schedule %s: %d events replaced %d",
        source,
        schedule.id,
        len(events),
        removed,
    )
    return len(events)
