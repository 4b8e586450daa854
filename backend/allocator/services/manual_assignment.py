from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from allocator.core.exceptions import AssignmentConflictError, InvalidAssignmentError, ResourceNotFoundError
from allocator.models.personnel import Personnel
from allocator.models.room import Room
from allocator.models.schedule import ScheduledEvent
from allocator.schemas.timetable import EventResourcesUpdate
from allocator.services.audit import log_activity
from allocator.services.occupancy import global_occupancy

logger = logging.getLogger(__name__)


def _validate_references(db: Session, changes: dict) -> None:
    room_id = changes.get("room_id")
    if room_id is not None and db.get(Room, room_id) is None:
        raise InvalidAssignmentError(f"Room {room_id} does not exist.", details={"room_id": room_id})

    personnel_ids = changes.get("personnel_ids") or []
    if personnel_ids:
        known = set(db.execute(select(Personnel.id).where(Personnel.id.in_(personnel_ids))).scalars())
        missing = [item for item in personnel_ids if item not in known]
        if missing:
            raise InvalidAssignmentError(
                f"Unknown personnel: {', '.join(missing)}.",
                details={"personnel_ids": missing},
            )


def _ensure_free(db: Session, event: ScheduledEvent, changes: dict) -> None:
    occupancy = global_occupancy(
        db,
        event.day_of_week,
        event.start_time,
        event.end_time,
        exclude_event_id=event.id,
    )
    room_id = changes.get("room_id")
    busy_personnel = sorted(set(changes.get("personnel_ids") or []) & occupancy.personnel_ids)
    room_busy = room_id is not None and room_id in occupancy.room_ids
    if room_busy or busy_personnel:
        raise AssignmentConflictError(
            "Requested resources are already booked during this event.",
            details={
                "room_id": room_id if room_busy else None,
                "personnel_ids": busy_personnel,
            },
        )


def apply_event_resources(
    db: Session,
    event_id: str,
    update: EventResourcesUpdate,
    *,
    check_conflicts: bool = False,
) -> ScheduledEvent:
    """Patch the room and/or personnel of one event outside a full re-solve.

    Only fields present in ``update`` change; an explicit null clears the
    assignment. The caller is trusted to offer free resources unless
    ``check_conflicts`` asks for the overlap check to run here too.
    """
    event = db.get(ScheduledEvent, event_id)
    if event is None:
        raise ResourceNotFoundError("ScheduledEvent", event_id)

    changes = update.model_dump(exclude_unset=True)
    if "personnel_ids" in changes and changes["personnel_ids"] is None:
        changes["personnel_ids"] = []
    if not changes:
        return event

    _validate_references(db, changes)
    if check_conflicts:
        _ensure_free(db, event, changes)

    previous = {key: getattr(event, key) for key in changes}
    for key, value in changes.items():
        setattr(event, key, value)
    log_activity(
        db,
        action="timetable.event_resources_updated",
        entity_type="scheduled_event",
        entity_id=event.id,
        details={"previous": previous, "current": changes},
    )
    db.commit()
    db.refresh(event)
    logger.info("Updated resources of event %s: %s", event.id, sorted(changes))
    return event
