from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from allocator.api.deps import get_db
from allocator.models.personnel import Personnel
from allocator.models.room import Room
from allocator.models.schedule import DayOfWeek, ScheduledEvent
from allocator.schemas.schedule import ScheduleInstanceOut
from allocator.schemas.timetable import (
    EventResourcesUpdate,
    FreeResourcesOut,
    PersonnelOut,
    RoomOut,
    ScheduledEventOut,
    TimetableDetailsOut,
    TimeWindow,
)
from allocator.services.manual_assignment import apply_event_resources
from allocator.services.occupancy import find_events_in_slot, find_free_resources
from allocator.services.schedules import load_schedule
from allocator.services.time_grid import day_index, parse_grid_time

# Mounted under /schedules; ``router`` is mounted under /timetable.
schedule_router = APIRouter()
router = APIRouter()


@schedule_router.get("/{schedule_id}/timetable", response_model=TimetableDetailsOut)
def get_timetable_details(schedule_id: str, db: Session = Depends(get_db)) -> TimetableDetailsOut:
    schedule = load_schedule(db, schedule_id)
    events = db.execute(
        select(ScheduledEvent).where(ScheduledEvent.schedule_instance_id == schedule_id)
    ).scalars()
    ordered = sorted(events, key=lambda item: (day_index(item.day_of_week), item.start_time, item.id))
    return TimetableDetailsOut(
        schedule=ScheduleInstanceOut.model_validate(schedule),
        scheduled_events=[ScheduledEventOut.model_validate(item) for item in ordered],
        all_personnel=[
            PersonnelOut.model_validate(item)
            for item in db.execute(select(Personnel).order_by(Personnel.name)).scalars()
        ],
        all_rooms=[RoomOut.model_validate(item) for item in db.execute(select(Room).order_by(Room.name)).scalars()],
    )


@schedule_router.get("/{schedule_id}/timetable/slot", response_model=list[ScheduledEventOut])
def get_events_in_slot(
    schedule_id: str,
    day: DayOfWeek = Query(...),
    time: str = Query(..., description="Start of the 30-minute slot, HH:MM"),
    db: Session = Depends(get_db),
) -> list[ScheduledEventOut]:
    load_schedule(db, schedule_id)
    try:
        slot_time = parse_grid_time(time)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return find_events_in_slot(db, schedule_id, day, slot_time)


@router.get("/free-resources", response_model=FreeResourcesOut)
def get_free_resources(
    day: DayOfWeek = Query(...),
    start_time: str = Query(...),
    end_time: str = Query(...),
    exclude_event_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> FreeResourcesOut:
    try:
        window = TimeWindow(day=day, start_time=start_time, end_time=end_time)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False)) from exc

    free = find_free_resources(
        db,
        window.day,
        window.start_time,
        window.end_time,
        exclude_event_id=exclude_event_id,
    )
    return FreeResourcesOut(
        day=window.day,
        start_time=window.start_time,
        end_time=window.end_time,
        available_personnel=[PersonnelOut.model_validate(item) for item in free.personnel],
        available_rooms=[RoomOut.model_validate(item) for item in free.rooms],
    )


@router.patch("/events/{event_id}", response_model=ScheduledEventOut)
def update_event_resources(
    event_id: str,
    payload: EventResourcesUpdate,
    check_conflicts: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> ScheduledEventOut:
    return apply_event_resources(db, event_id, payload, check_conflicts=check_conflicts)
