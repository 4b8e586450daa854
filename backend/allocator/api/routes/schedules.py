from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from allocator.api.deps import get_db
from allocator.models.schedule import ScheduleInstance
from allocator.schemas.schedule import (
    AvailabilityTemplateAssignment,
    PooledResources,
    PooledResourcesUpdate,
    PreferenceOut,
    PreferenceSubmission,
    ScheduleInstanceCreate,
    ScheduleInstanceDetail,
    ScheduleInstanceOut,
    ScheduleOverviewOut,
    SolverSettingsUpdate,
)
from allocator.services import schedules as schedule_service
from allocator.services.overview import schedule_overview

router = APIRouter()


def _detail(db: Session, schedule: ScheduleInstance) -> ScheduleInstanceDetail:
    base = ScheduleInstanceOut.model_validate(schedule)
    return ScheduleInstanceDetail(
        **base.model_dump(),
        pooled=schedule_service.pooled_resources(db, schedule.id),
    )


@router.get("/", response_model=list[ScheduleInstanceOut])
def list_schedules(db: Session = Depends(get_db)) -> list[ScheduleInstanceOut]:
    return list(db.execute(select(ScheduleInstance).order_by(ScheduleInstance.start_date.desc())).scalars())


@router.get("/overview", response_model=list[ScheduleOverviewOut])
def get_overview(db: Session = Depends(get_db)) -> list[ScheduleOverviewOut]:
    return schedule_overview(db)


@router.post("/", response_model=ScheduleInstanceOut, status_code=status.HTTP_201_CREATED)
def create_schedule(payload: ScheduleInstanceCreate, db: Session = Depends(get_db)) -> ScheduleInstanceOut:
    return schedule_service.create_schedule(db, payload)


@router.get("/{schedule_id}", response_model=ScheduleInstanceDetail)
def get_schedule(schedule_id: str, db: Session = Depends(get_db)) -> ScheduleInstanceDetail:
    schedule = schedule_service.load_schedule(db, schedule_id)
    return _detail(db, schedule)


@router.delete("/{schedule_id}")
def delete_schedule(schedule_id: str, db: Session = Depends(get_db)) -> dict:
    schedule = schedule_service.load_schedule(db, schedule_id)
    schedule_service.delete_schedule(db, schedule)
    return {"success": True}


@router.put("/{schedule_id}/resources", response_model=PooledResources)
def assign_resources(
    schedule_id: str,
    payload: PooledResourcesUpdate,
    db: Session = Depends(get_db),
) -> PooledResources:
    schedule = schedule_service.load_schedule(db, schedule_id)
    return schedule_service.assign_pooled_resources(db, schedule, payload)


@router.put("/{schedule_id}/availability-template", response_model=ScheduleInstanceOut)
def assign_availability_template(
    schedule_id: str,
    payload: AvailabilityTemplateAssignment,
    db: Session = Depends(get_db),
) -> ScheduleInstanceOut:
    schedule = schedule_service.load_schedule(db, schedule_id)
    return schedule_service.assign_availability_template(db, schedule, payload.availability_template_id)


@router.put("/{schedule_id}/solver-settings", response_model=ScheduleInstanceOut)
def update_solver_settings(
    schedule_id: str,
    payload: SolverSettingsUpdate,
    db: Session = Depends(get_db),
) -> ScheduleInstanceOut:
    schedule = schedule_service.load_schedule(db, schedule_id)
    return schedule_service.update_solver_settings(db, schedule, payload)


@router.put("/{schedule_id}/preferences/{personnel_id}", response_model=list[PreferenceOut])
def submit_preferences(
    schedule_id: str,
    personnel_id: str,
    payload: PreferenceSubmission,
    db: Session = Depends(get_db),
) -> list[PreferenceOut]:
    schedule = schedule_service.load_schedule(db, schedule_id)
    return schedule_service.submit_preferences(db, schedule, personnel_id, payload)


@router.post("/{schedule_id}/unlock", response_model=ScheduleInstanceOut)
def unlock_schedule(schedule_id: str, db: Session = Depends(get_db)) -> ScheduleInstanceOut:
    schedule = schedule_service.load_schedule(db, schedule_id)
    return schedule_service.unlock_schedule(db, schedule)


@router.post("/{schedule_id}/preferences/open", response_model=ScheduleInstanceOut)
def open_preferences(schedule_id: str, db: Session = Depends(get_db)) -> ScheduleInstanceOut:
    schedule = schedule_service.load_schedule(db, schedule_id)
    return schedule_service.set_preferences_window(db, schedule, is_open=True)


@router.post("/{schedule_id}/preferences/close", response_model=ScheduleInstanceOut)
def close_preferences(schedule_id: str, db: Session = Depends(get_db)) -> ScheduleInstanceOut:
    schedule = schedule_service.load_schedule(db, schedule_id)
    return schedule_service.set_preferences_window(db, schedule, is_open=False)
