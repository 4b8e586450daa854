from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from allocator.core.exceptions import DuplicateResourceError, InvalidAssignmentError, ResourceNotFoundError
from allocator.models.availability import AvailabilityTemplate
from allocator.models.course import ActivityTemplate, Course
from allocator.models.personnel import Personnel
from allocator.models.program_structure import Section
from allocator.models.room import Room
from allocator.models.schedule import (
    PersonnelPreference,
    ScheduleCourse,
    ScheduledEvent,
    ScheduleInstance,
    SchedulePersonnel,
    ScheduleRoom,
    ScheduleSection,
    TimePreference,
)
from allocator.schemas.schedule import (
    PooledResources,
    PooledResourcesUpdate,
    PreferenceSubmission,
    ScheduleInstanceCreate,
    SolverSettingsUpdate,
)
from allocator.services.audit import log_activity
from allocator.services.lifecycle import Transition, apply_transition

logger = logging.getLogger(__name__)

# pooled field -> (association model, association column, master model)
POOL_TABLES = {
    "course_ids": (ScheduleCourse, "course_id", Course),
    "section_ids": (ScheduleSection, "section_id", Section),
    "personnel_ids": (SchedulePersonnel, "personnel_id", Personnel),
    "room_ids": (ScheduleRoom, "room_id", Room),
}


def load_schedule(db: Session, schedule_id: str) -> ScheduleInstance:
    schedule = db.get(ScheduleInstance, schedule_id)
    if schedule is None:
        raise ResourceNotFoundError("ScheduleInstance", schedule_id)
    return schedule


def _require_template(db: Session, template_id: str) -> AvailabilityTemplate:
    template = db.get(AvailabilityTemplate, template_id)
    if template is None:
        raise ResourceNotFoundError("AvailabilityTemplate", template_id)
    return template


def create_schedule(db: Session, payload: ScheduleInstanceCreate) -> ScheduleInstance:
    if payload.availability_template_id:
        _require_template(db, payload.availability_template_id)
    existing = db.execute(select(ScheduleInstance.id).where(ScheduleInstance.name == payload.name)).scalar_one_or_none()
    if existing:
        raise DuplicateResourceError(f"A schedule named '{payload.name}' already exists.")
    schedule = ScheduleInstance(**payload.model_dump())
    db.add(schedule)
    db.flush()
    log_activity(db, action="schedule.created", entity_type="schedule_instance", entity_id=schedule.id)
    db.commit()
    db.refresh(schedule)
    return schedule


def delete_schedule(db: Session, schedule: ScheduleInstance) -> None:
    for association, _, _ in POOL_TABLES.values():
        db.execute(delete(association).where(association.schedule_instance_id == schedule.id))
    for owned in (ScheduledEvent, PersonnelPreference, TimePreference):
        db.execute(delete(owned).where(owned.schedule_instance_id == schedule.id))
    log_activity(db, action="schedule.deleted", entity_type="schedule_instance", entity_id=schedule.id)
    db.delete(schedule)
    db.commit()


def pooled_resources(db: Session, schedule_id: str) -> PooledResources:
    values = {}
    for field_name, (association, column, _) in POOL_TABLES.items():
        values[field_name] = sorted(
            db.execute(
                select(getattr(association, column)).where(association.schedule_instance_id == schedule_id)
            ).scalars()
        )
    return PooledResources(**values)


def assign_pooled_resources(db: Session, schedule: ScheduleInstance, payload: PooledResourcesUpdate) -> PooledResources:
    """Replace each provided pool wholesale; omitted pools are left as they are."""
    changes = payload.model_dump(exclude_unset=True)
    for field_name, ids in changes.items():
        association, column, master = POOL_TABLES[field_name]
        unique_ids = list(dict.fromkeys(ids or []))
        if unique_ids:
            known = set(db.execute(select(master.id).where(master.id.in_(unique_ids))).scalars())
            missing = [item for item in unique_ids if item not in known]
            if missing:
                raise InvalidAssignmentError(
                    f"Unknown {field_name.replace('_ids', '')} id(s): {', '.join(missing)}",
                    details={field_name: missing},
                )
        db.execute(delete(association).where(association.schedule_instance_id == schedule.id))
        db.add_all(association(schedule_instance_id=schedule.id, **{column: item}) for item in unique_ids)

    if changes:
        log_activity(
            db,
            action="schedule.resources_assigned",
            entity_type="schedule_instance",
            entity_id=schedule.id,
            details={key: len(value or []) for key, value in changes.items()},
        )
    db.commit()
    return pooled_resources(db, schedule.id)


def assign_availability_template(db: Session, schedule: ScheduleInstance, template_id: str) -> ScheduleInstance:
    _require_template(db, template_id)
    schedule.availability_template_id = template_id
    log_activity(
        db,
        action="schedule.template_assigned",
        entity_type="schedule_instance",
        entity_id=schedule.id,
        details={"availability_template_id": template_id},
    )
    db.commit()
    db.refresh(schedule)
    return schedule


def update_solver_settings(db: Session, schedule: ScheduleInstance, payload: SolverSettingsUpdate) -> ScheduleInstance:
    changes = payload.model_dump(exclude_unset=True)
    if "room_stickiness_weight" in changes:
        schedule.room_stickiness_weight = changes["room_stickiness_weight"]
    if "spacing_preference" in changes:
        schedule.spacing_preference = changes["spacing_preference"]
    if "time_preferences" in changes:
        db.execute(delete(TimePreference).where(TimePreference.schedule_instance_id == schedule.id))
        db.add_all(
            TimePreference(schedule_instance_id=schedule.id, time=item["time"], rank=item["rank"])
            for item in changes["time_preferences"] or []
        )
    db.commit()
    db.refresh(schedule)
    return schedule


def submit_preferences(
    db: Session,
    schedule: ScheduleInstance,
    personnel_id: str,
    payload: PreferenceSubmission,
) -> list[PersonnelPreference]:
    """Atomically replace one person's ranked activity preferences for ``schedule``."""
    if db.get(Personnel, personnel_id) is None:
        raise ResourceNotFoundError("Personnel", personnel_id)

    template_ids = [item.activity_template_id for item in payload.preferences]
    if template_ids:
        pooled_courses = select(ScheduleCourse.course_id).where(ScheduleCourse.schedule_instance_id == schedule.id)
        eligible = set(
            db.execute(
                select(ActivityTemplate.id).where(
                    ActivityTemplate.id.in_(template_ids),
                    ActivityTemplate.course_id.in_(pooled_courses),
                )
            ).scalars()
        )
        ineligible = [item for item in template_ids if item not in eligible]
        if ineligible:
            raise InvalidAssignmentError(
                "Preferences may only rank activities of courses pooled into this schedule.",
                details={"activity_template_ids": ineligible},
            )

    db.execute(
        delete(PersonnelPreference).where(
            PersonnelPreference.schedule_instance_id == schedule.id,
            PersonnelPreference.personnel_id == personnel_id,
        )
    )
    records = [
        PersonnelPreference(
            personnel_id=personnel_id,
            schedule_instance_id=schedule.id,
            activity_template_id=item.activity_template_id,
            rank=item.rank,
        )
        for item in sorted(payload.preferences, key=lambda pref: pref.rank)
    ]
    db.add_all(records)
    db.commit()
    return records


def unlock_schedule(db: Session, schedule: ScheduleInstance) -> ScheduleInstance:
    """Operator recovery for a schedule left LOCKED by a failed commit."""
    apply_transition(schedule, Transition.release)
    log_activity(db, action="schedule.unlocked", entity_type="schedule_instance", entity_id=schedule.id)
    db.commit()
    db.refresh(schedule)
    logger.warning("Schedule %s was manually unlocked", schedule.id)
    return schedule


def set_preferences_window(db: Session, schedule: ScheduleInstance, *, is_open: bool) -> ScheduleInstance:
    transition = Transition.open_preferences if is_open else Transition.close_preferences
    apply_transition(schedule, transition)
    log_activity(
        db,
        action="schedule.preferences_opened" if is_open else "schedule.preferences_closed",
        entity_type="schedule_instance",
        entity_id=schedule.id,
    )
    db.commit()
    db.refresh(schedule)
    return schedule
