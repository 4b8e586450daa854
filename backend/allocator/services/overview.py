from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from allocator.models.schedule import ScheduledEvent, ScheduleInstance
from allocator.schemas.schedule import ScheduleOverviewOut
from allocator.services.task_expander import expand_schedule_tasks


def allocation_status(expected: int, scheduled: int) -> str:
    if expected == 0:
        return "NOT_SCHEDULED"
    if scheduled >= expected:
        return "COMPLETED"
    if scheduled > 0:
        return "SEMI_ALLOCATED"
    return "NOT_SCHEDULED"


def schedule_overview(db: Session) -> list[ScheduleOverviewOut]:
    """How much of each schedule's expanded task list currently has an event."""
    counts = dict(
        db.execute(
            select(ScheduledEvent.schedule_instance_id, func.count(ScheduledEvent.id)).group_by(
                ScheduledEvent.schedule_instance_id
            )
        ).all()
    )
    rows: list[ScheduleOverviewOut] = []
    for schedule in db.execute(select(ScheduleInstance).order_by(ScheduleInstance.name)).scalars():
        expected = len(expand_schedule_tasks(db, schedule.id))
        scheduled = counts.get(schedule.id, 0)
        rows.append(
            ScheduleOverviewOut(
                id=schedule.id,
                name=schedule.name,
                status=allocation_status(expected, scheduled),
                lifecycle_status=schedule.status,
                total_activities_to_schedule=expected,
                currently_scheduled_events=scheduled,
            )
        )
    return rows
