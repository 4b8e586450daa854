import pytest
from sqlalchemy import select

from allocator.core.exceptions import AssignmentConflictError, InvalidAssignmentError, ResourceNotFoundError
from allocator.models.activity_log import ActivityLog
from allocator.models.schedule import DayOfWeek, ScheduledEvent
from allocator.schemas.timetable import EventResourcesUpdate
from allocator.services.manual_assignment import apply_event_resources


@pytest.fixture()
def event(db_session, scenario):
    event = ScheduledEvent(
        schedule_instance_id=scenario.schedule_id,
        activity_template_id=scenario.template_id,
        day_of_week=DayOfWeek.monday,
        start_time="09:00",
        end_time="10:00",
        room_id=scenario.room_ids[0],
        personnel_ids=[scenario.personnel_ids[0]],
        attendee_section_id=scenario.section_id,
    )
    db_session.add(event)
    db_session.commit()
    return event


def test_only_provided_fields_change(db_session, scenario, event):
    updated = apply_event_resources(db_session, event.id, EventResourcesUpdate(room_id=scenario.room_ids[1]))

    assert updated.room_id == scenario.room_ids[1]
    assert updated.personnel_ids == [scenario.personnel_ids[0]]


def test_explicit_null_room_clears_it(db_session, scenario, event):
    updated = apply_event_resources(db_session, event.id, EventResourcesUpdate.model_validate({"room_id": None}))

    assert updated.room_id is None
    assert updated.personnel_ids == [scenario.personnel_ids[0]]


def test_null_or_empty_personnel_clears_them(db_session, scenario, event):
    updated = apply_event_resources(
        db_session, event.id, EventResourcesUpdate.model_validate({"personnel_ids": None})
    )
    assert updated.personnel_ids == []
    assert updated.room_id == scenario.room_ids[0]

    updated = apply_event_resources(
        db_session, event.id, EventResourcesUpdate(personnel_ids=list(reversed(scenario.personnel_ids)))
    )
    assert updated.personnel_ids == list(reversed(scenario.personnel_ids))


def test_empty_update_is_a_no_op(db_session, scenario, event):
    apply_event_resources(db_session, event.id, EventResourcesUpdate())

    assert db_session.execute(select(ActivityLog)).first() is None


def test_update_is_audited(db_session, scenario, event):
    apply_event_resources(db_session, event.id, EventResourcesUpdate(room_id=scenario.room_ids[1]))

    log = db_session.execute(
        select(ActivityLog).where(ActivityLog.action == "timetable.event_resources_updated")
    ).scalar_one()
    assert log.entity_id == event.id
    assert log.details["previous"] == {"room_id": scenario.room_ids[0]}
    assert log.details["current"] == {"room_id": scenario.room_ids[1]}


def test_unknown_event(db_session, scenario):
    with pytest.raises(ResourceNotFoundError) as exc_info:
        apply_event_resources(db_session, "missing", EventResourcesUpdate(room_id=scenario.room_ids[0]))
    assert exc_info.value.status_code == 404


def test_unknown_references_are_rejected(db_session, scenario, event):
    with pytest.raises(InvalidAssignmentError):
        apply_event_resources(db_session, event.id, EventResourcesUpdate(room_id="no-such-room"))
    with pytest.raises(InvalidAssignmentError) as exc_info:
        apply_event_resources(db_session, event.id, EventResourcesUpdate(personnel_ids=["ghost"]))
    assert exc_info.value.details == {"personnel_ids": ["ghost"]}


def test_conflict_check_is_opt_in(db_session, scenario, event):
    other = ScheduledEvent(
        schedule_instance_id=scenario.schedule_id,
        activity_template_id=scenario.template_id,
        day_of_week=DayOfWeek.monday,
        start_time="09:30",
        end_time="10:30",
        room_id=scenario.room_ids[1],
        personnel_ids=[scenario.personnel_ids[1]],
        attendee_section_id=scenario.section_id,
    )
    db_session.add(other)
    db_session.commit()

    with pytest.raises(AssignmentConflictError) as exc_info:
        apply_event_resources(
            db_session,
            event.id,
            EventResourcesUpdate(room_id=scenario.room_ids[1], personnel_ids=[scenario.personnel_ids[1]]),
            check_conflicts=True,
        )
    assert exc_info.value.status_code == 409
    assert exc_info.value.details == {"room_id": scenario.room_ids[1], "personnel_ids": [scenario.personnel_ids[1]]}

    trusted = apply_event_resources(db_session, event.id, EventResourcesUpdate(room_id=scenario.room_ids[1]))
    assert trusted.room_id == scenario.room_ids[1]


def test_conflict_check_ignores_the_event_itself(db_session, scenario, event):
    updated = apply_event_resources(
        db_session,
        event.id,
        EventResourcesUpdate(room_id=scenario.room_ids[0], personnel_ids=[scenario.personnel_ids[0]]),
        check_conflicts=True,
    )
    assert updated.room_id == scenario.room_ids[0]


def test_duplicate_personnel_rejected_by_schema():
    with pytest.raises(ValueError):
        EventResourcesUpdate(personnel_ids=["p1", "p1"])
