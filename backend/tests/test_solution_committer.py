import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from allocator.core.exceptions import CommitError, InvalidSolutionError, InvalidTransitionError
from allocator.models.activity_log import ActivityLog
from allocator.models.schedule import DayOfWeek, ScheduledEvent, ScheduleInstance, ScheduleStatus
from allocator.schemas.solver import SolutionEntry
from allocator.services import solution_committer
from allocator.services.solution_committer import commit_solution, decode_entry
from conftest import solution_entry


def events_of(db, schedule_id):
    db.expire_all()
    return list(
        db.execute(select(ScheduledEvent).where(ScheduledEvent.schedule_instance_id == schedule_id)).scalars()
    )


def entries(*items):
    return [SolutionEntry.model_validate(item) for item in items]


def test_monday_morning_scenario(db_session, scenario):
    schedule = db_session.get(ScheduleInstance, scenario.schedule_id)

    created = commit_solution(db_session, schedule, entries(solution_entry(scenario)), source="import")

    assert created == 1
    [event] = events_of(db_session, scenario.schedule_id)
    assert event.day_of_week is DayOfWeek.monday
    assert (event.start_time, event.end_time) == ("09:00", "10:00")
    assert event.attendee_section_id == scenario.section_id
    assert event.attendee_group_id is None
    assert event.room_id == scenario.room_ids[0]
    assert event.personnel_ids == [scenario.personnel_ids[0]]
    assert db_session.get(ScheduleInstance, scenario.schedule_id).status is ScheduleStatus.completed

    log = db_session.execute(select(ActivityLog).where(ActivityLog.action == "timetable.committed")).scalar_one()
    assert log.entity_id == scenario.schedule_id
    assert log.details["events_created"] == 1


def test_commit_replaces_previous_events(db_session, scenario):
    schedule = db_session.get(ScheduleInstance, scenario.schedule_id)
    commit_solution(db_session, schedule, entries(solution_entry(scenario, 18, 20)), source="import")
    commit_solution(db_session, schedule, entries(solution_entry(scenario, 20, 22)), source="import")

    [event] = events_of(db_session, scenario.schedule_id)
    assert (event.start_time, event.end_time) == ("10:00", "11:00")


def test_empty_solution_clears_the_timetable(db_session, scenario):
    schedule = db_session.get(ScheduleInstance, scenario.schedule_id)
    commit_solution(db_session, schedule, entries(solution_entry(scenario)), source="import")

    assert commit_solution(db_session, schedule, [], source="import") == 0
    assert events_of(db_session, scenario.schedule_id) == []


@pytest.mark.parametrize(
    "overrides",
    [
        {"start_slot": 22, "end_slot": 24},
        {"attendee_id": "unknown-section"},
        {"attendee_level": "GROUP"},
        {"templateId": "unknown-template"},
        {"room_id": "unknown-room"},
        {"personnel_ids": ["unknown-person"]},
    ],
)
def test_invalid_entries_are_rejected_before_any_write(db_session, scenario, overrides):
    schedule = db_session.get(ScheduleInstance, scenario.schedule_id)
    entry = solution_entry(scenario)
    entry.update(overrides)

    with pytest.raises(InvalidSolutionError) as exc_info:
        commit_solution(db_session, schedule, entries(entry), source="import")

    assert exc_info.value.status_code == 422
    assert exc_info.value.details["error_count"] == 1
    assert events_of(db_session, scenario.schedule_id) == []
    assert db_session.get(ScheduleInstance, scenario.schedule_id).status is ScheduleStatus.draft


def test_duplicate_placement_is_rejected(db_session, scenario):
    schedule = db_session.get(ScheduleInstance, scenario.schedule_id)

    with pytest.raises(InvalidSolutionError) as exc_info:
        commit_solution(
            db_session,
            schedule,
            entries(solution_entry(scenario, 18, 20), solution_entry(scenario, 20, 22)),
            source="import",
        )

    assert "placed more than once" in exc_info.value.details["errors"][0]


def test_entry_shorter_than_its_activity_is_rejected(db_session, scenario):
    schedule = db_session.get(ScheduleInstance, scenario.schedule_id)

    with pytest.raises(InvalidSolutionError) as exc_info:
        commit_solution(db_session, schedule, entries(solution_entry(scenario, 18, 19)), source="import")

    assert "spans 1 slots, activity needs 2" in exc_info.value.details["errors"][0]
    assert events_of(db_session, scenario.schedule_id) == []


def test_entry_crossing_midnight_cannot_be_decoded():
    entry = SolutionEntry(
        templateId="t1",
        attendee_level="SECTION",
        attendee_id="s1",
        start_slot=46,
        end_slot=49,
    )
    with pytest.raises(ValueError):
        decode_entry(entry)


def test_group_entry_decodes_to_group_column():
    entry = SolutionEntry(
        templateId="t1",
        attendee_level="GROUP",
        attendee_id="g1",
        start_slot=66,
        end_slot=68,
    )
    columns = decode_entry(entry)
    assert columns["day_of_week"] is DayOfWeek.tuesday
    assert (columns["start_time"], columns["end_time"]) == ("09:00", "10:00")
    assert (columns["attendee_section_id"], columns["attendee_group_id"]) == (None, "g1")


def test_import_refused_while_locked(db_session, scenario):
    schedule = db_session.get(ScheduleInstance, scenario.schedule_id)
    schedule.status = ScheduleStatus.locked
    db_session.commit()

    with pytest.raises(InvalidTransitionError):
        commit_solution(db_session, schedule, entries(solution_entry(scenario)), source="import")


def test_store_failure_rolls_back_everything(db_session, scenario, monkeypatch):
    existing = ScheduledEvent(
        schedule_instance_id=scenario.schedule_id,
        activity_template_id=scenario.template_id,
        day_of_week=DayOfWeek.monday,
        start_time="10:00",
        end_time="11:00",
        room_id=scenario.room_ids[1],
        personnel_ids=[scenario.personnel_ids[1]],
        attendee_section_id=scenario.section_id,
    )
    db_session.add(existing)
    db_session.commit()
    existing_id = existing.id

    def failing_log_activity(*args, **kwargs):
        raise SQLAlchemyError("injected failure")

    monkeypatch.setattr(solution_committer, "log_activity", failing_log_activity)
    schedule = db_session.get(ScheduleInstance, scenario.schedule_id)

    with pytest.raises(CommitError) as exc_info:
        commit_solution(db_session, schedule, entries(solution_entry(scenario)), source="import")

    assert exc_info.value.status_code == 500
    [event] = events_of(db_session, scenario.schedule_id)
    assert event.id == existing_id
    assert (event.start_time, event.end_time) == ("10:00", "11:00")
    assert db_session.get(ScheduleInstance, scenario.schedule_id).status is ScheduleStatus.draft
