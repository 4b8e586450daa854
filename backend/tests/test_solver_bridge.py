import itertools
import json

import httpx
import pytest
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from allocator.core.exceptions import (
    CommitError,
    ConfigurationError,
    InvalidTransitionError,
    PreconditionError,
    SolverError,
)
from allocator.models.activity_log import ActivityLog
from allocator.models.availability import AvailabilityTemplate
from allocator.models.schedule import (
    PersonnelPreference,
    ScheduleCourse,
    ScheduledEvent,
    ScheduleInstance,
    ScheduleStatus,
    SpacingPreference,
    TimePreference,
)
from allocator.services import solution_committer, solver_bridge
from allocator.services.schedules import unlock_schedule
from allocator.services.solver_bridge import SolverClient, build_solver_request, run_allocation
from conftest import SOLVER_URL, solution_entry


def load(db, scenario) -> ScheduleInstance:
    db.expire_all()
    return db.get(ScheduleInstance, scenario.schedule_id)


def test_request_carries_the_pooled_universe(db_session, scenario):
    db_session.add(
        PersonnelPreference(
            personnel_id=scenario.personnel_ids[0],
            schedule_instance_id=scenario.schedule_id,
            activity_template_id=scenario.template_id,
            rank=1,
        )
    )
    db_session.add(TimePreference(schedule_instance_id=scenario.schedule_id, time="09:00", rank=1))
    db_session.commit()

    request = build_solver_request(db_session, load(db_session, scenario))
    payload = request.model_dump(mode="json")

    assert [activity["id"] for activity in payload["activities"]] == [f"{scenario.template_id}_{scenario.section_id}"]
    assert payload["activities"][0]["duration_slots"] == 2
    assert payload["time_slots"] == [18, 19, 20, 21]
    assert payload["days"] == ["MONDAY"]
    assert {room["type"] for room in payload["rooms"]} == {"LECTURE_HALL"}
    assert payload["personnel"][0] == {"id": scenario.personnel_ids[0], "roles": ["LECTURER"]}
    assert payload["preferences"] == [
        {"personnel_id": scenario.personnel_ids[0], "activity_id": scenario.template_id, "rank": 1}
    ]
    assert payload["time_preferences"] == [{"time": "09:00", "rank": 1}]
    assert payload["room_stickiness_weight"] == 0
    assert payload["spacing_preference"] == "NONE"


def test_request_forwards_solver_settings(db_session, scenario):
    schedule = load(db_session, scenario)
    schedule.room_stickiness_weight = 40
    schedule.spacing_preference = SpacingPreference.compact
    db_session.commit()

    request = build_solver_request(db_session, load(db_session, scenario))

    assert request.room_stickiness_weight == 40
    assert request.spacing_preference is SpacingPreference.compact


def test_missing_template_is_a_precondition_failure(db_session, scenario):
    schedule = load(db_session, scenario)
    schedule.availability_template_id = None
    db_session.commit()

    with pytest.raises(PreconditionError, match="availability template"):
        build_solver_request(db_session, load(db_session, scenario))


def test_empty_template_is_a_precondition_failure(db_session, scenario):
    template = db_session.get(AvailabilityTemplate, scenario.availability_template_id)
    template.available_slots = []
    db_session.commit()

    with pytest.raises(PreconditionError, match="No available time slots"):
        build_solver_request(db_session, load(db_session, scenario))


def test_no_tasks_is_a_precondition_failure(db_session, scenario):
    db_session.execute(delete(ScheduleCourse))
    db_session.commit()

    with pytest.raises(PreconditionError, match="No activities to schedule"):
        build_solver_request(db_session, load(db_session, scenario))


def test_client_posts_to_solve_and_parses_entries(db_session, scenario, solver_handler, solver_client):
    solver_handler.respond = lambda request: httpx.Response(200, json=[solution_entry(scenario)])

    solution = solver_client.solve(build_solver_request(db_session, load(db_session, scenario)))

    [sent] = solver_handler.requests
    assert sent.method == "POST"
    assert str(sent.url) == f"{SOLVER_URL}/solve"
    assert json.loads(sent.content)["days"] == ["MONDAY"]
    assert solution[0].start_slot == 18
    assert solution[0].templateId == scenario.template_id


def test_non_200_surfaces_solver_detail(db_session, scenario, solver_handler, solver_client):
    solver_handler.respond = lambda request: httpx.Response(422, json={"detail": "No feasible timetable"})

    with pytest.raises(SolverError) as exc_info:
        solver_client.solve(build_solver_request(db_session, load(db_session, scenario)))

    assert exc_info.value.status_code == 502
    assert exc_info.value.message == "Solver failed: No feasible timetable"
    assert exc_info.value.details["status_code"] == 422


def test_non_json_error_falls_back_to_reason_phrase(db_session, scenario, solver_handler, solver_client):
    solver_handler.respond = lambda request: httpx.Response(500, text="<html>boom</html>")

    with pytest.raises(SolverError, match="Internal Server Error"):
        solver_client.solve(build_solver_request(db_session, load(db_session, scenario)))


def test_timeout_is_a_solver_error(db_session, scenario, solver_handler, solver_client):
    def time_out(request):
        raise httpx.ReadTimeout("timed out", request=request)

    solver_handler.respond = time_out

    with pytest.raises(SolverError, match="no response"):
        solver_client.solve(build_solver_request(db_session, load(db_session, scenario)))


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"events": []}),
        httpx.Response(200, json=[{"templateId": "t1"}]),
    ],
)
def test_malformed_solution_is_a_solver_error(db_session, scenario, solver_handler, solver_client, response):
    solver_handler.respond = lambda request: response

    with pytest.raises(SolverError, match="not a valid solution"):
        solver_client.solve(build_solver_request(db_session, load(db_session, scenario)))


def test_missing_solver_url_is_a_configuration_error(db_session, scenario):
    with pytest.raises(ConfigurationError):
        SolverClient(None).solve(build_solver_request(db_session, load(db_session, scenario)))


def test_run_allocation_commits_solution(db_session, scenario, solver_handler, solver_client):
    solver_handler.respond = lambda request: httpx.Response(200, json=[solution_entry(scenario)])

    created = run_allocation(db_session, load(db_session, scenario), solver_client)

    assert created == 1
    assert load(db_session, scenario).status is ScheduleStatus.completed
    [event] = db_session.execute(select(ScheduledEvent)).scalars()
    assert (event.day_of_week.value, event.start_time, event.end_time) == ("MONDAY", "09:00", "10:00")
    actions = set(db_session.execute(select(ActivityLog.action)).scalars())
    assert {"allocation.started", "timetable.committed"} <= actions


def test_solver_failure_releases_the_lock(db_session, scenario, solver_handler, solver_client):
    solver_handler.respond = lambda request: httpx.Response(500, json={"detail": "solver crashed"})

    with pytest.raises(SolverError, match="solver crashed"):
        run_allocation(db_session, load(db_session, scenario), solver_client)

    assert load(db_session, scenario).status is ScheduleStatus.draft
    failure = db_session.execute(select(ActivityLog).where(ActivityLog.action == "allocation.failed")).scalar_one()
    assert "solver crashed" in failure.details["reason"]


def test_unusable_solution_releases_the_lock(db_session, scenario, solver_handler, solver_client):
    solver_handler.respond = lambda request: httpx.Response(200, json=[solution_entry(scenario, 30, 32)])

    with pytest.raises(SolverError, match="unusable solution"):
        run_allocation(db_session, load(db_session, scenario), solver_client)

    assert load(db_session, scenario).status is ScheduleStatus.draft
    assert db_session.execute(select(ScheduledEvent)).first() is None


def test_precondition_failure_leaves_status_untouched(db_session, scenario, solver_handler, solver_client):
    schedule = load(db_session, scenario)
    schedule.status = ScheduleStatus.preferences_open
    db_session.execute(delete(ScheduleCourse))
    db_session.commit()

    with pytest.raises(PreconditionError):
        run_allocation(db_session, load(db_session, scenario), solver_client)

    assert load(db_session, scenario).status is ScheduleStatus.preferences_open
    assert solver_handler.requests == []


def test_allocation_refused_while_locked(db_session, scenario, solver_handler, solver_client):
    schedule = load(db_session, scenario)
    schedule.status = ScheduleStatus.locked
    db_session.commit()

    with pytest.raises(InvalidTransitionError):
        run_allocation(db_session, load(db_session, scenario), solver_client)

    assert solver_handler.requests == []


def test_commit_failure_leaves_schedule_locked(db_session, scenario, solver_handler, solver_client, monkeypatch):
    solver_handler.respond = lambda request: httpx.Response(200, json=[solution_entry(scenario)])

    def failing_log_activity(*args, **kwargs):
        raise SQLAlchemyError("injected failure")

    monkeypatch.setattr(solution_committer, "log_activity", failing_log_activity)

    with pytest.raises(CommitError):
        run_allocation(db_session, load(db_session, scenario), solver_client)

    assert load(db_session, scenario).status is ScheduleStatus.locked
    assert db_session.execute(select(ScheduledEvent)).first() is None


def test_solver_failure_after_manual_unlock_keeps_solver_detail(
    db_session, session_factory, scenario, solver_handler, solver_client
):
    def unlock_then_crash(request):
        with session_factory() as other:
            unlock_schedule(other, other.get(ScheduleInstance, scenario.schedule_id))
        return httpx.Response(500, json={"detail": "solver crashed"})

    solver_handler.respond = unlock_then_crash

    with pytest.raises(SolverError, match="solver crashed"):
        run_allocation(db_session, load(db_session, scenario), solver_client)

    assert load(db_session, scenario).status is ScheduleStatus.draft
    failure = db_session.execute(select(ActivityLog).where(ActivityLog.action == "allocation.failed")).scalar_one()
    assert "solver crashed" in failure.details["reason"]


def test_slow_response_body_hits_the_overall_deadline(
    db_session, scenario, solver_handler, solver_client, monkeypatch
):
    clock = itertools.count(0, 10)
    monkeypatch.setattr(solver_bridge, "monotonic", lambda: next(clock))
    solver_handler.respond = lambda request: httpx.Response(200, content=iter([b"[", b"]"]))

    with pytest.raises(SolverError, match="no response within 5 seconds"):
        solver_client.solve(build_solver_request(db_session, load(db_session, scenario)))
