"""Assemble solver requests and drive a live allocation run.

The same request payload backs both the live ``POST {SOLVER_API_URL}/solve``
call and the manual export, and both the live response and an uploaded file go
through the same solution committer.
"""

from __future__ import annotations

import json
import logging
from time import monotonic

import httpx
from pydantic import TypeAdapter
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from allocator.core.config import Settings, get_settings
from allocator.core.exceptions import (
    CommitError,
    ConfigurationError,
    InvalidSolutionError,
    PreconditionError,
    SolverError,
)
from allocator.models.availability import AvailabilityTemplate
from allocator.models.personnel import Personnel
from allocator.models.room import Room
from allocator.models.schedule import (
    PersonnelPreference,
    ScheduleInstance,
    SchedulePersonnel,
    ScheduleRoom,
    ScheduleStatus,
    SpacingPreference,
    TimePreference,
)
from allocator.schemas.solver import (
    SolutionEntry,
    SolverActivity,
    SolverPersonnel,
    SolverPreference,
    SolverRequest,
    SolverRoom,
    SolverTimePreference,
)
from allocator.services.audit import log_activity
from allocator.services.availability import resolve_availability
from allocator.services.lifecycle import Transition, apply_transition, check_transition
from allocator.services.solution_committer import commit_solution
from allocator.services.task_expander import expand_schedule_tasks

logger = logging.getLogger(__name__)

_solution_adapter = TypeAdapter(list[SolutionEntry])


def build_solver_request(db: Session, schedule: ScheduleInstance) -> SolverRequest:
    """Gather the pooled universe of ``schedule`` into the solver's input shape.

    Raises ``PreconditionError`` when there is nothing the solver could do:
    no availability template, no valid time slots or no tasks.
    """
    template = None
    if schedule.availability_template_id:
        template = db.get(AvailabilityTemplate, schedule.availability_template_id)
    if template is None:
        raise PreconditionError(
            "Schedule or its availability template not found. Please set an availability template.",
            details={"schedule_instance_id": schedule.id},
        )

    availability = resolve_availability(template.available_slots)
    if availability.is_empty:
        raise PreconditionError(
            "No available time slots defined. Please add blocks to the availability template.",
            details={"schedule_instance_id": schedule.id, "availability_template_id": template.id},
        )

    tasks = expand_schedule_tasks(db, schedule.id)
    if not tasks:
        raise PreconditionError(
            "No activities to schedule. Please assign courses and sections.",
            details={"schedule_instance_id": schedule.id},
        )

    personnel = db.execute(
        select(Personnel)
        .join(SchedulePersonnel, SchedulePersonnel.personnel_id == Personnel.id)
        .where(SchedulePersonnel.schedule_instance_id == schedule.id)
        .order_by(Personnel.name, Personnel.id)
    ).scalars()
    rooms = db.execute(
        select(Room)
        .join(ScheduleRoom, ScheduleRoom.room_id == Room.id)
        .where(ScheduleRoom.schedule_instance_id == schedule.id)
        .order_by(Room.name, Room.id)
    ).scalars()
    preferences = db.execute(
        select(PersonnelPreference)
        .where(PersonnelPreference.schedule_instance_id == schedule.id)
        .order_by(PersonnelPreference.personnel_id, PersonnelPreference.rank)
    ).scalars()
    time_preferences = db.execute(
        select(TimePreference)
        .where(TimePreference.schedule_instance_id == schedule.id)
        .order_by(TimePreference.rank, TimePreference.time)
    ).scalars()

    return SolverRequest(
        activities=[SolverActivity.model_validate(task.to_payload()) for task in tasks],
        personnel=[SolverPersonnel(id=person.id, roles=list(person.roles or [])) for person in personnel],
        rooms=[SolverRoom(id=room.id, type=room.type.value) for room in rooms],
        # Personnel rank templates, not the per-attendee tasks expanded from them.
        preferences=[
            SolverPreference(personnel_id=pref.personnel_id, activity_id=pref.activity_template_id, rank=pref.rank)
            for pref in preferences
        ],
        time_slots=list(availability.time_slots),
        days=[day.value for day in availability.days],
        room_stickiness_weight=schedule.room_stickiness_weight or 0,
        spacing_preference=schedule.spacing_preference or SpacingPreference.none,
        time_preferences=[SolverTimePreference(time=item.time, rank=item.rank) for item in time_preferences],
    )


def parse_solution(payload) -> list[SolutionEntry]:
    return _solution_adapter.validate_python(payload)


class SolverClient:
    """Thin HTTP client for the external solver service."""

    def __init__(
        self,
        base_url: str | None,
        *,
        timeout_seconds: float = 300.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") if base_url else None
        self._timeout_seconds = timeout_seconds
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SolverClient":
        settings = settings or get_settings()
        return cls(settings.solver_api_url, timeout_seconds=settings.solver_timeout_seconds)

    def solve(self, request: SolverRequest) -> list[SolutionEntry]:
        """POST ``request`` and return the parsed solution.

        ``timeout_seconds`` bounds the whole call, including a response body that
        trickles in; each network phase is also capped at the same value.
        """
        if not self._base_url:
            raise ConfigurationError("SOLVER_API_URL environment variable is not set.")

        url = f"{self._base_url}/solve"
        deadline = monotonic() + self._timeout_seconds
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                with client.stream("POST", url, json=request.model_dump(mode="json")) as response:
                    body = self._read_until(response, deadline)
        except httpx.TimeoutException as exc:
            raise self._timed_out(url) from exc
        except httpx.HTTPError as exc:
            raise SolverError(f"Solver failed: {exc}", details={"url": url}) from exc

        if response.status_code != httpx.codes.OK:
            raise SolverError(
                f"Solver failed: {self._error_detail(response, body)}",
                details={"url": url, "status_code": response.status_code},
            )

        try:
            return parse_solution(json.loads(body))
        except ValueError as exc:
            # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors.
            raise SolverError(
                "Solver failed: response is not a valid solution array.",
                details={"url": url, "error": str(exc)[:500]},
            ) from exc

    def _read_until(self, response: httpx.Response, deadline: float) -> bytes:
        chunks: list[bytes] = []
        for chunk in response.iter_bytes():
            chunks.append(chunk)
            if monotonic() > deadline:
                raise self._timed_out(str(response.request.url))
        return b"".join(chunks)

    def _timed_out(self, url: str) -> SolverError:
        return SolverError(
            f"Solver failed: no response within {self._timeout_seconds:.0f} seconds.",
            details={"url": url},
        )

    @staticmethod
    def _error_detail(response: httpx.Response, body: bytes) -> str:
        try:
            payload = json.loads(body)
        except ValueError:
            return response.reason_phrase or "unexpected error"
        if isinstance(payload, dict) and payload.get("detail"):
            return str(payload["detail"])
        return response.reason_phrase or "unexpected error"


def _release_lock(db: Session, schedule_id: str, reason: str) -> None:
    db.rollback()
    schedule = db.get(ScheduleInstance, schedule_id)
    if schedule is None:
        return
    if schedule.status is ScheduleStatus.locked:
        apply_transition(schedule, Transition.release)
    else:
        # Unlocked by an operator while the solver was running.
        logger.warning("Schedule %s is no longer LOCKED (%s); status left as is", schedule_id, schedule.status.value)
    log_activity(
        db,
        action="allocation.failed",
        entity_type="schedule_instance",
        entity_id=schedule_id,
        details={"reason": reason[:500]},
    )
    db.commit()


def run_allocation(db: Session, schedule: ScheduleInstance, client: SolverClient) -> int:
    """Lock the schedule, call the solver and commit its solution.

    Preconditions are checked before the lock, so a refused run leaves the
    status untouched. Any solver failure releases the lock back to DRAFT. A
    commit failure leaves the schedule LOCKED for the operator to retry or
    unlock.
    """
    check_transition(schedule, Transition.lock)
    request = build_solver_request(db, schedule)

    apply_transition(schedule, Transition.lock)
    log_activity(
        db,
        action="allocation.started",
        entity_type="schedule_instance",
        entity_id=schedule.id,
        details={"activities": len(request.activities), "time_slots": len(request.time_slots)},
    )
    db.commit()

    schedule_id = schedule.id
    logger.info("Sending %d activities for schedule %s to the solver", len(request.activities), schedule_id)
    try:
        solution = client.solve(request)
    except (SolverError, ConfigurationError) as exc:
        logger.warning("Allocation for schedule %s failed: %s", schedule_id, exc.message)
        _release_lock(db, schedule_id, exc.message)
        raise
    except Exception as exc:
        logger.exception("Allocation for schedule %s failed unexpectedly", schedule_id)
        _release_lock(db, schedule_id, "unexpected error")
        raise SolverError("An unexpected error occurred while calling the solver.") from exc

    logger.info("Solver returned %d events for schedule %s", len(solution), schedule_id)
    try:
        return commit_solution(db, schedule, solution, source="solver", completing_live_solve=True)
    except CommitError:
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Allocation for schedule %s could not be saved", schedule_id)
        raise CommitError(details={"schedule_instance_id": schedule_id}) from exc
    except (PreconditionError, InvalidSolutionError) as exc:
        _release_lock(db, schedule_id, exc.message)
        raise SolverError(f"Solver returned an unusable solution: {exc.message}", details=exc.details) from exc
