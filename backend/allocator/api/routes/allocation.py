import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from allocator.api.deps import get_db, get_solver_client
from allocator.schemas.solver import AllocationResult, SolutionEntry, SolverRequest
from allocator.services.schedules import load_schedule
from allocator.services.solution_committer import commit_solution
from allocator.services.solver_bridge import SolverClient, build_solver_request, run_allocation

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/{schedule_id}/allocation", response_model=AllocationResult)
def trigger_allocation(
    schedule_id: str,
    db: Session = Depends(get_db),
    client: SolverClient = Depends(get_solver_client),
) -> AllocationResult:
    schedule = load_schedule(db, schedule_id)
    logger.info("Starting allocation for schedule %s", schedule_id)
    created = run_allocation(db, schedule, client)
    return AllocationResult(
        schedule_instance_id=schedule_id,
        status=load_schedule(db, schedule_id).status.value,
        events_created=created,
        message="Allocation completed successfully! The timetable is now available.",
    )


@router.get("/{schedule_id}/allocation/export", response_model=SolverRequest)
def export_allocation_data(schedule_id: str, db: Session = Depends(get_db)) -> JSONResponse:
    schedule = load_schedule(db, schedule_id)
    payload = build_solver_request(db, schedule)
    filename = f"allocation-{schedule_id}.json"
    return JSONResponse(
        content=payload.model_dump(mode="json"),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{schedule_id}/allocation/import", response_model=AllocationResult)
def import_allocation_solution(
    schedule_id: str,
    solution: list[SolutionEntry],
    db: Session = Depends(get_db),
) -> AllocationResult:
    """Accept a solution produced outside the live solver, in the solver's response shape."""
    schedule = load_schedule(db, schedule_id)
    created = commit_solution(db, schedule, solution, source="import")
    return AllocationResult(
        schedule_instance_id=schedule_id,
        status=load_schedule(db, schedule_id).status.value,
        events_created=created,
        message="Timetable imported successfully!",
    )
