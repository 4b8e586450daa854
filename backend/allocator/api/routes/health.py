from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text

from allocator.core.config import get_settings
from allocator.db.bootstrap import schema_gaps
from allocator.db.session import engine
from allocator.models.schedule import ScheduleInstance, ScheduleStatus

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": _now()}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    """Database reachable with the allocator schema in place.

    Schedules stuck in LOCKED are reported but do not fail readiness; they
    need an operator unlock, not a restart.
    """
    settings = get_settings()
    database: dict = {"ok": True, "schema_ok": False, "missing_tables": [], "missing_columns": {}, "error": None}
    locked_schedules: int | None = None

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            missing_tables, missing_columns = schema_gaps(connection)
            database.update(missing_tables=missing_tables, missing_columns=missing_columns)
            database["schema_ok"] = not missing_tables and not missing_columns
            if database["schema_ok"]:
                locked_schedules = connection.execute(
                    select(func.count(ScheduleInstance.id)).where(ScheduleInstance.status == ScheduleStatus.locked)
                ).scalar_one()
    except Exception as exc:  # pragma: no cover - environment dependent
        database.update(ok=False, error=str(exc))

    ready = database["ok"] and database["schema_ok"]
    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": _now(),
        "database": database,
        "solver": {
            "configured": bool(settings.solver_api_url),
            "url": settings.solver_api_url,
            "timeout_seconds": settings.solver_timeout_seconds,
        },
        "locked_schedules": locked_schedules,
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
