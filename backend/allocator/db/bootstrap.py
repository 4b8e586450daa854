from __future__ import annotations

import logging

from sqlalchemy import inspect, text

import allocator.models  # noqa: F401
from allocator.db.base import Base
from allocator.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "schedule_instances": {
        "id",
        "name",
        "status",
        "availability_template_id",
        "room_stickiness_weight",
        "spacing_preference",
    },
    "scheduled_events": {
        "id",
        "schedule_instance_id",
        "activity_template_id",
        "day_of_week",
        "start_time",
        "end_time",
        "room_id",
        "personnel_ids",
        "attendee_section_id",
        "attendee_group_id",
    },
    "availability_templates": {"id", "name", "available_slots"},
    "activity_templates": {"id", "course_id", "duration_minutes", "attendee_level", "position"},
}


def _ensure_schedule_solver_setting_columns() -> None:
    # Solver tuning columns were added after the first schedule_instances release.
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "schedule_instances" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("schedule_instances")}
        if "room_stickiness_weight" not in column_names:
            connection.execute(text("ALTER TABLE schedule_instances ADD COLUMN room_stickiness_weight INTEGER"))
        if "spacing_preference" not in column_names:
            connection.execute(text("ALTER TABLE schedule_instances ADD COLUMN spacing_preference VARCHAR(20)"))


def _ensure_activity_template_position_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "activity_templates" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("activity_templates")}
        if "position" in column_names:
            return
        connection.execute(text("ALTER TABLE activity_templates ADD COLUMN position INTEGER NOT NULL DEFAULT 0"))


def schema_gaps(connection) -> tuple[list[str], dict[str, list[str]]]:
    """Tables and columns the allocator needs that the connected database lacks."""
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(required - existing)
        if missing:
            missing_columns[table_name] = missing
    return missing_tables, missing_columns


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        missing_tables, missing_columns = schema_gaps(connection)
    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
    if missing_columns:
        flattened = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flattened)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        # Ensure missing tables are present before additive compatibility patches.
        Base.metadata.create_all(bind=engine)
        _ensure_schedule_solver_setting_columns()
        _ensure_activity_template_position_column()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
