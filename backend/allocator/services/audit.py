from __future__ import annotations

from sqlalchemy.orm import Session

from allocator.models.activity_log import ActivityLog


def log_activity(
    db: Session,
    *,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> None:
    """Stage an audit record in the caller's transaction; it commits or rolls back with it."""
    record = ActivityLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(record)
