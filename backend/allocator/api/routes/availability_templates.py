from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from allocator.api.deps import get_db
from allocator.models.availability import AvailabilityTemplate
from allocator.models.schedule import ScheduleInstance
from allocator.schemas.availability import (
    AvailabilityTemplateCreate,
    AvailabilityTemplateOut,
    AvailabilityTemplateUpdate,
)
from allocator.services.audit import log_activity

router = APIRouter()


def _get_template(db: Session, template_id: str) -> AvailabilityTemplate:
    template = db.get(AvailabilityTemplate, template_id)
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Availability template not found")
    return template


@router.get("/", response_model=list[AvailabilityTemplateOut])
def list_templates(db: Session = Depends(get_db)) -> list[AvailabilityTemplateOut]:
    return list(db.execute(select(AvailabilityTemplate).order_by(AvailabilityTemplate.name)).scalars())


@router.get("/{template_id}", response_model=AvailabilityTemplateOut)
def get_template(template_id: str, db: Session = Depends(get_db)) -> AvailabilityTemplateOut:
    return _get_template(db, template_id)


@router.post("/", response_model=AvailabilityTemplateOut, status_code=status.HTTP_201_CREATED)
def create_template(payload: AvailabilityTemplateCreate, db: Session = Depends(get_db)) -> AvailabilityTemplateOut:
    existing = db.execute(
        select(AvailabilityTemplate).where(AvailabilityTemplate.name == payload.name)
    ).scalar_one_or_none()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A template named '{payload.name}' already exists.",
        )
    template = AvailabilityTemplate(**payload.model_dump(mode="json"))
    db.add(template)
    db.flush()
    log_activity(db, action="availability_template.created", entity_type="availability_template", entity_id=template.id)
    db.commit()
    db.refresh(template)
    return template


@router.put("/{template_id}", response_model=AvailabilityTemplateOut)
def update_template(
    template_id: str,
    payload: AvailabilityTemplateUpdate,
    db: Session = Depends(get_db),
) -> AvailabilityTemplateOut:
    template = _get_template(db, template_id)
    data = payload.model_dump(mode="json", exclude_unset=True)
    if "name" in data:
        existing = db.execute(
            select(AvailabilityTemplate).where(
                AvailabilityTemplate.name == data["name"],
                AvailabilityTemplate.id != template_id,
            )
        ).scalar_one_or_none()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A template named '{data['name']}' already exists.",
            )

    for key, value in data.items():
        if value is not None:
            setattr(template, key, value)
    if data:
        log_activity(
            db,
            action="availability_template.updated",
            entity_type="availability_template",
            entity_id=template.id,
            details={"fields": sorted(data)},
        )
    db.commit()
    db.refresh(template)
    return template


@router.delete("/{template_id}")
def delete_template(template_id: str, db: Session = Depends(get_db)) -> dict:
    template = _get_template(db, template_id)
    in_use = db.execute(
        select(ScheduleInstance.id).where(ScheduleInstance.availability_template_id == template_id).limit(1)
    ).scalar_one_or_none()
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Failed to delete template. It is in use by a schedule.",
        )
    log_activity(db, action="availability_template.deleted", entity_type="availability_template", entity_id=template.id)
    db.delete(template)
    db.commit()
    return {"success": True}
