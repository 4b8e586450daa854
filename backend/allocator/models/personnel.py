import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from allocator.db.base import Base


class PersonnelRole(str, Enum):
    lecturer = "LECTURER"
    teaching_assistant = "TEACHING_ASSISTANT"
    lab_technician = "LAB_TECHNICIAN"


class Personnel(Base):
    __tablename__ = "personnel"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    # Stored as role values, e.g. ["LECTURER", "TEACHING_ASSISTANT"].
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
