import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from allocator.db.base import Base
from allocator.models.room import RoomType


class AttendeeLevel(str, Enum):
    section = "SECTION"
    group = "GROUP"


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class ActivityTemplate(Base):
    __tablename__ = "activity_templates"
    __table_args__ = (
        UniqueConstraint("course_id", "title", name="uq_activity_templates_course_title"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    required_room_type: Mapped[RoomType] = mapped_column(SAEnum(RoomType, name="room_type"), nullable=False)
    # [{"role": "LECTURER", "count": 1}, ...]
    required_personnel: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    attendee_level: Mapped[AttendeeLevel] = mapped_column(
        SAEnum(AttendeeLevel, name="attendee_level"),
        nullable=False,
        default=AttendeeLevel.section,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
