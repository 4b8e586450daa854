from __future__ import annotations

import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from allocator.db.base import Base


class DayOfWeek(str, Enum):
    monday = "MONDAY"
    tuesday = "TUESDAY"
    wednesday = "WEDNESDAY"
    thursday = "THURSDAY"
    friday = "FRIDAY"
    saturday = "SATURDAY"
    sunday = "SUNDAY"


class ScheduleStatus(str, Enum):
    draft = "DRAFT"
    preferences_open = "PREFERENCES_OPEN"
    locked = "LOCKED"
    completed = "COMPLETED"


class SpacingPreference(str, Enum):
    none = "NONE"
    spread_out = "SPREAD_OUT"
    compact = "COMPACT"


class ScheduleInstance(Base):
    __tablename__ = "schedule_instances"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), unique=True, index=True, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[ScheduleStatus] = mapped_column(
        SAEnum(ScheduleStatus, name="schedule_status"),
        nullable=False,
        default=ScheduleStatus.draft,
    )
    availability_template_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    room_stickiness_weight: Mapped[int | None] = mapped_column(Integer, nullable=True)
    spacing_preference: Mapped[SpacingPreference | None] = mapped_column(
        SAEnum(SpacingPreference, name="spacing_preference"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class ScheduleCourse(Base):
    __tablename__ = "schedule_courses"
    __table_args__ = (
        UniqueConstraint("schedule_instance_id", "course_id", name="uq_schedule_courses_schedule_course"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    schedule_instance_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(String(36), nullable=False)


class ScheduleSection(Base):
    __tablename__ = "schedule_sections"
    __table_args__ = (
        UniqueConstraint("schedule_instance_id", "section_id", name="uq_schedule_sections_schedule_section"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    schedule_instance_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    section_id: Mapped[str] = mapped_column(String(36), nullable=False)


class SchedulePersonnel(Base):
    __tablename__ = "schedule_personnel"
    __table_args__ = (
        UniqueConstraint("schedule_instance_id", "personnel_id", name="uq_schedule_personnel_schedule_personnel"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    schedule_instance_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    personnel_id: Mapped[str] = mapped_column(String(36), nullable=False)


class ScheduleRoom(Base):
    __tablename__ = "schedule_rooms"
    __table_args__ = (
        UniqueConstraint("schedule_instance_id", "room_id", name="uq_schedule_rooms_schedule_room"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    schedule_instance_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    room_id: Mapped[str] = mapped_column(String(36), nullable=False)


class PersonnelPreference(Base):
    __tablename__ = "personnel_preferences"
    __table_args__ = (
        UniqueConstraint(
            "personnel_id",
            "schedule_instance_id",
            "activity_template_id",
            name="uq_personnel_preferences_identity",
        ),
        CheckConstraint("rank >= 1", name="ck_personnel_preferences_rank_positive"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    personnel_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    schedule_instance_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    activity_template_id: Mapped[str] = mapped_column(String(36), nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class TimePreference(Base):
    __tablename__ = "time_preferences"
    __table_args__ = (
        UniqueConstraint("schedule_instance_id", "time", name="uq_time_preferences_schedule_time"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    schedule_instance_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    time: Mapped[str] = mapped_column(String(5), nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)


class ScheduledEvent(Base):
    __tablename__ = "scheduled_events"
    __table_args__ = (
        CheckConstraint(
            "(attendee_section_id IS NULL) <> (attendee_group_id IS NULL)",
            name="ck_scheduled_events_single_attendee",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    schedule_instance_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    activity_template_id: Mapped[str] = mapped_column(String(36), nullable=False)
    day_of_week: Mapped[DayOfWeek] = mapped_column(SAEnum(DayOfWeek, name="day_of_week"), nullable=False, index=True)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    room_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    personnel_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    attendee_section_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    attendee_group_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
