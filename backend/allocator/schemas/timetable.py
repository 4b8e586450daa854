from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from allocator.models.room import RoomType
from allocator.models.schedule import DayOfWeek
from allocator.schemas.schedule import ScheduleInstanceOut
from allocator.services.time_grid import parse_grid_time, time_to_slot


class ScheduledEventOut(BaseModel):
    id: str
    schedule_instance_id: str
    activity_template_id: str
    day_of_week: DayOfWeek
    start_time: str
    end_time: str
    room_id: str | None = None
    personnel_ids: list[str] = Field(default_factory=list)
    attendee_section_id: str | None = None
    attendee_group_id: str | None = None

    model_config = {"from_attributes": True}


class PersonnelOut(BaseModel):
    id: str
    name: str
    email: str
    roles: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class RoomOut(BaseModel):
    id: str
    name: str
    building: str
    capacity: int
    type: RoomType

    model_config = {"from_attributes": True}


class TimeWindow(BaseModel):
    day: DayOfWeek
    start_time: str
    end_time: str

    @model_validator(mode="after")
    def validate_window(self) -> "TimeWindow":
        self.start_time = parse_grid_time(self.start_time)
        self.end_time = parse_grid_time(self.end_time)
        if time_to_slot(self.end_time) <= time_to_slot(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class FreeResourcesOut(BaseModel):
    day: DayOfWeek
    start_time: str
    end_time: str
    available_personnel: list[PersonnelOut] = Field(default_factory=list)
    available_rooms: list[RoomOut] = Field(default_factory=list)


class TimetableDetailsOut(BaseModel):
    schedule: ScheduleInstanceOut
    scheduled_events: list[ScheduledEventOut] = Field(default_factory=list)
    all_personnel: list[PersonnelOut] = Field(default_factory=list)
    all_rooms: list[RoomOut] = Field(default_factory=list)


class EventResourcesUpdate(BaseModel):
    """Partial update of an event's resources.

    Omitted fields are left untouched; ``room_id: null`` or ``personnel_ids: []``
    clears the assignment.
    """

    room_id: str | None = Field(default=None, max_length=36)
    personnel_ids: list[str] | None = Field(default=None, max_length=50)

    @model_validator(mode="after")
    def validate_personnel(self) -> "EventResourcesUpdate":
        if self.personnel_ids is not None and len(set(self.personnel_ids)) != len(self.personnel_ids):
            raise ValueError("personnel_ids must not contain duplicates")
        return self
