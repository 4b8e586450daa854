from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from allocator.models.course import AttendeeLevel
from allocator.models.schedule import SpacingPreference


class RequiredPersonnel(BaseModel):
    role: str
    count: int = Field(ge=1)


class SolverActivity(BaseModel):
    id: str
    templateId: str
    courseId: str
    duration_slots: int = Field(ge=1)
    required_room_type: str
    required_personnel: list[RequiredPersonnel] = Field(default_factory=list)
    attendee_level: AttendeeLevel
    attendee_id: str


class SolverPersonnel(BaseModel):
    id: str
    roles: list[str] = Field(default_factory=list)


class SolverRoom(BaseModel):
    id: str
    type: str


class SolverPreference(BaseModel):
    personnel_id: str
    activity_id: str
    rank: int = Field(ge=1)


class SolverTimePreference(BaseModel):
    time: str
    rank: int


class SolverRequest(BaseModel):
    activities: list[SolverActivity]
    personnel: list[SolverPersonnel]
    rooms: list[SolverRoom]
    preferences: list[SolverPreference] = Field(default_factory=list)
    time_slots: list[int]
    days: list[str]
    room_stickiness_weight: int = 0
    spacing_preference: SpacingPreference = SpacingPreference.none
    time_preferences: list[SolverTimePreference] = Field(default_factory=list)


class SolutionEntry(BaseModel):
    templateId: str = Field(min_length=1)
    room_id: str | None = None
    personnel_ids: list[str] = Field(default_factory=list)
    attendee_level: AttendeeLevel
    attendee_id: str = Field(min_length=1)
    start_slot: int = Field(ge=0)
    end_slot: int = Field(ge=0)

    model_config = {"extra": "ignore"}

    @model_validator(mode="after")
    def validate_slot_order(self) -> "SolutionEntry":
        if self.end_slot <= self.start_slot:
            raise ValueError("end_slot must be greater than start_slot")
        return self


class AllocationResult(BaseModel):
    schedule_instance_id: str
    status: str
    events_created: int
    message: str
