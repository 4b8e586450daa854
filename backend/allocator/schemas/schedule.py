from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from allocator.models.schedule import ScheduleStatus, SpacingPreference
from allocator.services.time_grid import parse_grid_time


class ScheduleInstanceCreate(BaseModel):
    name: str = Field(min_length=5, max_length=200)
    start_date: date
    end_date: date
    availability_template_id: str | None = Field(default=None, min_length=1, max_length=36)

    @model_validator(mode="after")
    def validate_dates(self) -> "ScheduleInstanceCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ScheduleInstanceOut(BaseModel):
    id: str
    name: str
    start_date: date
    end_date: date
    status: ScheduleStatus
    availability_template_id: str | None = None
    room_stickiness_weight: int | None = None
    spacing_preference: SpacingPreference | None = None

    model_config = {"from_attributes": True}


class PooledResources(BaseModel):
    course_ids: list[str] = Field(default_factory=list)
    section_ids: list[str] = Field(default_factory=list)
    personnel_ids: list[str] = Field(default_factory=list)
    room_ids: list[str] = Field(default_factory=list)


class ScheduleInstanceDetail(ScheduleInstanceOut):
    pooled: PooledResources = Field(default_factory=PooledResources)


class PooledResourcesUpdate(BaseModel):
    """Lists that are omitted keep their current pool; an empty list clears it."""

    course_ids: list[str] | None = None
    section_ids: list[str] | None = None
    personnel_ids: list[str] | None = None
    room_ids: list[str] | None = None


class AvailabilityTemplateAssignment(BaseModel):
    availability_template_id: str = Field(min_length=1, max_length=36)


class TimePreferenceIn(BaseModel):
    time: str
    rank: int = Field(ge=1)

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return parse_grid_time(value)


class SolverSettingsUpdate(BaseModel):
    room_stickiness_weight: int | None = Field(default=None, ge=0, le=100)
    spacing_preference: SpacingPreference | None = None
    time_preferences: list[TimePreferenceIn] | None = Field(default=None, max_length=48)

    @field_validator("time_preferences")
    @classmethod
    def validate_unique_times(cls, value: list[TimePreferenceIn] | None) -> list[TimePreferenceIn] | None:
        if value is None:
            return None
        times = [item.time for item in value]
        if len(set(times)) != len(times):
            raise ValueError("Each time may only be ranked once")
        return value


class PreferenceIn(BaseModel):
    activity_template_id: str = Field(min_length=1, max_length=36)
    rank: int = Field(ge=1)


class PreferenceSubmission(BaseModel):
    preferences: list[PreferenceIn] = Field(default_factory=list, max_length=500)

    @model_validator(mode="after")
    def validate_unique_entries(self) -> "PreferenceSubmission":
        template_ids = [item.activity_template_id for item in self.preferences]
        if len(set(template_ids)) != len(template_ids):
            raise ValueError("Each activity may only be ranked once")
        ranks = [item.rank for item in self.preferences]
        if len(set(ranks)) != len(ranks):
            raise ValueError("Ranks must be unique")
        return self


class PreferenceOut(BaseModel):
    personnel_id: str
    schedule_instance_id: str
    activity_template_id: str
    rank: int

    model_config = {"from_attributes": True}


class ScheduleOverviewOut(BaseModel):
    id: str
    name: str
    status: Literal["NOT_SCHEDULED", "SEMI_ALLOCATED", "COMPLETED"]
    lifecycle_status: ScheduleStatus
    total_activities_to_schedule: int
    currently_scheduled_events: int
