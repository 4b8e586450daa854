from pydantic import BaseModel, Field, field_validator, model_validator

from allocator.models.schedule import DayOfWeek
from allocator.services.time_grid import parse_grid_time, time_to_slot


class AvailabilityBlock(BaseModel):
    day_of_week: DayOfWeek
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_grid_time(cls, value: str) -> str:
        return parse_grid_time(value)

    @model_validator(mode="after")
    def validate_order(self) -> "AvailabilityBlock":
        if time_to_slot(self.end_time) <= time_to_slot(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


def _normalize_template_name(value: str) -> str:
    trimmed = value.strip()
    if len(trimmed) < 3:
        raise ValueError("Template name must have at least 3 characters")
    return trimmed


class AvailabilityTemplateBase(BaseModel):
    name: str = Field(min_length=3, max_length=200)
    available_slots: list[AvailabilityBlock] = Field(default_factory=list, max_length=200)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        return _normalize_template_name(value)


class AvailabilityTemplateCreate(AvailabilityTemplateBase):
    pass


class AvailabilityTemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=3, max_length=200)
    available_slots: list[AvailabilityBlock] | None = Field(default=None, max_length=200)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str | None) -> str:
        if value is None:
            raise ValueError("Template name cannot be null")
        return _normalize_template_name(value)


class AvailabilityTemplateOut(AvailabilityTemplateBase):
    id: str

    model_config = {"from_attributes": True}
