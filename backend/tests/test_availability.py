import pytest
from pydantic import ValidationError

from allocator.models.schedule import DayOfWeek
from allocator.schemas.availability import AvailabilityBlock, AvailabilityTemplateCreate
from allocator.services.availability import resolve_availability


def block(day: str, start: str, end: str) -> dict:
    return {"day_of_week": day, "start_time": start, "end_time": end}


def test_single_block_expands_to_global_slots():
    resolved = resolve_availability([block("MONDAY", "09:00", "11:00")])
    assert resolved.time_slots == (18, 19, 20, 21)
    assert resolved.days == (DayOfWeek.monday,)
    assert not resolved.is_empty


def test_overlapping_blocks_collapse_to_their_union():
    resolved = resolve_availability(
        [block("MONDAY", "09:00", "11:00"), block("MONDAY", "10:00", "12:00")]
    )
    assert resolved.time_slots == (18, 19, 20, 21, 22, 23)


def test_days_follow_week_order_and_slots_are_sorted():
    resolved = resolve_availability(
        [block("FRIDAY", "09:00", "09:30"), block("MONDAY", "09:00", "09:30")]
    )
    assert resolved.days == (DayOfWeek.monday, DayOfWeek.friday)
    assert resolved.time_slots == (18, 4 * 48 + 18)


def test_no_blocks_is_empty():
    resolved = resolve_availability([])
    assert resolved.is_empty
    assert resolved.days == ()


def test_block_schema_rejects_off_grid_times():
    with pytest.raises(ValidationError):
        AvailabilityBlock(day_of_week="MONDAY", start_time="09:15", end_time="10:00")


def test_block_schema_rejects_inverted_window():
    with pytest.raises(ValidationError):
        AvailabilityBlock(day_of_week="MONDAY", start_time="10:00", end_time="10:00")


def test_template_name_is_trimmed():
    payload = AvailabilityTemplateCreate(name="  Weekdays  ", available_slots=[block("MONDAY", "09:00", "17:00")])
    assert payload.name == "Weekdays"
    assert payload.available_slots[0].day_of_week is DayOfWeek.monday
