import pytest

from allocator.services.overview import allocation_status, schedule_overview


@pytest.mark.parametrize(
    ("expected", "scheduled", "status"),
    [
        (0, 0, "NOT_SCHEDULED"),
        (4, 0, "NOT_SCHEDULED"),
        (4, 2, "SEMI_ALLOCATED"),
        (4, 4, "COMPLETED"),
    ],
)
def test_allocation_status(expected, scheduled, status):
    assert allocation_status(expected, scheduled) == status


def test_overview_counts_expected_tasks(db_session, scenario):
    [row] = schedule_overview(db_session)
    assert row.id == scenario.schedule_id
    assert row.total_activities_to_schedule == 1
    assert row.currently_scheduled_events == 0
    assert row.status == "NOT_SCHEDULED"
    assert row.lifecycle_status.value == "DRAFT"
