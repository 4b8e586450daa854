from allocator.models.activity_log import ActivityLog  # noqa: F401
from allocator.models.availability import AvailabilityTemplate  # noqa: F401
from allocator.models.course import ActivityTemplate, AttendeeLevel, Course  # noqa: F401
from allocator.models.personnel import Personnel, PersonnelRole  # noqa: F401
from allocator.models.program_structure import Batch, Group, Program, Section  # noqa: F401
from allocator.models.room import Room, RoomType  # noqa: F401
from allocator.models.schedule import (  # noqa: F401
    DayOfWeek,
    PersonnelPreference,
    ScheduleCourse,
    ScheduledEvent,
    ScheduleInstance,
    SchedulePersonnel,
    ScheduleRoom,
    ScheduleSection,
    ScheduleStatus,
    SpacingPreference,
    TimePreference,
)
