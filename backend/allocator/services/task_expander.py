"""Expand pooled courses and sections into the flat task list the solver places.

Every activity template is fanned out against the pooled sections. SECTION
templates yield one task per section; GROUP templates yield one task per group
of each section. The attendee unit travels as a tagged scope so downstream code
never branches on raw level strings.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from allocator.models.course import ActivityTemplate, AttendeeLevel, Course
from allocator.models.program_structure import Group, Section
from allocator.models.schedule import ScheduleCourse, ScheduleSection
from allocator.services.time_grid import SLOT_MINUTES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionScope:
    section_id: str

    @property
    def level(self) -> AttendeeLevel:
        return AttendeeLevel.section

    @property
    def attendee_id(self) -> str:
        return self.section_id

    def as_event_columns(self) -> dict[str, str | None]:
        return {"attendee_section_id": self.section_id, "attendee_group_id": None}


@dataclass(frozen=True)
class GroupScope:
    group_id: str

    @property
    def level(self) -> AttendeeLevel:
        return AttendeeLevel.group

    @property
    def attendee_id(self) -> str:
        return self.group_id

    def as_event_columns(self) -> dict[str, str | None]:
        return {"attendee_section_id": None, "attendee_group_id": self.group_id}


AttendeeScope = SectionScope | GroupScope


def scope_for(level: AttendeeLevel | str, attendee_id: str) -> AttendeeScope:
    if AttendeeLevel(level) is AttendeeLevel.section:
        return SectionScope(attendee_id)
    return GroupScope(attendee_id)


@dataclass(frozen=True)
class ExpandedTask:
    task_id: str
    template_id: str
    course_id: str
    duration_slots: int
    required_room_type: str
    required_personnel: tuple[Mapping, ...]
    scope: AttendeeScope

    @property
    def key(self) -> tuple[str, AttendeeScope]:
        return self.template_id, self.scope

    def to_payload(self) -> dict:
        return {
            "id": self.task_id,
            "templateId": self.template_id,
            "courseId": self.course_id,
            "duration_slots": self.duration_slots,
            "required_room_type": self.required_room_type,
            "required_personnel": [dict(item) for item in self.required_personnel],
            "attendee_level": self.scope.level.value,
            "attendee_id": self.scope.attendee_id,
        }


@dataclass
class PooledStructure:
    courses: list[Course] = field(default_factory=list)
    templates_by_course: dict[str, list[ActivityTemplate]] = field(default_factory=dict)
    sections: list[Section] = field(default_factory=list)
    groups_by_section: dict[str, list[Group]] = field(default_factory=dict)


def duration_in_slots(duration_minutes: int) -> int:
    return math.ceil(duration_minutes / SLOT_MINUTES)


def _task_id(template_id: str, attendee_id: str) -> str:
    return f"{template_id}_{attendee_id}"


def _build_task(course: Course, template: ActivityTemplate, scope: AttendeeScope) -> ExpandedTask:
    room_type = template.required_room_type
    return ExpandedTask(
        task_id=_task_id(template.id, scope.attendee_id),
        template_id=template.id,
        course_id=course.id,
        duration_slots=duration_in_slots(template.duration_minutes),
        required_room_type=getattr(room_type, "value", room_type),
        required_personnel=tuple(dict(item) for item in template.required_personnel or []),
        scope=scope,
    )


def expand_tasks(
    courses: Sequence[Course],
    templates_by_course: Mapping[str, Sequence[ActivityTemplate]],
    sections: Sequence[Section],
    groups_by_section: Mapping[str, Sequence[Group]],
) -> list[ExpandedTask]:
    """Iterate courses -> templates -> sections -> groups in a stable order.

    Identical inputs always yield the same tasks in the same order, regardless
    of the order the caller passes them in.
    """
    ordered_courses = sorted(courses, key=lambda item: (item.code, item.id))
    ordered_sections = sorted(sections, key=lambda item: (item.name, item.id))

    tasks: list[ExpandedTask] = []
    for course in ordered_courses:
        templates = sorted(templates_by_course.get(course.id, ()), key=lambda item: (item.position, item.id))
        for template in templates:
            level = AttendeeLevel(template.attendee_level)
            for section in ordered_sections:
                if level is AttendeeLevel.section:
                    tasks.append(_build_task(course, template, SectionScope(section.id)))
                    continue

                groups = sorted(groups_by_section.get(section.id, ()), key=lambda item: (item.name, item.id))
                if not groups:
                    # Group-level activity on a section without groups contributes nothing.
                    logger.debug(
                        "Template %s is group-level but section %s has no groups; no tasks emitted",
                        template.id,
                        section.id,
                    )
                    continue
                for group in groups:
                    tasks.append(_build_task(course, template, GroupScope(group.id)))
    return tasks


def _group_by(items: Iterable, attribute: str) -> dict[str, list]:
    grouped: dict[str, list] = defaultdict(list)
    for item in items:
        grouped[getattr(item, attribute)].append(item)
    return dict(grouped)


def load_pooled_structure(db: Session, schedule_id: str) -> PooledStructure:
    course_ids = select(ScheduleCourse.course_id).where(ScheduleCourse.schedule_instance_id == schedule_id)
    section_ids = select(ScheduleSection.section_id).where(ScheduleSection.schedule_instance_id == schedule_id)

    courses = list(db.execute(select(Course).where(Course.id.in_(course_ids))).scalars())
    sections = list(db.execute(select(Section).where(Section.id.in_(section_ids))).scalars())

    templates = []
    if courses:
        templates = db.execute(
            select(ActivityTemplate).where(ActivityTemplate.course_id.in_([course.id for course in courses]))
        ).scalars()
    groups = []
    if sections:
        groups = db.execute(
            select(Group).where(Group.section_id.in_([section.id for section in sections]))
        ).scalars()

    return PooledStructure(
        courses=courses,
        templates_by_course=_group_by(templates, "course_id"),
        sections=sections,
        groups_by_section=_group_by(groups, "section_id"),
    )


def expand_schedule_tasks(db: Session, schedule_id: str) -> list[ExpandedTask]:
    pooled = load_pooled_structure(db, schedule_id)
    return expand_tasks(
        pooled.courses,
        pooled.templates_by_course,
        pooled.sections,
        pooled.groups_by_section,
    )
