"""Seed a small institution and one draft schedule for the allocator.

Run:
  PYTHONPATH=backend python scripts/seed_demo_data.py
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from allocator.db.bootstrap import ensure_runtime_schema_compatibility
from allocator.db.session import SessionLocal
from allocator.models.availability import AvailabilityTemplate
from allocator.models.course import ActivityTemplate, AttendeeLevel, Course
from allocator.models.personnel import Personnel, PersonnelRole
from allocator.models.program_structure import Batch, Group, Program, Section
from allocator.models.room import Room, RoomType
from allocator.models.schedule import (
    ScheduleCourse,
    ScheduleInstance,
    SchedulePersonnel,
    ScheduleRoom,
    ScheduleSection,
)

EMAIL_DOMAIN = os.getenv("SEED_EMAIL_DOMAIN", "university.edu").strip().lower() or "university.edu"
SCHEDULE_NAME = os.getenv("SEED_SCHEDULE_NAME", "Autumn Term 2026").strip() or "Autumn Term 2026"

PROGRAM_NAME = "B.Sc. Computer Science"
BATCH_NAME = "2026"
SECTION_NAMES = ["A", "B", "C"]
GROUP_NAMES = ["G1", "G2"]
WORKING_DAYS = ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY"]

ROOMS: list[tuple[str, str, int, RoomType]] = [
    ("LH-101", "Main Block", 120, RoomType.lecture_hall),
    ("LH-102", "Main Block", 120, RoomType.lecture_hall),
    ("CR-201", "Main Block", 60, RoomType.classroom),
    ("LAB-1", "Science Block", 30, RoomType.lab),
    ("LAB-2", "Science Block", 30, RoomType.lab),
]

PERSONNEL: list[tuple[str, list[PersonnelRole]]] = [
    ("Ada Lovelace", [PersonnelRole.lecturer]),
    ("Alan Turing", [PersonnelRole.lecturer]),
    ("Grace Hopper", [PersonnelRole.lecturer, PersonnelRole.teaching_assistant]),
    ("Edsger Dijkstra", [PersonnelRole.teaching_assistant]),
    ("Barbara Liskov", [PersonnelRole.teaching_assistant, PersonnelRole.lab_technician]),
]


@dataclass(frozen=True)
class TemplateSpec:
    title: str
    duration_minutes: int
    room_type: RoomType
    roles: tuple[tuple[PersonnelRole, int], ...]
    attendee_level: AttendeeLevel


CURRICULUM: dict[tuple[str, str], list[TemplateSpec]] = {
    ("CS101", "Introduction to Programming"): [
        TemplateSpec("Lecture", 90, RoomType.lecture_hall, ((PersonnelRole.lecturer, 1),), AttendeeLevel.section),
        TemplateSpec(
            "Lab",
            120,
            RoomType.lab,
            ((PersonnelRole.teaching_assistant, 1), (PersonnelRole.lab_technician, 1)),
            AttendeeLevel.group,
        ),
    ],
    ("CS102", "Discrete Structures"): [
        TemplateSpec("Lecture", 60, RoomType.lecture_hall, ((PersonnelRole.lecturer, 1),), AttendeeLevel.section),
        TemplateSpec("Tutorial", 60, RoomType.classroom, ((PersonnelRole.teaching_assistant, 1),), AttendeeLevel.section),
    ],
}


def _email_for(name: str) -> str:
    local = ".".join(part.lower() for part in name.split())
    return f"{local}@{EMAIL_DOMAIN}"


def upsert_structure(session: Session) -> list[Section]:
    program = session.execute(select(Program).where(Program.name == PROGRAM_NAME)).scalar_one_or_none()
    if program is None:
        program = Program(name=PROGRAM_NAME)
        session.add(program)
        session.flush()

    batch = session.execute(
        select(Batch).where(Batch.program_id == program.id, Batch.name == BATCH_NAME)
    ).scalar_one_or_none()
    if batch is None:
        batch = Batch(program_id=program.id, name=BATCH_NAME)
        session.add(batch)
        session.flush()

    sections: list[Section] = []
    for section_name in SECTION_NAMES:
        section = session.execute(
            select(Section).where(Section.batch_id == batch.id, Section.name == section_name)
        ).scalar_one_or_none()
        if section is None:
            section = Section(batch_id=batch.id, name=section_name)
            session.add(section)
            session.flush()
        existing_groups = set(
            session.execute(select(Group.name).where(Group.section_id == section.id)).scalars()
        )
        for group_name in GROUP_NAMES:
            if group_name not in existing_groups:
                session.add(Group(section_id=section.id, name=group_name))
        sections.append(section)
    return sections


def upsert_rooms(session: Session) -> list[Room]:
    rooms: list[Room] = []
    for name, building, capacity, room_type in ROOMS:
        room = session.execute(select(Room).where(Room.name == name)).scalar_one_or_none()
        if room is None:
            room = Room(name=name, building=building, capacity=capacity, type=room_type)
            session.add(room)
        else:
            room.building = building
            room.capacity = capacity
            room.type = room_type
        rooms.append(room)
    session.flush()
    return rooms


def upsert_personnel(session: Session) -> list[Personnel]:
    people: list[Personnel] = []
    for name, roles in PERSONNEL:
        email = _email_for(name)
        person = session.execute(select(Personnel).where(Personnel.email == email)).scalar_one_or_none()
        if person is None:
            person = Personnel(name=name, email=email, roles=[role.value for role in roles])
            session.add(person)
        else:
            person.name = name
            person.roles = [role.value for role in roles]
        people.append(person)
    session.flush()
    return people


def upsert_courses(session: Session) -> list[Course]:
    courses: list[Course] = []
    for (code, title), templates in CURRICULUM.items():
        course = session.execute(select(Course).where(Course.code == code)).scalar_one_or_none()
        if course is None:
            course = Course(code=code, title=title)
            session.add(course)
            session.flush()
        existing = {
            item.title: item
            for item in session.execute(select(ActivityTemplate).where(ActivityTemplate.course_id == course.id)).scalars()
        }
        for position, blueprint in enumerate(templates):
            template = existing.get(blueprint.title) or ActivityTemplate(course_id=course.id, title=blueprint.title)
            template.duration_minutes = blueprint.duration_minutes
            template.required_room_type = blueprint.room_type
            template.required_personnel = [{"role": role.value, "count": count} for role, count in blueprint.roles]
            template.attendee_level = blueprint.attendee_level
            template.position = position
            session.add(template)
        courses.append(course)
    session.flush()
    return courses


def upsert_availability_template(session: Session) -> AvailabilityTemplate:
    name = "Weekdays 09:00-17:00"
    blocks = [{"day_of_week": day, "start_time": "09:00", "end_time": "17:00"} for day in WORKING_DAYS]
    template = session.execute(
        select(AvailabilityTemplate).where(AvailabilityTemplate.name == name)
    ).scalar_one_or_none()
    if template is None:
        template = AvailabilityTemplate(name=name, available_slots=blocks)
        session.add(template)
    else:
        template.available_slots = blocks
    session.flush()
    return template


def upsert_schedule(
    session: Session,
    template: AvailabilityTemplate,
    courses: list[Course],
    sections: list[Section],
    people: list[Personnel],
    rooms: list[Room],
) -> ScheduleInstance:
    schedule = session.execute(
        select(ScheduleInstance).where(ScheduleInstance.name == SCHEDULE_NAME)
    ).scalar_one_or_none()
    if schedule is None:
        schedule = ScheduleInstance(
            name=SCHEDULE_NAME,
            start_date=date(2026, 9, 1),
            end_date=date(2026, 12, 18),
            availability_template_id=template.id,
        )
        session.add(schedule)
        session.flush()

    pools = (
        (ScheduleCourse, "course_id", courses),
        (ScheduleSection, "section_id", sections),
        (SchedulePersonnel, "personnel_id", people),
        (ScheduleRoom, "room_id", rooms),
    )
    for association, column, items in pools:
        pooled = set(
            session.execute(
                select(getattr(association, column)).where(association.schedule_instance_id == schedule.id)
            ).scalars()
        )
        for item in items:
            if item.id not in pooled:
                session.add(association(schedule_instance_id=schedule.id, **{column: item.id}))
    return schedule


def main() -> None:
    ensure_runtime_schema_compatibility()
    with SessionLocal() as session:
        sections = upsert_structure(session)
        rooms = upsert_rooms(session)
        people = upsert_personnel(session)
        courses = upsert_courses(session)
        template = upsert_availability_template(session)
        schedule = upsert_schedule(session, template, courses, sections, people, rooms)
        session.commit()

        schedule_id = schedule.id
        course_count = len(courses)
        section_count = len(sections)
        personnel_count = len(people)
        room_count = len(rooms)
        template_count = session.execute(select(func.count(ActivityTemplate.id))).scalar_one()
        group_count = session.execute(select(func.count(Group.id))).scalar_one()

    print("Demo data seeded successfully.")
    print("")
    print(f"Schedule: {SCHEDULE_NAME} ({schedule_id})")
    print(f"Courses: {course_count} with {template_count} activity templates")
    print(f"Sections: {section_count} with {group_count} groups")
    print(f"Personnel: {personnel_count}")
    print(f"Rooms: {room_count}")


if __name__ == "__main__":
    main()
