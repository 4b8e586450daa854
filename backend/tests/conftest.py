import os
import tempfile
from dataclasses import dataclass
from datetime import date

# The app bootstraps its own engine on startup; point it at a throwaway file before anything imports it.
_BOOTSTRAP_DIR = tempfile.mkdtemp(prefix="allocator-tests-")
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_BOOTSTRAP_DIR}/bootstrap.db"
os.environ["SOLVER_API_URL"] = ""

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from allocator.api.deps import get_db, get_solver_client  # noqa: E402
from allocator.db.base import Base  # noqa: E402
from allocator.main import app  # noqa: E402
from allocator.models.availability import AvailabilityTemplate  # noqa: E402
from allocator.models.course import ActivityTemplate, AttendeeLevel, Course  # noqa: E402
from allocator.models.personnel import Personnel, PersonnelRole  # noqa: E402
from allocator.models.program_structure import Batch, Program, Section  # noqa: E402
from allocator.models.room import Room, RoomType  # noqa: E402
from allocator.models.schedule import (  # noqa: E402
    ScheduleCourse,
    ScheduleInstance,
    SchedulePersonnel,
    ScheduleRoom,
    ScheduleSection,
)
from allocator.services.solver_bridge import SolverClient  # noqa: E402

SOLVER_URL = "http://solver.test"


@dataclass
class Scenario:
    """Monday 09:00-11:00, one section, one 60 minute lecture."""

    schedule_id: str
    availability_template_id: str
    course_id: str
    template_id: str
    section_id: str
    personnel_ids: list[str]
    room_ids: list[str]


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def solver_handler():
    """Replace ``solver_handler.respond`` in a test to script the solver's answer."""

    class Handler:
        def __init__(self) -> None:
            self.requests: list[httpx.Request] = []
            self.respond = lambda request: httpx.Response(200, json=[])

        def __call__(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.respond(request)

    return Handler()


@pytest.fixture()
def solver_client(solver_handler):
    return SolverClient(SOLVER_URL, timeout_seconds=5, transport=httpx.MockTransport(solver_handler))


@pytest.fixture()
def client(session_factory, solver_client):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_solver_client] = lambda: solver_client

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def seed_scenario(db) -> Scenario:
    availability = AvailabilityTemplate(
        name="Monday morning",
        available_slots=[{"day_of_week": "MONDAY", "start_time": "09:00", "end_time": "11:00"}],
    )
    course = Course(code="CS101", title="Introduction to Programming")
    program = Program(name="B.Sc. Computer Science")
    db.add_all([availability, course, program])
    db.flush()

    template = ActivityTemplate(
        course_id=course.id,
        title="Lecture",
        duration_minutes=60,
        required_room_type=RoomType.lecture_hall,
        required_personnel=[{"role": "LECTURER", "count": 1}],
        attendee_level=AttendeeLevel.section,
        position=0,
    )
    batch = Batch(program_id=program.id, name="2026")
    db.add_all([template, batch])
    db.flush()

    section = Section(batch_id=batch.id, name="A")
    people = [
        Personnel(name="Ada Lovelace", email="ada@university.edu", roles=[PersonnelRole.lecturer.value]),
        Personnel(name="Alan Turing", email="alan@university.edu", roles=[PersonnelRole.lecturer.value]),
    ]
    rooms = [
        Room(name="LH-101", building="Main", capacity=120, type=RoomType.lecture_hall),
        Room(name="LH-102", building="Main", capacity=120, type=RoomType.lecture_hall),
    ]
    schedule = ScheduleInstance(
        name="Autumn Term 2026",
        start_date=date(2026, 9, 1),
        end_date=date(2026, 12, 18),
        availability_template_id=availability.id,
    )
    db.add_all([section, schedule, *people, *rooms])
    db.flush()

    db.add_all(
        [
            ScheduleCourse(schedule_instance_id=schedule.id, course_id=course.id),
            ScheduleSection(schedule_instance_id=schedule.id, section_id=section.id),
            *[SchedulePersonnel(schedule_instance_id=schedule.id, personnel_id=person.id) for person in people],
            *[ScheduleRoom(schedule_instance_id=schedule.id, room_id=room.id) for room in rooms],
        ]
    )
    db.commit()

    return Scenario(
        schedule_id=schedule.id,
        availability_template_id=availability.id,
        course_id=course.id,
        template_id=template.id,
        section_id=section.id,
        personnel_ids=[person.id for person in people],
        room_ids=[room.id for room in rooms],
    )


@pytest.fixture()
def scenario(db_session) -> Scenario:
    return seed_scenario(db_session)


def solution_entry(scenario: Scenario, start_slot: int = 18, end_slot: int = 20, **overrides) -> dict:
    entry = {
        "templateId": scenario.template_id,
        "room_id": scenario.room_ids[0],
        "personnel_ids": [scenario.personnel_ids[0]],
        "attendee_level": "SECTION",
        "attendee_id": scenario.section_id,
        "start_slot": start_slot,
        "end_slot": end_slot,
    }
    entry.update(overrides)
    return entry
