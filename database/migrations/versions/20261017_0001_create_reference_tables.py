"""create reference tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None

room_type = sa.Enum("lecture_hall", "classroom", "lab", "seminar_room", name="room_type")
attendee_level = sa.Enum("section", "group", name="attendee_level")


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())]
    if with_updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return columns


def upgrade() -> None:
    op.create_table(
        "rooms",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("building", sa.String(length=200), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("type", room_type, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_rooms_name", "rooms", ["name"], unique=True)

    op.create_table(
        "personnel",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_personnel_email", "personnel", ["email"], unique=True)

    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_courses_code", "courses", ["code"], unique=True)

    op.create_table(
        "activity_templates",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("course_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("required_room_type", room_type, nullable=False),
        sa.Column("required_personnel", sa.JSON(), nullable=False),
        sa.Column("attendee_level", attendee_level, nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(with_updated=False),
        sa.UniqueConstraint("course_id", "title", name="uq_activity_templates_course_title"),
    )
    op.create_index("ix_activity_templates_course_id", "activity_templates", ["course_id"])

    op.create_table(
        "programs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        *_timestamps(with_updated=False),
    )
    op.create_table(
        "batches",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("program_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        *_timestamps(with_updated=False),
        sa.UniqueConstraint("program_id", "name", name="uq_batches_program_name"),
    )
    op.create_index("ix_batches_program_id", "batches", ["program_id"])
    op.create_table(
        "sections",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("batch_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        *_timestamps(with_updated=False),
        sa.UniqueConstraint("batch_id", "name", name="uq_sections_batch_name"),
    )
    op.create_index("ix_sections_batch_id", "sections", ["batch_id"])
    op.create_table(
        "groups",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("section_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        *_timestamps(with_updated=False),
        sa.UniqueConstraint("section_id", "name", name="uq_groups_section_name"),
    )
    op.create_index("ix_groups_section_id", "groups", ["section_id"])

    op.create_table(
        "availability_templates",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("available_slots", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_availability_templates_name", "availability_templates", ["name"], unique=True)

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_entity_id", "activity_logs", ["entity_id"])


def downgrade() -> None:
    op.drop_index("ix_activity_logs_entity_id", table_name="activity_logs")
    op.drop_index("ix_activity_logs_action", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_availability_templates_name", table_name="availability_templates")
    op.drop_table("availability_templates")
    op.drop_index("ix_groups_section_id", table_name="groups")
    op.drop_table("groups")
    op.drop_index("ix_sections_batch_id", table_name="sections")
    op.drop_table("sections")
    op.drop_index("ix_batches_program_id", table_name="batches")
    op.drop_table("batches")
    op.drop_table("programs")
    op.drop_index("ix_activity_templates_course_id", table_name="activity_templates")
    op.drop_table("activity_templates")
    op.drop_index("ix_courses_code", table_name="courses")
    op.drop_table("courses")
    op.drop_index("ix_personnel_email", table_name="personnel")
    op.drop_table("personnel")
    op.drop_index("ix_rooms_name", table_name="rooms")
    op.drop_table("rooms")
    attendee_level.drop(op.get_bind(), checkfirst=True)
    room_type.drop(op.get_bind(), checkfirst=True)
