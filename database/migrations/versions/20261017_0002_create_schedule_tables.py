"""create schedule tables

Revision ID: 20261017_0002
Revises: 20261017_0001
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261017_0002"
down_revision = "20261017_0001"
branch_labels = None
depends_on = None

schedule_status = sa.Enum("draft", "preferences_open", "locked", "completed", name="schedule_status")
spacing_preference = sa.Enum("none", "spread_out", "compact", name="spacing_preference")
day_of_week = sa.Enum(
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday", name="day_of_week"
)

POOL_TABLES = (
    ("schedule_courses", "course_id", "uq_schedule_courses_schedule_course"),
    ("schedule_sections", "section_id", "uq_schedule_sections_schedule_section"),
    ("schedule_personnel", "personnel_id", "uq_schedule_personnel_schedule_personnel"),
    ("schedule_rooms", "room_id", "uq_schedule_rooms_schedule_room"),
)


def upgrade() -> None:
    op.create_table(
        "schedule_instances",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", schedule_status, nullable=False),
        sa.Column("availability_template_id", sa.String(length=36), nullable=True),
        sa.Column("room_stickiness_weight", sa.Integer(), nullable=True),
        sa.Column("spacing_preference", spacing_preference, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_schedule_instances_name", "schedule_instances", ["name"], unique=True)
    op.create_index(
        "ix_schedule_instances_availability_template_id",
        "schedule_instances",
        ["availability_template_id"],
    )

    for table_name, column_name, constraint_name in POOL_TABLES:
        op.create_table(
            table_name,
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("schedule_instance_id", sa.String(length=36), nullable=False),
            sa.Column(column_name, sa.String(length=36), nullable=False),
            sa.UniqueConstraint("schedule_instance_id", column_name, name=constraint_name),
        )
        op.create_index(f"ix_{table_name}_schedule_instance_id", table_name, ["schedule_instance_id"])

    op.create_table(
        "personnel_preferences",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("personnel_id", sa.String(length=36), nullable=False),
        sa.Column("schedule_instance_id", sa.String(length=36), nullable=False),
        sa.Column("activity_template_id", sa.String(length=36), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "personnel_id",
            "schedule_instance_id",
            "activity_template_id",
            name="uq_personnel_preferences_identity",
        ),
        sa.CheckConstraint("rank >= 1", name="ck_personnel_preferences_rank_positive"),
    )
    op.create_index("ix_personnel_preferences_personnel_id", "personnel_preferences", ["personnel_id"])
    op.create_index(
        "ix_personnel_preferences_schedule_instance_id",
        "personnel_preferences",
        ["schedule_instance_id"],
    )

    op.create_table(
        "time_preferences",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("schedule_instance_id", sa.String(length=36), nullable=False),
        sa.Column("time", sa.String(length=5), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.UniqueConstraint("schedule_instance_id", "time", name="uq_time_preferences_schedule_time"),
    )
    op.create_index("ix_time_preferences_schedule_instance_id", "time_preferences", ["schedule_instance_id"])

    op.create_table(
        "scheduled_events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("schedule_instance_id", sa.String(length=36), nullable=False),
        sa.Column("activity_template_id", sa.String(length=36), nullable=False),
        sa.Column("day_of_week", day_of_week, nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("room_id", sa.String(length=36), nullable=True),
        sa.Column("personnel_ids", sa.JSON(), nullable=False),
        sa.Column("attendee_section_id", sa.String(length=36), nullable=True),
        sa.Column("attendee_group_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "(attendee_section_id IS NULL) <> (attendee_group_id IS NULL)",
            name="ck_scheduled_events_single_attendee",
        ),
    )
    op.create_index("ix_scheduled_events_schedule_instance_id", "scheduled_events", ["schedule_instance_id"])
    op.create_index("ix_scheduled_events_day_of_week", "scheduled_events", ["day_of_week"])


def downgrade() -> None:
    op.drop_index("ix_scheduled_events_day_of_week", table_name="scheduled_events")
    op.drop_index("ix_scheduled_events_schedule_instance_id", table_name="scheduled_events")
    op.drop_table("scheduled_events")
    op.drop_index("ix_time_preferences_schedule_instance_id", table_name="time_preferences")
    op.drop_table("time_preferences")
    op.drop_index("ix_personnel_preferences_schedule_instance_id", table_name="personnel_preferences")
    op.drop_index("ix_personnel_preferences_personnel_id", table_name="personnel_preferences")
    op.drop_table("personnel_preferences")
    for table_name, _, _ in reversed(POOL_TABLES):
        op.drop_index(f"ix_{table_name}_schedule_instance_id", table_name=table_name)
        op.drop_table(table_name)
    op.drop_index("ix_schedule_instances_availability_template_id", table_name="schedule_instances")
    op.drop_index("ix_schedule_instances_name", table_name="schedule_instances")
    op.drop_table("schedule_instances")
    for enum_type in (day_of_week, spacing_preference, schedule_status):
        enum_type.drop(op.get_bind(), checkfirst=True)
