"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-12 00:00:00.000000

location_states carries the per-location version used for optimistic
concurrency. points_ledger is append-only; its unique (location_id, task_id)
guarantees at most one award per task.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    task_status_enum = sa.Enum(
        "pending", "in_progress", "completed", "excluded", name="task_status_enum"
    )
    task_status_enum.create(op.get_bind(), checkfirst=True)

    # --- location_states ---
    op.create_table(
        "location_states",
        sa.Column("location_id", sa.String(128), nullable=False),
        sa.Column("place_id", sa.String(256), nullable=True),
        sa.Column(
            "profile_snapshot", sa.Text(), nullable=True,
            comment="JSON-encoded profile completeness snapshot",
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("location_id"),
    )

    # --- tasks ---
    op.create_table(
        "tasks",
        sa.Column("id", sa.String(320), nullable=False),
        sa.Column("location_id", sa.String(128), nullable=False),
        sa.Column("definition_id", sa.String(64), nullable=False),
        sa.Column("cycle_week", sa.String(16), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("impact", sa.String(16), nullable=False, server_default="medium"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="medium"),
        sa.Column("estimated_time", sa.String(64), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("status", sa.Enum(
            "pending", "in_progress", "completed", "excluded",
            name="task_status_enum", create_type=False,
        ), nullable=False, server_default="pending"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("excluded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("exclude_reason", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["location_id"], ["location_states.location_id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tasks_definition_id", "tasks", ["definition_id"])
    op.create_index("ix_tasks_location_week", "tasks", ["location_id", "cycle_week"])
    op.create_index("ix_tasks_location_status", "tasks", ["location_id", "status"])

    # --- points_ledger ---
    op.create_table(
        "points_ledger",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("location_id", sa.String(128), nullable=False),
        sa.Column("task_id", sa.String(320), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("awarded_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("location_id", "task_id", name="uq_points_ledger_location_task"),
    )
    op.create_index(
        "ix_points_ledger_location_awarded", "points_ledger", ["location_id", "awarded_at"]
    )

    # --- cycle_records ---
    op.create_table(
        "cycle_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("location_id", sa.String(128), nullable=False),
        sa.Column("week", sa.String(16), nullable=False),
        sa.Column("refreshed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("next_refresh", sa.DateTime(timezone=True), nullable=False),
        sa.Column("tasks_generated", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("location_id", "week", name="uq_cycle_location_week"),
    )
    op.create_index("ix_cycle_records_location_id", "cycle_records", ["location_id"])

    # --- location_milestones ---
    op.create_table(
        "location_milestones",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("location_id", sa.String(128), nullable=False),
        sa.Column("definition_id", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("title", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("reward", sa.String(128), nullable=True),
        sa.Column("icon", sa.String(16), nullable=True),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("achieved_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "location_id", "definition_id", name="uq_milestone_location_definition"
        ),
    )
    op.create_index(
        "ix_location_milestones_location_id", "location_milestones", ["location_id"]
    )

    # --- location_achievements ---
    op.create_table(
        "location_achievements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("location_id", sa.String(128), nullable=False),
        sa.Column("definition_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("achieved_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "location_id", "definition_id", name="uq_achievement_location_definition"
        ),
    )
    op.create_index(
        "ix_location_achievements_location_id", "location_achievements", ["location_id"]
    )


def downgrade() -> None:
    op.drop_table("location_achievements")
    op.drop_table("location_milestones")
    op.drop_table("cycle_records")
    op.drop_table("points_ledger")
    op.drop_table("tasks")
    op.drop_table("location_states")

    op.execute("DROP TYPE IF EXISTS task_status_enum")
