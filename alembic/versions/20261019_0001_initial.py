"""initial schema"""

from alembic import op
import sqlalchemy as sa


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "athletes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=False, unique=True),
        sa.Column("age_group", sa.String(length=10), nullable=True),
        sa.Column("years_of_experience", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "exercises",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(length=120), nullable=False, unique=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=False, server_default=""),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("equipment", sa.JSON(), nullable=False),
        sa.Column("progressions", sa.JSON(), nullable=True),
    )

    op.create_table(
        "program_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("phase", sa.String(length=3), nullable=False),
        sa.Column("skill_level", sa.String(length=20), nullable=False),
        sa.Column("week", sa.Integer(), nullable=False),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=180), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("estimated_duration_min", sa.Integer(), nullable=False, server_default="45"),
        sa.Column("exercises", sa.JSON(), nullable=False),
        sa.UniqueConstraint("category_id", "phase", "skill_level", "week", "day", name="uq_template_slot"),
        sa.CheckConstraint("phase in ('GPP', 'SPP', 'SSP')"),
        sa.CheckConstraint("week between 1 and 4"),
        sa.CheckConstraint("category_id between 1 and 4"),
    )
    op.create_index("ix_program_templates_category_id", "program_templates", ["category_id"])

    op.create_table(
        "user_programs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False, unique=True),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("skill_level", sa.String(length=20), nullable=False),
        sa.Column("age_group", sa.String(length=10), nullable=True),
        sa.Column("years_of_experience", sa.Float(), nullable=False, server_default="0"),
        sa.Column("training_days", sa.JSON(), nullable=False),
        sa.Column("current_phase", sa.String(length=3), nullable=False, server_default="GPP"),
        sa.Column("current_week", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_day", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("cycles_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_workout_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "schedule_overrides",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False),
        sa.Column("user_program_id", sa.Integer(), sa.ForeignKey("user_programs.id"), nullable=False, unique=True),
        sa.Column("today_focus_template_id", sa.Integer(), nullable=True),
        sa.Column("today_focus_set_at", sa.DateTime(), nullable=True),
        sa.Column("slot_overrides", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_schedule_overrides_athlete_id", "schedule_overrides", ["athlete_id"])

    op.create_table(
        "workout_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("user_program_id", sa.Integer(), sa.ForeignKey("user_programs.id"), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="in_progress"),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("total_duration_seconds", sa.Integer(), nullable=True),
        sa.Column("exercises", sa.JSON(), nullable=False),
        sa.Column("exercise_order", sa.JSON(), nullable=True),
        sa.Column("target_intensity", sa.String(length=10), nullable=True),
        sa.Column("scaling_snapshot", sa.JSON(), nullable=True),
        sa.Column("template_snapshot", sa.JSON(), nullable=True),
        sa.CheckConstraint("status in ('in_progress', 'completed', 'abandoned')"),
    )
    op.create_index("ix_workout_sessions_athlete_id", "workout_sessions", ["athlete_id"])
    op.create_index("ix_workout_sessions_template_id", "workout_sessions", ["template_id"])
    op.create_index(
        "uq_workout_session_in_progress",
        "workout_sessions",
        ["athlete_id"],
        unique=True,
        sqlite_where=sa.text("status = 'in_progress'"),
        postgresql_where=sa.text("status = 'in_progress'"),
    )

    op.create_table(
        "user_maxes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False),
        sa.Column("exercise_id", sa.Integer(), sa.ForeignKey("exercises.id"), nullable=False),
        sa.Column("one_rep_max", sa.Float(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("athlete_id", "exercise_id", name="uq_user_max"),
    )
    op.create_index("ix_user_maxes_athlete_id", "user_maxes", ["athlete_id"])


def downgrade() -> None:
    op.drop_table("user_maxes")
    op.drop_index("uq_workout_session_in_progress", table_name="workout_sessions")
    op.drop_table("workout_sessions")
    op.drop_table("schedule_overrides")
    op.drop_table("user_programs")
    op.drop_table("program_templates")
    op.drop_table("exercises")
    op.drop_table("athletes")
