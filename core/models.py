from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Athlete(Base):
    __tablename__ = "athletes"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(160))
    email: Mapped[str] = mapped_column(String(200), unique=True)
    age_group: Mapped[str | None] = mapped_column(String(10))
    years_of_experience: Mapped[float] = mapped_column(Float, default=0)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)


class Exercise(Base):
    __tablename__ = "exercises"
    id: Mapped[int] = mapped_column(primary_key=True)
    slug: Mapped[str] = mapped_column(String(120), unique=True)
    name: Mapped[str] = mapped_column(String(160))
    instructions: Mapped[str] = mapped_column(Text, default="")
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    equipment: Mapped[list[str]] = mapped_column(JSON, default=list)
    # {"easier": slug, "harder": slug}
    progressions: Mapped[dict[str, Any] | None] = mapped_column(JSON)


class ProgramTemplate(Base):
    __tablename__ = "program_templates"
    id: Mapped[int] = mapped_column(primary_key=True)
    category_id: Mapped[int] = mapped_column(Integer, index=True)
    phase: Mapped[str] = mapped_column(String(3))
    skill_level: Mapped[str] = mapped_column(String(20))
    week: Mapped[int] = mapped_column(Integer)
    day: Mapped[int] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String(180))
    description: Mapped[str] = mapped_column(Text, default="")
    estimated_duration_min: Mapped[int] = mapped_column(Integer, default=45)
    # ordered list of {exercise_id, sets, reps, rest_seconds, tempo, notes, order_index, superset}
    exercises: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    __table_args__ = (
        UniqueConstraint("category_id", "phase", "skill_level", "week", "day", name="uq_template_slot"),
        CheckConstraint("phase in ('GPP', 'SPP', 'SSP')"),
        CheckConstraint("week between 1 and 4"),
        CheckConstraint("category_id between 1 and 4"),
    )


class UserProgram(Base):
    __tablename__ = "user_programs"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), unique=True)
    category_id: Mapped[int] = mapped_column(Integer)
    skill_level: Mapped[str] = mapped_column(String(20))
    age_group: Mapped[str | None] = mapped_column(String(10))
    years_of_experience: Mapped[float] = mapped_column(Float, default=0)
    training_days: Mapped[list[int]] = mapped_column(JSON, default=list)
    current_phase: Mapped[str] = mapped_column(String(3), default="GPP")
    current_week: Mapped[int] = mapped_column(Integer, default=1)
    current_day: Mapped[int] = mapped_column(Integer, default=1)
    cycles_completed: Mapped[int] = mapped_column(Integer, default=0)
    last_workout_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow)


class ScheduleOverride(Base):
    __tablename__ = "schedule_overrides"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), index=True)
    user_program_id: Mapped[int] = mapped_column(ForeignKey("user_programs.id"), unique=True)
    today_focus_template_id: Mapped[int | None] = mapped_column(Integer)
    today_focus_set_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    # list of {phase, week, day, template_id}
    slot_overrides: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow)
    __mapper_args__ = {"version_id_col": version}


class WorkoutSession(Base):
    __tablename__ = "workout_sessions"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), index=True)
    template_id: Mapped[int] = mapped_column(Integer, index=True)
    user_program_id: Mapped[int | None] = mapped_column(ForeignKey("user_programs.id"))
    cycle: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default="in_progress")
    started_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    completed_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    total_duration_seconds: Mapped[int | None] = mapped_column(Integer)
    exercises: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    exercise_order: Mapped[list[int] | None] = mapped_column(JSON)
    target_intensity: Mapped[str | None] = mapped_column(String(10))
    scaling_snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    template_snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    __table_args__ = (
        CheckConstraint("status in ('in_progress', 'completed', 'abandoned')"),
        Index(
            "uq_workout_session_in_progress",
            "athlete_id",
            unique=True,
            sqlite_where=(status == "in_progress"),
            postgresql_where=(status == "in_progress"),
        ),
    )


class UserMax(Base):
    __tablename__ = "user_maxes"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), index=True)
    exercise_id: Mapped[int] = mapped_column(ForeignKey("exercises.id"))
    one_rep_max: Mapped[float] = mapped_column(Float)
    recorded_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    __table_args__ = (UniqueConstraint("athlete_id", "exercise_id", name="uq_user_max"),)
