from __future__ import annotations

from datetime import datetime as dt_datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageOut(BaseModel):
    message: str


class SlotOverrideOut(BaseModel):
    phase: str
    week: int
    day: int
    template_id: int


class ScheduleOverrideOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    athlete_id: int
    user_program_id: int
    today_focus_template_id: Optional[int] = None
    today_focus_set_at: Optional[dt_datetime] = None
    slot_overrides: list[SlotOverrideOut] = Field(default_factory=list)
    version: int


class ScheduleEntryOut(BaseModel):
    phase: str
    week: int
    day: int
    template_id: Optional[int] = None
    name: Optional[str] = None
    estimated_duration_min: Optional[int] = None
    exercise_count: int = 0
    is_overridden: bool
    is_completed: bool


class PhaseWeekOut(BaseModel):
    week: int
    focus: str
    workouts: list[ScheduleEntryOut]


class PhaseOverviewOut(BaseModel):
    phase: str
    weeks: list[PhaseWeekOut]
    override_count: int


class TodayWorkoutOut(BaseModel):
    template_id: int
    name: str
    phase: str
    week: int
    day: int
    source: str
    slot: Optional[dict[str, Any]] = None
    is_first_incomplete: bool = False
    session_id: Optional[int] = None


class StartSessionOut(BaseModel):
    session_id: int
    is_existing: bool
    message: str
    cascade_applied: bool
    cascade_affected_slots: int


class WorkoutSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    athlete_id: int
    template_id: int
    status: str
    cycle: int = 0
    started_at: dt_datetime
    completed_at: Optional[dt_datetime] = None
    total_duration_seconds: Optional[int] = None
    exercises: list[dict[str, Any]] = Field(default_factory=list)
    exercise_order: Optional[list[int]] = None
    target_intensity: Optional[str] = None
    scaling_snapshot: Optional[dict[str, Any]] = None
    template_snapshot: Optional[dict[str, Any]] = None


class ScaledSessionOut(WorkoutSessionOut):
    template: Optional[dict[str, Any]] = None


class HistoryEntryOut(BaseModel):
    id: int
    template_id: int
    status: str
    started_at: dt_datetime
    completed_at: Optional[dt_datetime] = None
    total_duration_seconds: Optional[int] = None
    template_name: str
    phase: Optional[str] = None
    week: Optional[int] = None
    day: Optional[int] = None


class ProgramAdvanceOut(BaseModel):
    phase: str
    week: int
    day: int
    phase_complete: bool
    cycle_complete: bool
    cycles_completed: int
