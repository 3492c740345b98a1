"""Pydantic validation models for all user-facing data entry points."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from core.services.intensity_scaling import INTENSITIES, PHASES


class SlotInput(BaseModel):
    phase: str
    week: int = Field(ge=1, le=4)
    day: int = Field(ge=1, le=7)

    @field_validator("phase")
    @classmethod
    def valid_phase(cls, v):
        if v not in PHASES:
            raise ValueError(f"phase must be one of {PHASES}")
        return v


class SwapInput(BaseModel):
    slot_a: SlotInput
    slot_b: SlotInput


class TodayFocusInput(BaseModel):
    template_id: int = Field(gt=0)


class SetRecordInput(BaseModel):
    reps_completed: Optional[int] = Field(default=None, ge=0)
    duration_seconds: Optional[int] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    rpe: Optional[int] = Field(default=None, ge=1, le=10)
    completed: bool = False
    skipped: bool = False


class ExerciseRecordInput(BaseModel):
    exercise_id: int = Field(gt=0)
    completed: bool = False
    skipped: bool = False
    notes: str = Field(default="", max_length=2000)
    sets: list[SetRecordInput] = Field(default_factory=list)


class SessionStartInput(BaseModel):
    template_id: int = Field(gt=0)
    exercise_order: Optional[list[int]] = None
    target_intensity: Optional[str] = None
    skip_cascade: bool = False

    @field_validator("target_intensity")
    @classmethod
    def valid_intensity(cls, v):
        if v is not None and v not in INTENSITIES:
            raise ValueError(f"target_intensity must be one of {INTENSITIES}")
        return v

    @field_validator("exercise_order")
    @classmethod
    def non_negative_order(cls, v):
        if v is not None and any(i < 0 for i in v):
            raise ValueError("exercise_order must contain non-negative indices")
        return v


class SessionProgressInput(BaseModel):
    exercises: list[ExerciseRecordInput]
    exercise_order: Optional[list[int]] = None


class SessionAbandonInput(BaseModel):
    exercises: Optional[list[ExerciseRecordInput]] = None
    exercise_order: Optional[list[int]] = None
