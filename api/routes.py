from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from api.auth import AuthPrincipal, get_current_principal
from api.schemas import (
    HistoryEntryOut,
    MessageOut,
    PhaseOverviewOut,
    ProgramAdvanceOut,
    ScaledSessionOut,
    ScheduleEntryOut,
    ScheduleOverrideOut,
    StartSessionOut,
    TodayWorkoutOut,
    WorkoutSessionOut,
)
from core.db import session_scope
from core.services import programs
from core.services.calendar_mapping import WorkoutSlot
from core.services.schedule_overrides import ScheduleOverrideStore
from core.services.workout_sessions import WorkoutSessionService
from core.validators import SessionAbandonInput, SessionProgressInput, SessionStartInput, SwapInput, TodayFocusInput

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1")


PhaseName = Literal["GPP", "SPP", "SSP"]


@router.get("/health", tags=["system"])
def health():
    return {"status": "ok"}


# -- schedule --


@router.get("/schedule/overrides", response_model=Optional[ScheduleOverrideOut], tags=["schedule"])
def get_overrides(principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        record = ScheduleOverrideStore(s, principal.athlete_id).get_override_record()
        return ScheduleOverrideOut.model_validate(record) if record else None


@router.get("/schedule/weeks/{phase}/{week}", response_model=list[ScheduleEntryOut], tags=["schedule"])
def get_week_schedule(phase: PhaseName, week: int, principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        entries = ScheduleOverrideStore(s, principal.athlete_id).get_week_schedule(phase, week)
        return [e.as_dict() for e in entries]


@router.get("/schedule/today", response_model=Optional[TodayWorkoutOut], tags=["schedule"])
def get_today_workout(principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        today = ScheduleOverrideStore(s, principal.athlete_id).get_today_workout()
        return today.as_dict() if today else None


@router.get("/schedule/phases/{phase}", response_model=PhaseOverviewOut, tags=["schedule"])
def get_phase_overview(phase: PhaseName, principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        return ScheduleOverrideStore(s, principal.athlete_id).get_phase_overview(phase)


@router.put("/schedule/today-focus", response_model=ScheduleOverrideOut, tags=["schedule"])
def set_today_focus(payload: TodayFocusInput, principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        record = ScheduleOverrideStore(s, principal.athlete_id).set_today_focus(payload.template_id)
        return ScheduleOverrideOut.model_validate(record)


@router.delete("/schedule/today-focus", response_model=MessageOut, tags=["schedule"])
def clear_today_focus(principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        ScheduleOverrideStore(s, principal.athlete_id).clear_today_focus()
    return MessageOut(message="Today focus cleared")


@router.post("/schedule/swap", response_model=ScheduleOverrideOut, tags=["schedule"])
def swap_workouts(payload: SwapInput, principal: AuthPrincipal = Depends(get_current_principal)):
    slot_a = WorkoutSlot(payload.slot_a.phase, payload.slot_a.week, payload.slot_a.day)
    slot_b = WorkoutSlot(payload.slot_b.phase, payload.slot_b.week, payload.slot_b.day)
    with session_scope() as s:
        record = ScheduleOverrideStore(s, principal.athlete_id).swap_workouts(slot_a, slot_b)
        return ScheduleOverrideOut.model_validate(record)


@router.post("/schedule/phases/{phase}/reset", response_model=MessageOut, tags=["schedule"])
def reset_phase(phase: PhaseName, principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        ScheduleOverrideStore(s, principal.athlete_id).reset_phase_to_default(phase)
    return MessageOut(message=f"{phase} reset to default schedule")


# -- sessions --


@router.post("/sessions", response_model=StartSessionOut, tags=["sessions"])
def start_session(payload: SessionStartInput, principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        result = WorkoutSessionService(s, principal.athlete_id).start(
            payload.template_id,
            exercise_order=payload.exercise_order,
            target_intensity=payload.target_intensity,
            skip_cascade=payload.skip_cascade,
        )
        return result.as_dict()


@router.get("/sessions/current", response_model=Optional[WorkoutSessionOut], tags=["sessions"])
def get_current_session(principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        current = WorkoutSessionService(s, principal.athlete_id).get_current()
        return WorkoutSessionOut.model_validate(current) if current else None


@router.get("/sessions/history", response_model=list[HistoryEntryOut], tags=["sessions"])
def get_history(
    limit: Optional[int] = Query(default=None, ge=1),
    principal: AuthPrincipal = Depends(get_current_principal),
):
    with session_scope() as s:
        return WorkoutSessionService(s, principal.athlete_id).get_history(limit)


@router.get("/sessions/completed-templates", response_model=list[int], tags=["sessions"])
def get_completed_templates(principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        return WorkoutSessionService(s, principal.athlete_id).get_completed_template_ids()


@router.get("/sessions/templates/{template_id}/last-completed", response_model=Optional[WorkoutSessionOut], tags=["sessions"])
def get_last_completed(template_id: int, principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        found = WorkoutSessionService(s, principal.athlete_id).get_last_completed_for_template(template_id)
        return WorkoutSessionOut.model_validate(found) if found else None


@router.get("/sessions/{session_id}", response_model=ScaledSessionOut, tags=["sessions"])
def get_session(session_id: int, principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        return WorkoutSessionService(s, principal.athlete_id).get_by_id(session_id)


@router.put("/sessions/{session_id}/progress", response_model=WorkoutSessionOut, tags=["sessions"])
def update_progress(session_id: int, payload: SessionProgressInput, principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        session = WorkoutSessionService(s, principal.athlete_id).update_progress(
            session_id,
            [e.model_dump() for e in payload.exercises],
            exercise_order=payload.exercise_order,
        )
        return WorkoutSessionOut.model_validate(session)


@router.post("/sessions/{session_id}/complete", response_model=WorkoutSessionOut, tags=["sessions"])
def complete_session(session_id: int, payload: SessionProgressInput, principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        session = WorkoutSessionService(s, principal.athlete_id).complete(
            session_id,
            [e.model_dump() for e in payload.exercises],
            exercise_order=payload.exercise_order,
        )
        return WorkoutSessionOut.model_validate(session)


@router.post("/sessions/{session_id}/abandon", response_model=WorkoutSessionOut, tags=["sessions"])
def abandon_session(session_id: int, payload: SessionAbandonInput, principal: AuthPrincipal = Depends(get_current_principal)):
    exercises = [e.model_dump() for e in payload.exercises] if payload.exercises is not None else None
    with session_scope() as s:
        session = WorkoutSessionService(s, principal.athlete_id).abandon(
            session_id,
            exercises,
            exercise_order=payload.exercise_order,
        )
        return WorkoutSessionOut.model_validate(session)


# -- program --


@router.post("/program/advance", response_model=ProgramAdvanceOut, tags=["program"])
def advance_program(principal: AuthPrincipal = Depends(get_current_principal)):
    with session_scope() as s:
        return programs.advance_to_next_day(s, principal.athlete_id)
