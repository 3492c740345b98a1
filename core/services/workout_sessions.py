"""Workout session lifecycle: in_progress -> completed | abandoned."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import get_settings
from core.errors import AuthorizationError, InvalidState, NotFound
from core.models import Exercise, ProgramTemplate, UserMax, UserProgram, WorkoutSession
from core.services import programs
from core.services.cascade import apply_cascade
from core.services.schedule_overrides import ScheduleOverrideStore
from core.services.session_scaling import strategy_for_session

logger = logging.getLogger(__name__)

IN_PROGRESS = "in_progress"
COMPLETED = "completed"
ABANDONED = "abandoned"


@dataclass
class StartResult:
    session_id: int
    is_existing: bool
    message: str
    cascade_applied: bool = False
    cascade_affected_slots: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "is_existing": self.is_existing,
            "message": self.message,
            "cascade_applied": self.cascade_applied,
            "cascade_affected_slots": self.cascade_affected_slots,
        }


def empty_exercise_records(template: ProgramTemplate) -> list[dict[str, Any]]:
    records = []
    for occ in template.exercises or []:
        records.append(
            {
                "exercise_id": int(occ["exercise_id"]),
                "completed": False,
                "skipped": False,
                "sets": [
                    {
                        "reps_completed": None,
                        "duration_seconds": None,
                        "weight": None,
                        "rpe": None,
                        "completed": False,
                        "skipped": False,
                    }
                    for _ in range(int(occ.get("sets", 0)))
                ],
            }
        )
    return records


def scaling_snapshot(program: UserProgram, template: ProgramTemplate) -> dict[str, Any]:
    profile = programs.program_profile(program)
    return {**profile, "phase": template.phase}


class WorkoutSessionService:
    def __init__(self, s: Session, athlete_id: int):
        self.s = s
        self.athlete_id = athlete_id

    # -- queries --

    def get_current(self) -> Optional[WorkoutSession]:
        return self.s.execute(
            select(WorkoutSession).where(
                WorkoutSession.athlete_id == self.athlete_id,
                WorkoutSession.status == IN_PROGRESS,
            )
        ).scalar_one_or_none()

    def get_session_for_template(self, template_id: int) -> Optional[WorkoutSession]:
        return self.s.execute(
            select(WorkoutSession)
            .where(WorkoutSession.athlete_id == self.athlete_id, WorkoutSession.template_id == template_id)
            .order_by(WorkoutSession.started_at.desc(), WorkoutSession.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def get_last_completed_for_template(self, template_id: int) -> Optional[WorkoutSession]:
        return self.s.execute(
            select(WorkoutSession)
            .where(
                WorkoutSession.athlete_id == self.athlete_id,
                WorkoutSession.template_id == template_id,
                WorkoutSession.status == COMPLETED,
            )
            .order_by(WorkoutSession.completed_at.desc(), WorkoutSession.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def get_completed_template_ids(self, today: Optional[dt.date] = None) -> list[int]:
        """Templates completed in the program cycle running on ``today``."""
        program = programs.get_program(self.s, self.athlete_id)
        return sorted(programs.completed_in_current_cycle(self.s, program, today or dt.datetime.utcnow().date()))

    def get_history(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        settings = get_settings()
        limit = min(limit or settings.history_default_limit, settings.history_max_limit)
        rows = self.s.execute(
            select(WorkoutSession)
            .where(WorkoutSession.athlete_id == self.athlete_id)
            .order_by(WorkoutSession.started_at.desc(), WorkoutSession.id.desc())
            .limit(limit)
        ).scalars().all()

        template_ids = {r.template_id for r in rows}
        templates = {}
        if template_ids:
            found = self.s.execute(select(ProgramTemplate).where(ProgramTemplate.id.in_(template_ids))).scalars().all()
            templates = {t.id: t for t in found}

        history = []
        for row in rows:
            template = templates.get(row.template_id)
            snapshot = row.template_snapshot or {}
            history.append(
                {
                    "id": row.id,
                    "template_id": row.template_id,
                    "status": row.status,
                    "started_at": row.started_at,
                    "completed_at": row.completed_at,
                    "total_duration_seconds": row.total_duration_seconds,
                    "template_name": template.name if template else snapshot.get("name", "Unknown Workout"),
                    "phase": template.phase if template else snapshot.get("phase"),
                    "week": template.week if template else snapshot.get("week"),
                    "day": template.day if template else snapshot.get("day"),
                }
            )
        return history

    def get_by_id(self, session_id: int) -> dict[str, Any]:
        session = self._owned(session_id)
        out = session_to_dict(session)
        template = self.s.get(ProgramTemplate, session.template_id)
        if template is None:
            out["template"] = None
            return out

        occurrences = list(template.exercises or [])
        exercise_ids = [int(o["exercise_id"]) for o in occurrences]
        exercises = {}
        maxes = {}
        if exercise_ids:
            found = self.s.execute(select(Exercise).where(Exercise.id.in_(exercise_ids))).scalars().all()
            exercises = {e.id: e for e in found}
            max_rows = self.s.execute(
                select(UserMax).where(UserMax.athlete_id == session.athlete_id, UserMax.exercise_id.in_(exercise_ids))
            ).scalars().all()
            maxes = {m.exercise_id: m.one_rep_max for m in max_rows}

        strategy = strategy_for_session(session)
        out["template"] = {
            "id": template.id,
            "name": template.name,
            "description": template.description,
            "phase": template.phase,
            "week": template.week,
            "day": template.day,
            "estimated_duration_min": template.estimated_duration_min,
            "exercises": strategy.scale_all(occurrences, exercises, maxes),
            "scaling_context": strategy.context(),
        }
        return out

    # -- mutations --

    def start(
        self,
        template_id: int,
        exercise_order: Optional[list[int]] = None,
        target_intensity: Optional[str] = None,
        skip_cascade: bool = False,
        today: Optional[dt.date] = None,
        now: Optional[dt.datetime] = None,
    ) -> StartResult:
        existing = self.get_current()
        if existing is not None:
            logger.info("session_resumed", extra={"athlete_id": self.athlete_id, "session_id": existing.id})
            return StartResult(existing.id, True, "Resuming existing workout session")

        program = programs.get_program(self.s, self.athlete_id)
        template = programs.get_template(self.s, template_id)
        if template.category_id != program.category_id:
            raise AuthorizationError("Template does not belong to your program category", template_id=template_id)

        now = now or dt.datetime.utcnow()
        today = today or now.date()
        session = WorkoutSession(
            athlete_id=self.athlete_id,
            template_id=template.id,
            user_program_id=program.id,
            cycle=programs.current_cycle(program, today),
            status=IN_PROGRESS,
            started_at=now,
            exercises=empty_exercise_records(template),
            exercise_order=exercise_order,
            target_intensity=target_intensity,
            scaling_snapshot=scaling_snapshot(program, template),
            template_snapshot={
                "name": template.name,
                "phase": template.phase,
                "week": template.week,
                "day": template.day,
                "workout_date": now.isoformat(),
            },
        )
        self.s.add(session)
        try:
            self.s.flush()
        except IntegrityError:
            # another request started a session first
            self.s.rollback()
            winner = self.get_current()
            if winner is None:
                raise
            logger.info("session_resumed", extra={"athlete_id": self.athlete_id, "session_id": winner.id})
            return StartResult(winner.id, True, "Resuming existing workout session")

        result = StartResult(session.id, False, "Workout session started")
        if not skip_cascade:
            today_slot = programs.calendar_slot_for(program, today)
            plan = apply_cascade(ScheduleOverrideStore(self.s, self.athlete_id), template.id, today_slot, today)
            result.cascade_applied = plan.applied
            result.cascade_affected_slots = plan.affected_slots if plan.applied else 0

        logger.info(
            "session_started",
            extra={
                "athlete_id": self.athlete_id,
                "session_id": session.id,
                "template_id": template.id,
                "cascade_applied": result.cascade_applied,
            },
        )
        return result

    def update_progress(self, session_id: int, exercises: list[dict[str, Any]], exercise_order: Optional[list[int]] = None) -> WorkoutSession:
        session = self._owned_in_progress(session_id)
        session.exercises = list(exercises)
        if exercise_order is not None:
            session.exercise_order = list(exercise_order)
        self.s.flush()
        return session

    def complete(
        self,
        session_id: int,
        exercises: list[dict[str, Any]],
        exercise_order: Optional[list[int]] = None,
        now: Optional[dt.datetime] = None,
    ) -> WorkoutSession:
        session = self._owned_in_progress(session_id)
        now = now or dt.datetime.utcnow()
        session.exercises = list(exercises)
        if exercise_order is not None:
            session.exercise_order = list(exercise_order)
        session.status = COMPLETED
        session.completed_at = now
        session.total_duration_seconds = round((now - session.started_at).total_seconds())

        if session.user_program_id is not None:
            program = self.s.get(UserProgram, session.user_program_id)
            if program is not None:
                program.last_workout_at = now
        self.s.flush()
        logger.info(
            "session_completed",
            extra={"athlete_id": self.athlete_id, "session_id": session.id, "duration_seconds": session.total_duration_seconds},
        )
        return session

    def abandon(
        self,
        session_id: int,
        exercises: Optional[list[dict[str, Any]]] = None,
        exercise_order: Optional[list[int]] = None,
    ) -> WorkoutSession:
        session = self._owned_in_progress(session_id)
        if exercises is not None:
            session.exercises = list(exercises)
        if exercise_order is not None:
            session.exercise_order = list(exercise_order)
        session.status = ABANDONED
        self.s.flush()
        logger.info("session_abandoned", extra={"athlete_id": self.athlete_id, "session_id": session.id})
        return session

    # -- helpers --

    def _owned(self, session_id: int) -> WorkoutSession:
        session = self.s.get(WorkoutSession, session_id)
        if session is None:
            raise NotFound("Session not found", session_id=session_id)
        if session.athlete_id != self.athlete_id:
            raise AuthorizationError("Not authorized to access this session", session_id=session_id)
        return session

    def _owned_in_progress(self, session_id: int) -> WorkoutSession:
        session = self._owned(session_id)
        if session.status != IN_PROGRESS:
            raise InvalidState("Session is not in progress", session_id=session_id, status=session.status)
        return session


def session_to_dict(session: WorkoutSession) -> dict[str, Any]:
    return {
        "id": session.id,
        "athlete_id": session.athlete_id,
        "template_id": session.template_id,
        "status": session.status,
        "cycle": session.cycle,
        "started_at": session.started_at,
        "completed_at": session.completed_at,
        "total_duration_seconds": session.total_duration_seconds,
        "exercises": session.exercises,
        "exercise_order": session.exercise_order,
        "target_intensity": session.target_intensity,
        "scaling_snapshot": session.scaling_snapshot,
        "template_snapshot": session.template_snapshot,
    }
