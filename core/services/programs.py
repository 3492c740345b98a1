from __future__ import annotations

import datetime as dt
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.errors import NotFound
from core.models import ProgramTemplate, UserProgram, WorkoutSession
from core.services.calendar_mapping import WorkoutSlot, advance_slot, cycle_for_date, get_workout_for_date, resolve_training_days
from core.services.intensity_scaling import normalize_age_group

logger = logging.getLogger(__name__)


def get_program(s: Session, athlete_id: int) -> UserProgram:
    program = s.execute(select(UserProgram).where(UserProgram.athlete_id == athlete_id)).scalar_one_or_none()
    if program is None:
        raise NotFound("No program found for athlete", athlete_id=athlete_id)
    return program


def get_template(s: Session, template_id: int) -> ProgramTemplate:
    template = s.get(ProgramTemplate, template_id)
    if template is None:
        raise NotFound("Template not found", template_id=template_id)
    return template


def program_training_days(program: UserProgram) -> list[int]:
    return resolve_training_days(program.training_days)


def program_profile(program: UserProgram) -> dict:
    return {
        "category_id": program.category_id,
        "age_group": normalize_age_group(program.age_group),
        "years_of_experience": float(program.years_of_experience or 0),
    }


def category_templates(s: Session, category_id: int) -> list[ProgramTemplate]:
    rows = s.execute(select(ProgramTemplate).where(ProgramTemplate.category_id == category_id)).scalars().all()
    return list(rows)


def program_templates(s: Session, program: UserProgram) -> list[ProgramTemplate]:
    """Templates making up this program's default grid (category + skill level)."""
    rows = s.execute(
        select(ProgramTemplate).where(
            ProgramTemplate.category_id == program.category_id,
            ProgramTemplate.skill_level == program.skill_level,
        )
    ).scalars().all()
    return list(rows)


def completed_template_ids(s: Session, athlete_id: int, cycle: int | None = None) -> set[int]:
    """Templates with a completed session, limited to one program cycle when given."""
    query = select(WorkoutSession.template_id).where(
        WorkoutSession.athlete_id == athlete_id,
        WorkoutSession.status == "completed",
    )
    if cycle is not None:
        query = query.where(WorkoutSession.cycle == cycle)
    return set(s.execute(query).scalars().all())


def current_cycle(program: UserProgram, on: dt.date | dt.datetime) -> int:
    return cycle_for_date(program.created_at, program_training_days(program), on)


def completed_in_current_cycle(s: Session, program: UserProgram, on: dt.date | dt.datetime) -> set[int]:
    return completed_template_ids(s, program.athlete_id, current_cycle(program, on))


def current_slot(program: UserProgram) -> WorkoutSlot:
    return WorkoutSlot(program.current_phase, program.current_week, program.current_day)


def calendar_slot_for(program: UserProgram, on: dt.date) -> WorkoutSlot | None:
    found = get_workout_for_date(program.created_at, program_training_days(program), on)
    return found.slot if found else None


def advance_to_next_day(s: Session, athlete_id: int) -> dict:
    program = get_program(s, athlete_id)
    step = advance_slot(program.current_phase, program.current_week, program.current_day, len(program_training_days(program)))
    previous = current_slot(program)
    program.current_phase = step.slot.phase
    program.current_week = step.slot.week
    program.current_day = step.slot.day
    if step.cycle_complete:
        program.cycles_completed = (program.cycles_completed or 0) + 1
    s.flush()
    logger.info(
        "program_advanced",
        extra={
            "athlete_id": athlete_id,
            "from_slot": previous.as_dict(),
            "to_slot": step.slot.as_dict(),
            "phase_complete": step.phase_complete,
            "cycle_complete": step.cycle_complete,
        },
    )
    return {
        **step.slot.as_dict(),
        "phase_complete": step.phase_complete,
        "cycle_complete": step.cycle_complete,
        "cycles_completed": program.cycles_completed,
    }
