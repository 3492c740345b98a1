"""Database seeder for the demo exercise catalog and program templates.

Templates are generated for every (category, phase, skill level, week, day)
slot from a small exercise pool so a fresh database has a complete grid.
"""
from __future__ import annotations

import datetime as dt
from typing import Any

from alembic import command
from alembic.config import Config
from sqlalchemy import select
from sqlalchemy.orm import Session

from core.config import get_settings
from core.db import session_scope
from core.logging_config import get_logger, setup_logging
from core.models import Athlete, Exercise, ProgramTemplate, UserProgram
from core.services.calendar_mapping import WEEKS_PER_PHASE
from core.services.intensity_scaling import CATEGORY_NAMES, PHASES

logger = get_logger(__name__)

SKILL_LEVELS = ["Novice", "Moderate", "Advanced"]
TEMPLATE_DAYS_PER_WEEK = 3

SEED_EXERCISES: list[dict[str, Any]] = [
    {"slug": "back_squat", "name": "Back Squat", "tags": ["lower", "strength"], "equipment": ["barbell", "rack"]},
    {"slug": "bench_press", "name": "Bench Press", "tags": ["upper", "push"], "equipment": ["barbell", "bench"]},
    {"slug": "romanian_deadlift", "name": "Romanian Deadlift", "tags": ["lower", "hinge"], "equipment": ["barbell"]},
    {"slug": "box_jump", "name": "Box Jump", "tags": ["plyometric", "lower"], "equipment": ["box"]},
    {"slug": "med_ball_rotational_throw", "name": "Med Ball Rotational Throw", "tags": ["power", "rotational"], "equipment": ["medicine_ball"]},
    {"slug": "push_up", "name": "Push-Up", "tags": ["upper"], "equipment": ["bodyweight"], "progressions": {"easier": "incline_push_up", "harder": "decline_push_up"}},
    {"slug": "incline_push_up", "name": "Incline Push-Up", "tags": ["upper"], "equipment": ["bodyweight"], "progressions": {"harder": "push_up"}},
    {"slug": "decline_push_up", "name": "Decline Push-Up", "tags": ["upper"], "equipment": ["bodyweight"], "progressions": {"easier": "push_up"}},
    {"slug": "plank", "name": "Plank", "tags": ["core"], "equipment": [], "progressions": {"harder": "long_lever_plank"}},
    {"slug": "long_lever_plank", "name": "Long Lever Plank", "tags": ["core"], "equipment": [], "progressions": {"easier": "plank"}},
    {"slug": "split_squat", "name": "Split Squat", "tags": ["lower", "unilateral"], "equipment": ["bodyweight"], "progressions": {"harder": "rear_foot_elevated_split_squat"}},
    {"slug": "rear_foot_elevated_split_squat", "name": "Rear-Foot-Elevated Split Squat", "tags": ["lower", "unilateral"], "equipment": ["bench"]},
]

# (slug, sets, reps, rest_seconds) per template day
_DAY_LAYOUTS: dict[int, list[tuple[str, int, str, int]]] = {
    1: [("back_squat", 4, "8", 90), ("box_jump", 3, "5", 60), ("push_up", 3, "12", 45), ("plank", 3, "30s", 30)],
    2: [("bench_press", 4, "8-10", 90), ("med_ball_rotational_throw", 3, "6 each side", 60), ("split_squat", 3, "10 each leg", 45)],
    3: [("romanian_deadlift", 4, "10", 90), ("box_jump", 3, "4", 60), ("push_up", 3, "AMRAP", 60), ("plank", 2, "1 min", 30)],
}


def run_migrations() -> None:
    cfg = Config("alembic.ini")
    command.upgrade(cfg, "head")


def seed_exercises(s: Session) -> dict[str, Exercise]:
    existing = {e.slug: e for e in s.execute(select(Exercise)).scalars().all()}
    for row in SEED_EXERCISES:
        if row["slug"] in existing:
            continue
        exercise = Exercise(
            slug=row["slug"],
            name=row["name"],
            tags=list(row["tags"]),
            equipment=list(row["equipment"]),
            progressions=row.get("progressions"),
        )
        s.add(exercise)
        existing[exercise.slug] = exercise
    s.flush()
    return existing


def template_exercises(day: int, exercises: dict[str, Exercise]) -> list[dict[str, Any]]:
    layout = _DAY_LAYOUTS[(day - 1) % len(_DAY_LAYOUTS) + 1]
    return [
        {
            "exercise_id": exercises[slug].id,
            "sets": sets,
            "reps": reps,
            "rest_seconds": rest,
            "order_index": i,
        }
        for i, (slug, sets, reps, rest) in enumerate(layout)
    ]


def seed_templates(
    s: Session,
    categories: list[int] | None = None,
    skill_levels: list[str] | None = None,
    days_per_week: int = TEMPLATE_DAYS_PER_WEEK,
) -> int:
    exercises = seed_exercises(s)
    taken = {
        (t.category_id, t.phase, t.skill_level, t.week, t.day)
        for t in s.execute(select(ProgramTemplate)).scalars().all()
    }
    added = 0
    for category_id in categories or list(CATEGORY_NAMES):
        for skill in skill_levels or SKILL_LEVELS:
            for phase in PHASES:
                for week in range(1, WEEKS_PER_PHASE + 1):
                    for day in range(1, days_per_week + 1):
                        key = (category_id, phase, skill, week, day)
                        if key in taken:
                            continue
                        s.add(
                            ProgramTemplate(
                                category_id=category_id,
                                phase=phase,
                                skill_level=skill,
                                week=week,
                                day=day,
                                name=f"{CATEGORY_NAMES[category_id]} {phase} W{week}D{day}",
                                estimated_duration_min=40 + 5 * day,
                                exercises=template_exercises(day, exercises),
                            )
                        )
                        added += 1
    s.flush()
    return added


def seed_demo_athlete(s: Session) -> Athlete:
    athlete = s.execute(select(Athlete).where(Athlete.email == "demo.athlete@example.com")).scalar_one_or_none()
    if athlete is None:
        athlete = Athlete(name="Demo Athlete", email="demo.athlete@example.com", age_group="18-35", years_of_experience=3)
        s.add(athlete)
        s.flush()
    program = s.execute(select(UserProgram).where(UserProgram.athlete_id == athlete.id)).scalar_one_or_none()
    if program is None:
        s.add(
            UserProgram(
                athlete_id=athlete.id,
                category_id=2,
                skill_level="Moderate",
                age_group=athlete.age_group,
                years_of_experience=athlete.years_of_experience,
                training_days=[0, 2, 4],
                created_at=dt.datetime.utcnow(),
            )
        )
        s.flush()
    return athlete


def main() -> None:
    setup_logging(get_settings().log_level)
    run_migrations()
    with session_scope() as s:
        added = seed_templates(s)
        athlete = seed_demo_athlete(s)
    logger.info("seed_complete", extra={"templates_added": added, "demo_athlete_id": athlete.id})


if __name__ == "__main__":
    main()
