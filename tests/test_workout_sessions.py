from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import func, select

# Monday
PROGRAM_START = datetime(2026, 1, 5, 8, 0)


def _setup_db(monkeypatch, tmp_path):
    from core.config import get_settings
    from core.db import get_engine, reset_engine
    from core.models import Base

    db_path = tmp_path / "periodization.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    get_settings.cache_clear()
    reset_engine()
    Base.metadata.create_all(get_engine())


def _seed_program(category_id=2, age_group="18-35", years=7.0, training_days=(0, 2, 4), email="athlete@example.com"):
    from core.db import session_scope
    from core.models import Athlete, UserProgram
    from db.seed import seed_templates

    with session_scope() as s:
        seed_templates(s, categories=[1, 2], skill_levels=["Moderate"])
        athlete = Athlete(name="Test Athlete", email=email, age_group=age_group, years_of_experience=years)
        s.add(athlete)
        s.flush()
        s.add(
            UserProgram(
                athlete_id=athlete.id,
                category_id=category_id,
                skill_level="Moderate",
                age_group=age_group,
                years_of_experience=years,
                training_days=list(training_days),
                created_at=PROGRAM_START,
            )
        )
        return athlete.id


def _template_id(phase, week, day, category_id=2):
    from core.db import session_scope
    from core.models import ProgramTemplate

    with session_scope() as s:
        return s.execute(
            select(ProgramTemplate.id).where(
                ProgramTemplate.category_id == category_id,
                ProgramTemplate.skill_level == "Moderate",
                ProgramTemplate.phase == phase,
                ProgramTemplate.week == week,
                ProgramTemplate.day == day,
            )
        ).scalar_one()


def _service(s, athlete_id):
    from core.services.workout_sessions import WorkoutSessionService

    return WorkoutSessionService(s, athlete_id)


def _complete_template(athlete_id, template_id, on=date(2026, 1, 5)):
    from core.db import session_scope

    with session_scope() as s:
        svc = _service(s, athlete_id)
        started = svc.start(template_id, skip_cascade=True, today=on)
        svc.complete(started.session_id, [])
        return started.session_id


def test_start_creates_placeholders_and_snapshots(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.models import ProgramTemplate, WorkoutSession

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    tid = _template_id("SSP", 1, 1)

    with session_scope() as s:
        result = _service(s, athlete_id).start(tid, exercise_order=[1, 0, 2, 3], skip_cascade=True)
        assert result.is_existing is False
        assert result.cascade_applied is False
        session = s.get(WorkoutSession, result.session_id)
        template = s.get(ProgramTemplate, tid)
        assert len(session.exercises) == len(template.exercises)
        for record, occ in zip(session.exercises, template.exercises):
            assert record["exercise_id"] == occ["exercise_id"]
            assert len(record["sets"]) == occ["sets"]
            assert all(not st["completed"] for st in record["sets"])
        assert session.exercise_order == [1, 0, 2, 3]
        assert session.scaling_snapshot == {"category_id": 2, "phase": "SSP", "age_group": "18-35", "years_of_experience": 7.0}
        assert session.template_snapshot["name"] == template.name
        assert session.template_snapshot["week"] == 1


def test_start_twice_resumes_existing(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.models import WorkoutSession

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    first_tid = _template_id("GPP", 1, 1)
    other_tid = _template_id("GPP", 1, 2)

    with session_scope() as s:
        first = _service(s, athlete_id).start(first_tid, skip_cascade=True)
    with session_scope() as s:
        again = _service(s, athlete_id).start(other_tid, skip_cascade=True)
        third = _service(s, athlete_id).start(first_tid, skip_cascade=True)
        count = s.execute(select(func.count(WorkoutSession.id))).scalar_one()

    assert again.is_existing is True
    assert third.is_existing is True
    assert again.session_id == first.session_id
    assert again.message == "Resuming existing workout session"
    assert count == 1


def test_snapshot_normalizes_legacy_age_group(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.models import WorkoutSession

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program(age_group="10-13", years=0)
    with session_scope() as s:
        result = _service(s, athlete_id).start(_template_id("GPP", 1, 1), skip_cascade=True)
        assert s.get(WorkoutSession, result.session_id).scaling_snapshot["age_group"] == "14-17"


def test_start_rejects_missing_and_foreign_templates(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.errors import AuthorizationError, NotFound

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program(category_id=2)
    foreign = _template_id("GPP", 1, 1, category_id=1)

    with pytest.raises(NotFound):
        with session_scope() as s:
            _service(s, athlete_id).start(999999, skip_cascade=True)
    with pytest.raises(AuthorizationError):
        with session_scope() as s:
            _service(s, athlete_id).start(foreign, skip_cascade=True)


def test_athlete_without_program_is_not_found(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.errors import NotFound

    _setup_db(monkeypatch, tmp_path)
    _seed_program()
    tid = _template_id("GPP", 1, 1)
    with pytest.raises(NotFound):
        with session_scope() as s:
            _service(s, 424242).start(tid, skip_cascade=True)


def test_update_progress_replaces_exercises(monkeypatch, tmp_path):
    from core.db import session_scope

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    with session_scope() as s:
        started = _service(s, athlete_id).start(_template_id("GPP", 1, 1), skip_cascade=True)
    progress = [{"exercise_id": 1, "completed": True, "skipped": False, "sets": [{"reps_completed": 8, "completed": True}]}]
    with session_scope() as s:
        session = _service(s, athlete_id).update_progress(started.session_id, progress, exercise_order=[0])
        assert session.exercises == progress
        assert session.exercise_order == [0]
        assert session.status == "in_progress"


def test_complete_records_duration_and_program_marker(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.models import UserProgram
    from core.errors import InvalidState

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    started_at = datetime(2026, 1, 5, 9, 0, 0)
    with session_scope() as s:
        started = _service(s, athlete_id).start(_template_id("GPP", 1, 1), skip_cascade=True, now=started_at)

    finished = started_at + timedelta(minutes=42, seconds=10)
    with session_scope() as s:
        session = _service(s, athlete_id).complete(started.session_id, [], now=finished)
        assert session.status == "completed"
        assert session.completed_at == finished
        assert session.total_duration_seconds == 42 * 60 + 10
        program = s.execute(select(UserProgram).where(UserProgram.athlete_id == athlete_id)).scalar_one()
        assert program.last_workout_at == finished

    with pytest.raises(InvalidState):
        with session_scope() as s:
            _service(s, athlete_id).complete(started.session_id, [])
    with pytest.raises(InvalidState):
        with session_scope() as s:
            _service(s, athlete_id).abandon(started.session_id)


def test_abandon_keeps_program_untouched(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.models import UserProgram

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    with session_scope() as s:
        started = _service(s, athlete_id).start(_template_id("GPP", 1, 1), skip_cascade=True)
    with session_scope() as s:
        session = _service(s, athlete_id).abandon(started.session_id)
        assert session.status == "abandoned"
        assert session.completed_at is None
        program = s.execute(select(UserProgram).where(UserProgram.athlete_id == athlete_id)).scalar_one()
        assert program.last_workout_at is None
    with session_scope() as s:
        assert _service(s, athlete_id).get_current() is None


def test_other_athlete_cannot_touch_session(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.errors import AuthorizationError, NotFound

    _setup_db(monkeypatch, tmp_path)
    owner = _seed_program()
    with session_scope() as s:
        started = _service(s, owner).start(_template_id("GPP", 1, 1), skip_cascade=True)

    with pytest.raises(AuthorizationError):
        with session_scope() as s:
            _service(s, owner + 1).abandon(started.session_id)
    with pytest.raises(AuthorizationError):
        with session_scope() as s:
            _service(s, owner + 1).get_by_id(started.session_id)
    with pytest.raises(NotFound):
        with session_scope() as s:
            _service(s, owner).update_progress(999999, [])


def test_get_by_id_uses_category_scaling(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.models import Exercise, UserMax, UserProgram

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program(category_id=2, age_group="18-35", years=7)
    with session_scope() as s:
        squat = s.execute(select(Exercise).where(Exercise.slug == "back_squat")).scalar_one()
        s.add(UserMax(athlete_id=athlete_id, exercise_id=squat.id, one_rep_max=200))
    with session_scope() as s:
        started = _service(s, athlete_id).start(_template_id("SSP", 1, 1), skip_cascade=True)

    # later profile edits must not change an existing session's numbers
    with session_scope() as s:
        program = s.execute(select(UserProgram).where(UserProgram.athlete_id == athlete_id)).scalar_one()
        program.age_group = "14-17"
        program.years_of_experience = 0

    with session_scope() as s:
        out = _service(s, athlete_id).get_by_id(started.session_id)

    context = out["template"]["scaling_context"]
    assert context["strategy"] == "category"
    assert context["age_group"] == "18-35"
    assert context["experience_bucket"] == "6+"
    by_slug = {e["exercise"]["slug"]: e for e in out["template"]["exercises"]}

    squat = by_slug["back_squat"]
    assert squat["scaled_sets"] == 6
    assert squat["scaled_reps"] == "6"
    assert squat["scaled_rest_seconds"] == 120
    assert squat["tempo"] == "x.x.x"
    assert squat["percent_of_1rm"] == 85
    assert squat["target_weight"] == 170
    assert squat["has_one_rep_max"] is True

    jump = by_slug["box_jump"]
    assert jump["exercise_focus"] == "power"
    assert jump["scaled_reps"] == "6"
    assert jump["percent_of_1rm"] == 55
    assert jump["target_weight"] is None

    push_up = by_slug["push_up"]
    assert push_up["is_bodyweight"] is True
    assert push_up["is_substituted"] is True
    assert push_up["substituted_exercise_slug"] == "decline_push_up"


def test_get_by_id_legacy_intensity_path(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.models import WorkoutSession

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    with session_scope() as s:
        started = _service(s, athlete_id).start(_template_id("GPP", 1, 1), target_intensity="High", skip_cascade=True)
        s.get(WorkoutSession, started.session_id).scaling_snapshot = None

    with session_scope() as s:
        out = _service(s, athlete_id).get_by_id(started.session_id)

    assert out["template"]["scaling_context"] == {"strategy": "legacy_intensity", "intensity": "High"}
    by_slug = {e["exercise"]["slug"]: e for e in out["template"]["exercises"]}
    squat = by_slug["back_squat"]
    assert squat["scaled_sets"] == 5
    assert squat["scaled_reps"] == "7"
    assert squat["scaled_rest_seconds"] == 68
    assert squat["percent_of_1rm"] == 88
    plank = by_slug["plank"]
    assert plank["substituted_exercise_slug"] == "long_lever_plank"
    assert plank["scaled_reps"] == "40s"


def test_history_and_completed_ids(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.models import ProgramTemplate

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    first = _template_id("GPP", 1, 1)
    second = _template_id("GPP", 1, 2)
    _complete_template(athlete_id, first)
    _complete_template(athlete_id, second)
    with session_scope() as s:
        _service(s, athlete_id).start(_template_id("GPP", 1, 3), skip_cascade=True)

    with session_scope() as s:
        svc = _service(s, athlete_id)
        assert svc.get_completed_template_ids(today=date(2026, 1, 5)) == sorted([first, second])
        history = svc.get_history()
        assert [h["status"] for h in history] == ["in_progress", "completed", "completed"]
        assert history[1]["template_id"] == second
        assert history[1]["phase"] == "GPP"
        assert len(svc.get_history(limit=1)) == 1
        last = svc.get_last_completed_for_template(first)
        assert last is not None and last.status == "completed"
        assert svc.get_last_completed_for_template(_template_id("SSP", 4, 3)) is None
        assert svc.get_session_for_template(first).template_id == first

    # a template removed from the catalog still shows up by its snapshot name
    with session_scope() as s:
        s.delete(s.get(ProgramTemplate, first))
    with session_scope() as s:
        oldest = _service(s, athlete_id).get_history()[-1]
        assert oldest["template_id"] == first
        assert oldest["template_name"].startswith("Power GPP W1D1")


def test_start_applies_cascade_for_future_workout(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.services.calendar_mapping import WorkoutSlot
    from core.services.schedule_overrides import ScheduleOverrideStore

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    selected = _template_id("GPP", 2, 1)

    with session_scope() as s:
        result = _service(s, athlete_id).start(selected, today=date(2026, 1, 5))
    assert result.cascade_applied is True
    assert result.cascade_affected_slots == 4

    with session_scope() as s:
        grid = ScheduleOverrideStore(s, athlete_id).grid()
        assert grid.effective_template(WorkoutSlot("GPP", 1, 1)).id == selected
        assert grid.effective_template(WorkoutSlot("GPP", 1, 2)).id == _template_id("GPP", 1, 1)
        assert grid.effective_template(WorkoutSlot("GPP", 2, 1)).id == _template_id("GPP", 1, 3)


def test_cascade_blocked_still_starts_session(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.services.schedule_overrides import ScheduleOverrideStore

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    _complete_template(athlete_id, _template_id("GPP", 1, 2))
    selected = _template_id("GPP", 2, 1)

    with session_scope() as s:
        result = _service(s, athlete_id).start(selected, today=date(2026, 1, 5))
    assert result.is_existing is False
    assert result.cascade_applied is False
    assert result.cascade_affected_slots == 0

    with session_scope() as s:
        current = _service(s, athlete_id).get_current()
        assert current.template_id == selected
        assert ScheduleOverrideStore(s, athlete_id).get_override_record() is None


def test_next_cycle_ignores_previous_cycle_completions(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.models import WorkoutSession
    from core.services.calendar_mapping import WorkoutSlot
    from core.services.schedule_overrides import ScheduleOverrideStore

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    first_week = [_template_id("GPP", 1, day) for day in (1, 2, 3)]
    for template_id, on in zip(first_week, [date(2026, 1, 5), date(2026, 1, 7), date(2026, 1, 9)]):
        _complete_template(athlete_id, template_id, on=on)
    selected = _template_id("GPP", 2, 1)

    # twelve weeks in, the calendar is back at GPP W1D1
    second_cycle = date(2026, 3, 30)
    with session_scope() as s:
        result = _service(s, athlete_id).start(selected, today=second_cycle)
    assert result.cascade_applied is True
    assert result.cascade_affected_slots == 4

    with session_scope() as s:
        svc = _service(s, athlete_id)
        assert svc.get_completed_template_ids(today=second_cycle) == []
        assert svc.get_completed_template_ids(today=date(2026, 1, 9)) == sorted(first_week)
        assert s.get(WorkoutSession, result.session_id).cycle == 1
        grid = ScheduleOverrideStore(s, athlete_id).grid()
        assert grid.effective_template(WorkoutSlot("GPP", 1, 1)).id == selected


def test_no_cascade_on_rest_day(monkeypatch, tmp_path):
    from core.db import session_scope

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    with session_scope() as s:
        # Tuesday is not a training day
        result = _service(s, athlete_id).start(_template_id("GPP", 2, 1), today=date(2026, 1, 6))
    assert result.cascade_applied is False


def test_advance_to_next_day_wraps_cycle(monkeypatch, tmp_path):
    from core.db import session_scope
    from core.models import UserProgram
    from core.services.programs import advance_to_next_day

    _setup_db(monkeypatch, tmp_path)
    athlete_id = _seed_program()
    with session_scope() as s:
        out = advance_to_next_day(s, athlete_id)
        assert (out["phase"], out["week"], out["day"]) == ("GPP", 1, 2)
        program = s.execute(select(UserProgram).where(UserProgram.athlete_id == athlete_id)).scalar_one()
        program.current_phase, program.current_week, program.current_day = "SSP", 4, 3

    with session_scope() as s:
        out = advance_to_next_day(s, athlete_id)
    assert (out["phase"], out["week"], out["day"]) == ("GPP", 1, 1)
    assert out["phase_complete"] is True
    assert out["cycle_complete"] is True
    assert out["cycles_completed"] == 1
