"""User schedule overrides layered over the default template grid.

The default grid maps every (phase, week, day) slot to the template the
catalog assigns it. Overrides reassign slots without touching templates, and
an optional "today focus" pins a single template for the current day.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from core.errors import AuthorizationError, ConcurrencyConflict, InvalidState, StaleReference
from core.models import ProgramTemplate, ScheduleOverride, UserProgram, WorkoutSession
from core.services import programs
from core.services.calendar_mapping import (
    WEEKS_PER_PHASE,
    WorkoutSlot,
    absolute_index,
    iter_slots,
    week_focus_label,
)
from core.services.intensity_scaling import PHASES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotOverride:
    phase: str
    week: int
    day: int
    template_id: int

    @property
    def slot(self) -> WorkoutSlot:
        return WorkoutSlot(self.phase, self.week, self.day)

    @classmethod
    def for_slot(cls, slot: WorkoutSlot, template_id: int) -> "SlotOverride":
        return cls(slot.phase, slot.week, slot.day, template_id)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SlotOverride":
        return cls(str(raw["phase"]), int(raw["week"]), int(raw["day"]), int(raw["template_id"]))

    def as_dict(self) -> dict[str, Any]:
        return {"phase": self.phase, "week": self.week, "day": self.day, "template_id": self.template_id}


def parse_overrides(raw: Iterable[dict[str, Any]] | None) -> list[SlotOverride]:
    return [SlotOverride.from_dict(r) for r in (raw or [])]


def find_slot_override(overrides: Iterable[SlotOverride], slot: WorkoutSlot) -> Optional[SlotOverride]:
    for o in overrides:
        if o.slot == slot:
            return o
    return None


def replace_slot_overrides(
    existing: Iterable[SlotOverride],
    clear: Callable[[SlotOverride], bool],
    replacements: Iterable[SlotOverride] = (),
) -> list[SlotOverride]:
    """Drop overrides matching ``clear`` and install ``replacements``.

    Any existing override on a replacement's slot is dropped as well, so each
    slot carries at most one override. Applying the same call twice yields the
    same list.
    """
    new = list(replacements)
    replaced_slots = {o.slot for o in new}
    kept = [o for o in existing if not clear(o) and o.slot not in replaced_slots]
    return kept + new


def remove_phase_overrides(existing: Iterable[SlotOverride], phase: str) -> list[SlotOverride]:
    return replace_slot_overrides(existing, lambda o: o.phase == phase)


def build_swap_overrides(slot_a: WorkoutSlot, template_a: int, slot_b: WorkoutSlot, template_b: int) -> list[SlotOverride]:
    return [SlotOverride.for_slot(slot_a, template_b), SlotOverride.for_slot(slot_b, template_a)]


def count_overrides_by_phase(overrides: Iterable[SlotOverride]) -> dict[str, int]:
    counts = {p: 0 for p in PHASES}
    for o in overrides:
        counts[o.phase] = counts.get(o.phase, 0) + 1
    return counts


def validate_swap(slot_a: WorkoutSlot, slot_b: WorkoutSlot) -> None:
    if slot_a == slot_b:
        raise InvalidState("Cannot swap a slot with itself")
    if slot_a.phase != slot_b.phase:
        raise InvalidState("Can only swap workouts within the same phase")


class ScheduleGrid:
    """Default slot assignment for one program plus its overrides."""

    def __init__(
        self,
        templates: Iterable[ProgramTemplate],
        overrides: Iterable[SlotOverride],
        workouts_per_week: int,
        catalog: Optional[dict[int, ProgramTemplate]] = None,
    ):
        self.workouts_per_week = workouts_per_week
        self.overrides = list(overrides)
        self._defaults: dict[WorkoutSlot, ProgramTemplate] = {}
        self._by_id: dict[int, ProgramTemplate] = dict(catalog or {})
        for t in templates:
            self._defaults[WorkoutSlot(t.phase, t.week, t.day)] = t
            self._by_id.setdefault(t.id, t)

    def with_overrides(self, overrides: Iterable[SlotOverride]) -> "ScheduleGrid":
        return ScheduleGrid(self._defaults.values(), overrides, self.workouts_per_week, self._by_id)

    def template(self, template_id: int) -> Optional[ProgramTemplate]:
        return self._by_id.get(template_id)

    def slots(self, phase: Optional[str] = None) -> list[WorkoutSlot]:
        return list(iter_slots(self.workouts_per_week, phase))

    def index(self, slot: WorkoutSlot) -> int:
        return absolute_index(slot, self.workouts_per_week)

    def default_template(self, slot: WorkoutSlot) -> Optional[ProgramTemplate]:
        return self._defaults.get(slot)

    def override_for(self, slot: WorkoutSlot) -> Optional[SlotOverride]:
        return find_slot_override(self.overrides, slot)

    def _resolve_override(self, override: SlotOverride) -> ProgramTemplate:
        template = self._by_id.get(override.template_id)
        if template is None:
            raise StaleReference("Override references a missing template", template_id=override.template_id)
        return template

    def effective_template(self, slot: WorkoutSlot) -> Optional[ProgramTemplate]:
        override = self.override_for(slot)
        if override is None:
            return self.default_template(slot)
        try:
            return self._resolve_override(override)
        except StaleReference as exc:
            logger.warning(
                "stale_slot_override",
                extra={"slot": slot.as_dict(), "template_id": exc.details.get("template_id")},
            )
            return self.default_template(slot)

    def is_overridden(self, slot: WorkoutSlot) -> bool:
        return self.override_for(slot) is not None

    def find_slot(self, template_id: int) -> Optional[WorkoutSlot]:
        for slot in self.slots():
            template = self.effective_template(slot)
            if template is not None and template.id == template_id:
                return slot
        return None


@dataclass
class ScheduleEntry:
    slot: WorkoutSlot
    template: Optional[ProgramTemplate]
    is_overridden: bool
    is_completed: bool

    def as_dict(self) -> dict[str, Any]:
        t = self.template
        return {
            **self.slot.as_dict(),
            "template_id": t.id if t else None,
            "name": t.name if t else None,
            "estimated_duration_min": t.estimated_duration_min if t else None,
            "exercise_count": len(t.exercises or []) if t else 0,
            "is_overridden": self.is_overridden,
            "is_completed": self.is_completed,
        }


@dataclass
class TodayWorkout:
    template: ProgramTemplate
    source: str
    slot: Optional[WorkoutSlot] = None
    is_first_incomplete: bool = False
    session_id: Optional[int] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "template_id": self.template.id,
            "name": self.template.name,
            "phase": self.template.phase,
            "week": self.template.week,
            "day": self.template.day,
            "source": self.source,
            "slot": self.slot.as_dict() if self.slot else None,
            "is_first_incomplete": self.is_first_incomplete,
            "session_id": self.session_id,
        }


class ScheduleOverrideStore:
    def __init__(self, s: Session, athlete_id: int):
        self.s = s
        self.athlete_id = athlete_id

    # -- loading --

    def program(self) -> UserProgram:
        return programs.get_program(self.s, self.athlete_id)

    def get_override_record(self, program: Optional[UserProgram] = None) -> Optional[ScheduleOverride]:
        program = program or self.program()
        return self.s.execute(
            select(ScheduleOverride).where(ScheduleOverride.user_program_id == program.id)
        ).scalar_one_or_none()

    def get_or_create_record(self, program: UserProgram) -> ScheduleOverride:
        """Return the program's override record, adding an unsaved one if missing."""
        record = self.get_override_record(program)
        if record is None:
            record = ScheduleOverride(
                athlete_id=self.athlete_id,
                user_program_id=program.id,
                slot_overrides=[],
            )
            self.s.add(record)
        return record

    def grid(self, program: Optional[UserProgram] = None, record: Optional[ScheduleOverride] = None) -> ScheduleGrid:
        program = program or self.program()
        if record is None:
            record = self.get_override_record(program)
        catalog = {t.id: t for t in programs.category_templates(self.s, program.category_id)}
        return ScheduleGrid(
            templates=programs.program_templates(self.s, program),
            overrides=parse_overrides(record.slot_overrides if record else None),
            workouts_per_week=len(programs.program_training_days(program)),
            catalog=catalog,
        )

    def _flush(self) -> None:
        try:
            self.s.flush()
        except StaleDataError as exc:
            raise ConcurrencyConflict("Schedule was modified concurrently, retry") from exc
        except IntegrityError as exc:
            # another request created the override record first
            self.s.rollback()
            raise ConcurrencyConflict("Schedule was modified concurrently, retry") from exc

    def write_overrides(self, record: ScheduleOverride, overrides: list[SlotOverride]) -> None:
        record.slot_overrides = [o.as_dict() for o in overrides]
        self._flush()

    def completed_ids(self, program: UserProgram, on: Optional[dt.date] = None) -> set[int]:
        return programs.completed_in_current_cycle(self.s, program, on or dt.datetime.utcnow().date())

    # -- queries --

    def get_week_schedule(self, phase: str, week: int, today: Optional[dt.date] = None) -> list[ScheduleEntry]:
        program = self.program()
        grid = self.grid(program)
        completed = self.completed_ids(program, today)
        entries = []
        for slot in grid.slots(phase):
            if slot.week != week:
                continue
            template = grid.effective_template(slot)
            entries.append(
                ScheduleEntry(
                    slot=slot,
                    template=template,
                    is_overridden=grid.is_overridden(slot),
                    is_completed=bool(template and template.id in completed),
                )
            )
        return sorted(entries, key=lambda e: e.slot.day)

    def get_phase_overview(self, phase: str, today: Optional[dt.date] = None) -> dict[str, Any]:
        program = self.program()
        grid = self.grid(program)
        completed = self.completed_ids(program, today)
        weeks = []
        for week in range(1, WEEKS_PER_PHASE + 1):
            workouts = []
            for slot in grid.slots(phase):
                if slot.week != week:
                    continue
                template = grid.effective_template(slot)
                workouts.append(
                    ScheduleEntry(slot, template, grid.is_overridden(slot), bool(template and template.id in completed)).as_dict()
                )
            weeks.append({"week": week, "focus": week_focus_label(week), "workouts": workouts})
        return {
            "phase": phase,
            "weeks": weeks,
            "override_count": count_overrides_by_phase(grid.overrides).get(phase, 0),
        }

    def get_today_workout(self, now: Optional[dt.datetime] = None) -> Optional[TodayWorkout]:
        now = now or dt.datetime.utcnow()
        program = self.program()

        active = self.s.execute(
            select(WorkoutSession).where(
                WorkoutSession.athlete_id == self.athlete_id,
                WorkoutSession.status == "in_progress",
            )
        ).scalar_one_or_none()
        record = self.get_override_record(program)
        grid = self.grid(program, record)

        if active is not None:
            template = grid.template(active.template_id) or self.s.get(ProgramTemplate, active.template_id)
            if template is not None:
                return TodayWorkout(template=template, source="in_progress", slot=grid.find_slot(template.id), session_id=active.id)

        completed = self.completed_ids(program, now.date())

        if record is not None and record.today_focus_template_id is not None:
            focus = grid.template(record.today_focus_template_id)
            if focus is not None and focus.id not in completed:
                return TodayWorkout(template=focus, source="today_focus", slot=grid.find_slot(focus.id))

        nominal = programs.current_slot(program)
        for slot in grid.slots(nominal.phase):
            if slot.week != nominal.week:
                continue
            template = grid.effective_template(slot)
            if template is not None and template.id not in completed:
                return TodayWorkout(
                    template=template,
                    source="scheduled",
                    slot=slot,
                    is_first_incomplete=slot.day != nominal.day,
                )

        template = grid.effective_template(nominal)
        if template is None:
            return None
        return TodayWorkout(template=template, source="scheduled", slot=nominal)

    # -- mutations --

    def set_today_focus(self, template_id: int, now: Optional[dt.datetime] = None) -> ScheduleOverride:
        now = now or dt.datetime.utcnow()
        program = self.program()
        template = programs.get_template(self.s, template_id)
        if template.category_id != program.category_id:
            raise AuthorizationError("Template does not belong to your program category", template_id=template_id)
        if template_id in self.completed_ids(program, now.date()):
            raise InvalidState("This workout has already been completed", template_id=template_id)

        record = self.get_or_create_record(program)
        record.today_focus_template_id = template_id
        record.today_focus_set_at = now
        self._flush()
        logger.info("today_focus_set", extra={"athlete_id": self.athlete_id, "template_id": template_id})
        return record

    def clear_today_focus(self) -> Optional[ScheduleOverride]:
        record = self.get_override_record()
        if record is None:
            return None
        record.today_focus_template_id = None
        record.today_focus_set_at = None
        self._flush()
        return record

    def swap_workouts(self, slot_a: WorkoutSlot, slot_b: WorkoutSlot, today: Optional[dt.date] = None) -> ScheduleOverride:
        validate_swap(slot_a, slot_b)
        program = self.program()
        record = self.get_override_record(program)
        grid = self.grid(program, record)

        template_a = grid.effective_template(slot_a)
        template_b = grid.effective_template(slot_b)
        if template_a is None or template_b is None:
            raise InvalidState("Cannot swap a rest day")
        completed = self.completed_ids(program, today)
        if template_a.id in completed or template_b.id in completed:
            raise InvalidState("Cannot swap a completed workout")

        record = record or self.get_or_create_record(program)
        pair = {slot_a, slot_b}
        updated = replace_slot_overrides(
            grid.overrides,
            lambda o: o.slot in pair,
            build_swap_overrides(slot_a, template_a.id, slot_b, template_b.id),
        )
        self.write_overrides(record, updated)
        logger.info(
            "schedule_swap",
            extra={"athlete_id": self.athlete_id, "slot_a": slot_a.as_dict(), "slot_b": slot_b.as_dict()},
        )
        return record

    def reset_phase_to_default(self, phase: str) -> Optional[ScheduleOverride]:
        record = self.get_override_record()
        if record is None:
            return None
        existing = parse_overrides(record.slot_overrides)
        self.write_overrides(record, remove_phase_overrides(existing, phase))
        logger.info("phase_reset", extra={"athlete_id": self.athlete_id, "phase": phase, "removed": len(existing) - len(record.slot_overrides)})
        return record
