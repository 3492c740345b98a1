"""Map calendar dates onto abstract (phase, week, day) workout slots.

Training days are Python weekday numbers (Monday=0). A program is a cycle of
three phases of four weeks each; after SSP the next cycle starts at GPP.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from core.config import get_settings
from core.services.intensity_scaling import PHASES

WEEKS_PER_PHASE = 4

DEFAULT_TRAINING_DAYS: dict[int, list[int]] = {
    1: [0],
    2: [0, 3],
    3: [0, 2, 4],
    4: [0, 1, 3, 4],
    5: [0, 1, 2, 3, 4],
    6: [0, 1, 2, 3, 4, 5],
    7: [0, 1, 2, 3, 4, 5, 6],
}

WEEK_FOCUS_LABELS = {1: "Introduction", 2: "Build", 3: "Peak", 4: "Deload"}


@dataclass(frozen=True)
class WorkoutSlot:
    phase: str
    week: int
    day: int

    def as_dict(self) -> dict:
        return {"phase": self.phase, "week": self.week, "day": self.day}


@dataclass(frozen=True)
class CalendarSlot:
    slot: WorkoutSlot
    cycle: int
    occurrence_index: int


@dataclass(frozen=True)
class Advance:
    slot: WorkoutSlot
    phase_complete: bool
    cycle_complete: bool


def resolve_training_days(selected: Optional[Iterable[int]], per_week: Optional[int] = None) -> list[int]:
    days = sorted({int(d) for d in (selected or []) if 0 <= int(d) <= 6})
    if days:
        return days
    return list(DEFAULT_TRAINING_DAYS.get(per_week or 3, DEFAULT_TRAINING_DAYS[3]))


def _as_date(value: dt.date | dt.datetime) -> dt.date:
    return value.date() if isinstance(value, dt.datetime) else value


def first_training_date(program_start: dt.date | dt.datetime, training_days: Iterable[int]) -> Optional[dt.date]:
    days = sorted(set(training_days))
    if not days:
        return None
    start = _as_date(program_start)
    earliest = days[0]
    offset = (earliest - start.weekday()) % 7
    return start + dt.timedelta(days=offset)


def slot_from_index(index: int, workouts_per_week: int) -> tuple[WorkoutSlot, int]:
    per_phase = WEEKS_PER_PHASE * workouts_per_week
    per_cycle = per_phase * len(PHASES)
    cycle, in_cycle = divmod(index, per_cycle)
    phase_idx, in_phase = divmod(in_cycle, per_phase)
    week = in_phase // workouts_per_week + 1
    day = in_phase % workouts_per_week + 1
    return WorkoutSlot(PHASES[phase_idx], week, day), cycle


def get_workout_for_date(
    program_start: dt.date | dt.datetime,
    training_days: Iterable[int],
    target: dt.date | dt.datetime,
    max_steps: Optional[int] = None,
) -> Optional[CalendarSlot]:
    """Resolve which slot a calendar date falls on, or None for a rest day."""
    days = sorted(set(training_days))
    if not days:
        return None
    target_date = _as_date(target)
    if target_date.weekday() not in days:
        return None

    first = first_training_date(program_start, days)
    if first is None or target_date < first:
        return None

    limit = max_steps if max_steps is not None else get_settings().calendar_max_steps
    current = first
    index = 0
    while current < target_date:
        index += 1
        if index > limit:
            return None
        current = next_training_date(current, days)

    slot, cycle = slot_from_index(index, len(days))
    return CalendarSlot(slot=slot, cycle=cycle, occurrence_index=index)


def next_training_date(current: dt.date, training_days: list[int]) -> dt.date:
    for step in range(1, 8):
        candidate = current + dt.timedelta(days=step)
        if candidate.weekday() in training_days:
            return candidate
    raise ValueError("training_days must not be empty")


def absolute_index(slot: WorkoutSlot, workouts_per_week: int) -> int:
    phase_idx = PHASES.index(slot.phase)
    return phase_idx * WEEKS_PER_PHASE * workouts_per_week + (slot.week - 1) * workouts_per_week + (slot.day - 1)


def iter_slots(workouts_per_week: int, phase: Optional[str] = None) -> Iterator[WorkoutSlot]:
    phases = (phase,) if phase else PHASES
    for p in phases:
        for week in range(1, WEEKS_PER_PHASE + 1):
            for day in range(1, workouts_per_week + 1):
                yield WorkoutSlot(p, week, day)


def slot_range(start: WorkoutSlot, end: WorkoutSlot, workouts_per_week: int) -> list[WorkoutSlot]:
    lo = absolute_index(start, workouts_per_week)
    hi = absolute_index(end, workouts_per_week)
    return [s for s in iter_slots(workouts_per_week) if lo <= absolute_index(s, workouts_per_week) <= hi]


def next_phase(phase: str) -> str:
    return PHASES[(PHASES.index(phase) + 1) % len(PHASES)]


def advance_slot(phase: str, week: int, day: int, workouts_per_week: int) -> Advance:
    if day < workouts_per_week:
        return Advance(WorkoutSlot(phase, week, day + 1), False, False)
    if week < WEEKS_PER_PHASE:
        return Advance(WorkoutSlot(phase, week + 1, 1), False, False)
    upcoming = next_phase(phase)
    return Advance(WorkoutSlot(upcoming, 1, 1), True, upcoming == PHASES[0])


def cycle_for_date(program_start: dt.date | dt.datetime, training_days: Iterable[int], on: dt.date | dt.datetime) -> int:
    """Program cycle in effect on a date, rest days included.

    Counts training dates from the first one up to ``on`` directly, so it is
    not bounded by the calendar walk limit. Dates before the first training
    date belong to cycle 0.
    """
    days = sorted(set(training_days))
    first = first_training_date(program_start, days)
    on_date = _as_date(on)
    if first is None or on_date < first:
        return 0
    full_weeks, remainder = divmod((on_date - first).days, 7)
    occurrences = full_weeks * len(days) + sum(1 for d in days if (d - first.weekday()) % 7 <= remainder)
    per_cycle = WEEKS_PER_PHASE * len(days) * len(PHASES)
    return (occurrences - 1) // per_cycle


def week_focus_label(week: int) -> str:
    return WEEK_FOCUS_LABELS.get(week, "Training")
