from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from core.services.calendar_mapping import WorkoutSlot
from core.services.schedule_overrides import ScheduleGrid, ScheduleOverrideStore, SlotOverride, replace_slot_overrides

logger = logging.getLogger(__name__)


@dataclass
class CascadePlan:
    triggered: bool = False
    applied: bool = False
    affected_slots: int = 0
    overrides: list[SlotOverride] = field(default_factory=list)
    assignments: dict[WorkoutSlot, int] = field(default_factory=dict)
    blocked_by: Optional[WorkoutSlot] = None


def plan_cascade(
    grid: ScheduleGrid,
    selected_template_id: int,
    today_slot: Optional[WorkoutSlot],
    completed_ids: Iterable[int],
) -> CascadePlan:
    """Pull a later workout forward into today's slot.

    Every slot between today and the selected workout moves one position
    later. Nothing moves if any slot in that range holds a completed workout.
    """
    if today_slot is None:
        return CascadePlan()
    selected_slot = grid.find_slot(selected_template_id)
    if selected_slot is None:
        return CascadePlan()

    today_index = grid.index(today_slot)
    selected_index = grid.index(selected_slot)
    if selected_index <= today_index:
        return CascadePlan()

    # rest slots (no template) take no part in the shift
    in_range = []
    occupants = []
    for slot in grid.slots():
        if not today_index <= grid.index(slot) <= selected_index:
            continue
        template = grid.effective_template(slot)
        if template is not None:
            in_range.append(slot)
            occupants.append(template)
    if not in_range or in_range[0] != today_slot:
        return CascadePlan()

    completed = set(completed_ids)
    for slot, template in zip(in_range, occupants):
        if template.id in completed:
            return CascadePlan(triggered=True, applied=False, affected_slots=len(in_range), overrides=list(grid.overrides), blocked_by=slot)

    assignments = {in_range[0]: selected_template_id}
    for i in range(1, len(in_range)):
        assignments[in_range[i]] = occupants[i - 1].id

    replacements = []
    for slot, template_id in assignments.items():
        default = grid.default_template(slot)
        if default is None or template_id != default.id:
            replacements.append(SlotOverride.for_slot(slot, template_id))

    touched = set(in_range)
    overrides = replace_slot_overrides(grid.overrides, lambda o: o.slot in touched, replacements)
    return CascadePlan(
        triggered=True,
        applied=True,
        affected_slots=len(in_range),
        overrides=overrides,
        assignments=assignments,
    )


def apply_cascade(
    store: ScheduleOverrideStore,
    selected_template_id: int,
    today_slot: Optional[WorkoutSlot],
    today: Optional[dt.date] = None,
) -> CascadePlan:
    """Plan the cascade against the stored schedule and persist it when allowed.

    Only sessions completed in the cycle running on ``today`` block the shift.
    """
    program = store.program()
    record = store.get_override_record(program)
    grid = store.grid(program, record)
    completed = store.completed_ids(program, today)
    plan = plan_cascade(grid, selected_template_id, today_slot, completed)

    if not plan.triggered:
        return plan
    if not plan.applied:
        logger.info(
            "cascade_blocked",
            extra={
                "athlete_id": store.athlete_id,
                "template_id": selected_template_id,
                "blocked_by": plan.blocked_by.as_dict() if plan.blocked_by else None,
            },
        )
        return plan

    record = record or store.get_or_create_record(program)
    store.write_overrides(record, plan.overrides)
    logger.info(
        "cascade_applied",
        extra={"athlete_id": store.athlete_id, "template_id": selected_template_id, "affected_slots": plan.affected_slots},
    )
    return plan
