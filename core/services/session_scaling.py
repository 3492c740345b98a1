"""Scale a template's prescriptions for display on a workout session.

Sessions that carry a scaling snapshot use the category system; older
sessions only know a Low/Moderate/High intensity and use the legacy table.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from core.models import Exercise, WorkoutSession
from core.services.intensity_scaling import (
    apply_intensity_to_bodyweight,
    apply_intensity_to_weighted,
    get_bodyweight_variant,
    get_category_exercise_parameters,
    get_experience_bucket,
    get_exercise_focus,
    is_bodyweight_exercise,
    leading_reps,
    normalize_age_group,
    round_half_up,
)


class ScalingStrategy(ABC):
    name: str = ""

    @abstractmethod
    def scale(self, occurrence: dict[str, Any], exercise: Optional[Exercise], one_rep_max: Optional[float]) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def context(self) -> dict[str, Any]:
        raise NotImplementedError

    def scale_all(
        self,
        occurrences: list[dict[str, Any]],
        exercises: dict[int, Exercise],
        maxes: dict[int, float],
    ) -> list[dict[str, Any]]:
        out = []
        for occ in occurrences:
            exercise_id = int(occ["exercise_id"])
            exercise = exercises.get(exercise_id)
            scaled = self.scale(occ, exercise, maxes.get(exercise_id))
            out.append({**occ, "exercise": _exercise_summary(exercise), **scaled})
        return out


def _exercise_summary(exercise: Optional[Exercise]) -> Optional[dict[str, Any]]:
    if exercise is None:
        return None
    return {
        "id": exercise.id,
        "slug": exercise.slug,
        "name": exercise.name,
        "tags": list(exercise.tags or []),
        "equipment": list(exercise.equipment or []),
    }


class CategoryScalingStrategy(ScalingStrategy):
    name = "category"

    def __init__(self, snapshot: dict[str, Any]):
        self.category_id = int(snapshot["category_id"])
        self.phase = str(snapshot["phase"])
        self.age_group = normalize_age_group(snapshot.get("age_group"))
        self.years_of_experience = float(snapshot.get("years_of_experience") or 0)
        self.experience_bucket = get_experience_bucket(self.years_of_experience)

    def context(self) -> dict[str, Any]:
        return {
            "strategy": self.name,
            "category_id": self.category_id,
            "phase": self.phase,
            "age_group": self.age_group,
            "years_of_experience": self.years_of_experience,
            "experience_bucket": self.experience_bucket,
        }

    def scale(self, occurrence, exercise, one_rep_max):
        focus = get_exercise_focus(exercise.tags if exercise else None, exercise.equipment if exercise else None)
        params = get_category_exercise_parameters(
            self.category_id, self.phase, self.age_group, self.years_of_experience, focus
        )
        base = {
            "scaled_sets": params.sets,
            "scaled_reps": str(params.reps),
            "scaled_rest_seconds": params.rest_seconds,
            "rpe_target": {"min": params.rpe.min, "max": params.rpe.max},
            "tempo": params.tempo,
            "exercise_focus": focus,
        }
        if focus == "bodyweight":
            variant = get_bodyweight_variant(
                exercise.slug if exercise else "",
                self.phase,
                self.experience_bucket,
                exercise.progressions if exercise else None,
            )
            return {
                **base,
                "is_bodyweight": True,
                "is_substituted": variant.is_substituted,
                "substituted_exercise_slug": variant.slug if variant.is_substituted else None,
                "target_weight": None,
                "percent_of_1rm": None,
                "has_one_rep_max": False,
            }

        avg = (params.one_rep_max_percent.min + params.one_rep_max_percent.max) / 2
        return {
            **base,
            "is_bodyweight": False,
            "is_substituted": False,
            "substituted_exercise_slug": None,
            "target_weight": round_half_up(one_rep_max * avg) if one_rep_max else None,
            "percent_of_1rm": round_half_up(avg * 100),
            "has_one_rep_max": bool(one_rep_max),
        }


class LegacyIntensityStrategy(ScalingStrategy):
    name = "legacy_intensity"

    def __init__(self, intensity: Optional[str] = None):
        self.intensity = intensity or "Moderate"

    def context(self) -> dict[str, Any]:
        return {"strategy": self.name, "intensity": self.intensity}

    def scale(self, occurrence, exercise, one_rep_max):
        reps = str(occurrence.get("reps", ""))
        rest = int(occurrence.get("rest_seconds", 60))
        sets = int(occurrence.get("sets", 1))

        if is_bodyweight_exercise(exercise.equipment if exercise else None):
            scaled = apply_intensity_to_bodyweight(
                reps,
                rest,
                self.intensity,
                exercise.slug if exercise else "",
                exercise.progressions if exercise else None,
            )
            return {
                "scaled_sets": sets,
                "scaled_reps": scaled["reps"],
                "scaled_rest_seconds": scaled["rest_seconds"],
                "rpe_target": scaled["rpe_target"],
                "is_bodyweight": True,
                "is_substituted": scaled["is_substituted"],
                "substituted_exercise_slug": scaled["exercise_slug"] if scaled["is_substituted"] else None,
                "target_weight": None,
                "percent_of_1rm": None,
                "has_one_rep_max": False,
            }

        scaled = apply_intensity_to_weighted(sets, leading_reps(reps), rest, self.intensity, one_rep_max)
        return {
            "scaled_sets": scaled["sets"],
            "scaled_reps": str(scaled["reps"]),
            "scaled_rest_seconds": scaled["rest_seconds"],
            "rpe_target": scaled["rpe_target"],
            "is_bodyweight": False,
            "is_substituted": False,
            "substituted_exercise_slug": None,
            "target_weight": scaled["weight"],
            "percent_of_1rm": scaled["percent_of_1rm"],
            "has_one_rep_max": bool(one_rep_max),
        }


def strategy_for_session(session: WorkoutSession) -> ScalingStrategy:
    if session.scaling_snapshot:
        return CategoryScalingStrategy(session.scaling_snapshot)
    return LegacyIntensityStrategy(session.target_intensity)
