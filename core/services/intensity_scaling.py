"""Exercise prescription scaling.

Two scaling systems live here:

* the category system, which resolves sets/reps/rest/tempo/RPE/%1RM from
  (sport category, phase, age group, years of experience, exercise focus);
* the legacy Low/Moderate/High intensity table, kept for sessions that were
  started before scaling inputs were captured on the session.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, Optional

PHASES = ("GPP", "SPP", "SSP")
AGE_GROUPS = ("14-17", "18-35", "36+")
EXPERIENCE_BUCKETS = ("0-1", "2-5", "6+")
INTENSITIES = ("Low", "Moderate", "High")
FOCUSES = ("strength", "power", "bodyweight")

POSITIONS = (
    "lowest",
    "lowest_plus_1",
    "lowest_plus_2",
    "second_lowest",
    "middle",
    "max_minus_2",
    "max_minus_1",
    "max",
)

POWER_TAGS = {"power", "explosive", "plyometric", "reactive"}

_LEGACY_AGE_GROUPS = {"10-13": "14-17", "18+": "18-35"}


@dataclass(frozen=True)
class ParameterRange:
    min: float
    max: float


@dataclass(frozen=True)
class Tempo:
    eccentric: int | str
    isometric: int | str
    concentric: int | str


@dataclass(frozen=True)
class CategoryPhaseConfig:
    one_rep_max_percent: dict[str, ParameterRange]
    reps: dict[str, ParameterRange]
    sets: ParameterRange
    rest_seconds: dict[str, int]
    tempo: Tempo
    rpe: ParameterRange


@dataclass(frozen=True)
class AgeExperienceModifier:
    sets_position: str
    reps_position: str


@dataclass(frozen=True)
class AgeSafetyConstraint:
    max_sets: Optional[int]
    one_rep_max_ceiling: float


@dataclass(frozen=True)
class ScaledCategoryParameters:
    sets: int
    reps: int
    rest_seconds: int
    tempo: str
    rpe: ParameterRange
    one_rep_max_percent: ParameterRange


@dataclass(frozen=True)
class VariantSelection:
    slug: str
    is_substituted: bool


def _r(lo: float, hi: float) -> ParameterRange:
    return ParameterRange(lo, hi)


def _cell(
    orm_s: tuple[float, float],
    orm_p: tuple[float, float],
    reps_s: tuple[int, int],
    reps_p: tuple[int, int],
    sets: tuple[int, int],
    rest: tuple[int, int],
    tempo: tuple,
    rpe: tuple[int, int],
) -> CategoryPhaseConfig:
    return CategoryPhaseConfig(
        one_rep_max_percent={"strength": _r(*orm_s), "power": _r(*orm_p)},
        reps={"strength": _r(*reps_s), "power": _r(*reps_p)},
        sets=_r(*sets),
        rest_seconds={"strength": rest[0], "power": rest[1]},
        tempo=Tempo(*tempo),
        rpe=_r(*rpe),
    )


# category -> phase -> config
CATEGORY_PHASE_CONFIG: dict[int, dict[str, CategoryPhaseConfig]] = {
    # Endurance: Soccer, Hockey, Lacrosse
    1: {
        "GPP": _cell((0.50, 0.65), (0.30, 0.30), (10, 14), (6, 8), (4, 6), (30, 60), (2, 1, 2), (6, 7)),
        "SPP": _cell((0.65, 0.75), (0.40, 0.40), (6, 8), (4, 6), (4, 6), (60, 60), (2, 0, 2), (7, 8)),
        "SSP": _cell((0.75, 0.80), (0.55, 0.55), (4, 6), (4, 6), (3, 5), (60, 60), ("x", "x", "x"), (8, 9)),
    },
    # Power: Basketball, Volleyball
    2: {
        "GPP": _cell((0.55, 0.65), (0.35, 0.35), (10, 14), (6, 8), (4, 6), (30, 60), (1, 1, 1), (6, 7)),
        "SPP": _cell((0.65, 0.80), (0.45, 0.45), (8, 12), (4, 6), (4, 6), (60, 60), (2, 0, 2), (7, 8)),
        "SSP": _cell((0.80, 0.90), (0.50, 0.60), (4, 6), (3, 6), (4, 6), (120, 120), ("x", "x", "x"), (9, 9)),
    },
    # Rotational: Baseball, Tennis, Golf
    3: {
        "GPP": _cell((0.50, 0.60), (0.30, 0.30), (10, 14), (8, 10), (2, 4), (40, 60), (2, 0, 2), (6, 7)),
        "SPP": _cell((0.60, 0.70), (0.35, 0.40), (8, 12), (6, 8), (3, 5), (90, 60), (2, 0, 2), (7, 8)),
        "SSP": _cell((0.70, 0.85), (0.50, 0.50), (4, 6), (3, 6), (4, 6), (120, 120), ("x", "x", "x"), (8, 9)),
    },
    # Strength: Wrestling, Football
    4: {
        "GPP": _cell((0.60, 0.70), (0.35, 0.40), (10, 12), (6, 8), (3, 5), (30, 60), (2, 1, 2), (7, 7)),
        "SPP": _cell((0.70, 0.85), (0.45, 0.50), (8, 12), (4, 6), (4, 5), (90, 60), (2, 0, 2), (7, 9)),
        "SSP": _cell((0.85, 0.90), (0.55, 0.55), (3, 5), (3, 6), (4, 6), (120, 120), ("x", "x", "x"), (8, 9)),
    },
}

_ADULT_MATRIX = {
    "0-1": AgeExperienceModifier("max", "max_minus_2"),
    "2-5": AgeExperienceModifier("max", "max_minus_1"),
    "6+": AgeExperienceModifier("max", "max"),
}

AGE_EXPERIENCE_MATRIX: dict[str, dict[str, AgeExperienceModifier]] = {
    "14-17": {
        "0-1": AgeExperienceModifier("middle", "middle"),
        "2-5": AgeExperienceModifier("max", "max_minus_1"),
        "6+": AgeExperienceModifier("max", "max"),
    },
    "18-35": dict(_ADULT_MATRIX),
    "36+": dict(_ADULT_MATRIX),
}

AGE_SAFETY_CONSTRAINTS: dict[str, AgeSafetyConstraint] = {
    "14-17": AgeSafetyConstraint(max_sets=None, one_rep_max_ceiling=0.85),
    "18-35": AgeSafetyConstraint(max_sets=None, one_rep_max_ceiling=0.90),
    "36+": AgeSafetyConstraint(max_sets=None, one_rep_max_ceiling=0.90),
}

BODYWEIGHT_VARIANT_MATRIX: dict[str, dict[str, str]] = {
    "GPP": {"0-1": "easier", "2-5": "base", "6+": "base"},
    "SPP": {"0-1": "base", "2-5": "base", "6+": "base"},
    "SSP": {"0-1": "base", "2-5": "base", "6+": "harder"},
}

PHASE_INTENSITY_RANGES: dict[str, ParameterRange] = {
    "GPP": _r(0.60, 0.75),
    "SPP": _r(0.75, 0.85),
    "SSP": _r(0.85, 0.90),
}

CATEGORY_NAMES = {1: "Endurance", 2: "Power", 3: "Rotational", 4: "Strength"}
CATEGORY_SPORTS = {
    1: ["Soccer", "Hockey", "Lacrosse"],
    2: ["Basketball", "Volleyball"],
    3: ["Baseball", "Tennis", "Golf"],
    4: ["Wrestling", "Football"],
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_age_group(age_group: Optional[str]) -> str:
    """Map stored age group values onto the current groups.

    Profiles written before the 14-17/18-35/36+ split may still carry
    "10-13" or "18+"; anything unrecognised is treated as an adult.
    """
    if age_group in AGE_GROUPS:
        return age_group
    return _LEGACY_AGE_GROUPS.get(age_group or "", "18-35")


def get_experience_bucket(years_of_experience: float) -> str:
    if years_of_experience <= 1:
        return "0-1"
    if years_of_experience <= 5:
        return "2-5"
    return "6+"


def value_from_position(rng: ParameterRange, position: str) -> int:
    lo, hi = int(rng.min), int(rng.max)
    if position == "lowest":
        value = lo
    elif position in ("lowest_plus_1", "second_lowest"):
        value = lo + 1
    elif position == "lowest_plus_2":
        value = lo + 2
    elif position == "middle":
        value = round_half_up((lo + hi) / 2)
    elif position == "max_minus_2":
        value = hi - 2
    elif position == "max_minus_1":
        value = hi - 1
    elif position == "max":
        value = hi
    else:
        raise ValueError(f"unknown position: {position}")
    return max(lo, min(hi, value))


def is_bodyweight_exercise(equipment: Optional[Iterable[str]]) -> bool:
    items = list(equipment or [])
    return not items or items == ["bodyweight"]


def get_exercise_focus(tags: Optional[Iterable[str]] = None, equipment: Optional[Iterable[str]] = None) -> str:
    if is_bodyweight_exercise(equipment):
        return "bodyweight"
    if any(str(t).lower() in POWER_TAGS for t in (tags or [])):
        return "power"
    return "strength"


def format_tempo(tempo: Tempo) -> str:
    return ".".join(str(part) for part in (tempo.eccentric, tempo.isometric, tempo.concentric))


def apply_age_safety_constraints(params: ScaledCategoryParameters, age_group: str) -> ScaledCategoryParameters:
    constraint = AGE_SAFETY_CONSTRAINTS[age_group]
    sets = params.sets if constraint.max_sets is None else min(params.sets, constraint.max_sets)
    ceiling = constraint.one_rep_max_ceiling
    orm = ParameterRange(
        min(params.one_rep_max_percent.min, ceiling),
        min(params.one_rep_max_percent.max, ceiling),
    )
    return ScaledCategoryParameters(
        sets=sets,
        reps=params.reps,
        rest_seconds=params.rest_seconds,
        tempo=params.tempo,
        rpe=params.rpe,
        one_rep_max_percent=orm,
    )


def get_category_exercise_parameters(
    category_id: int,
    phase: str,
    age_group: str,
    years_of_experience: float,
    exercise_focus: str,
) -> ScaledCategoryParameters:
    config = CATEGORY_PHASE_CONFIG[category_id][phase]
    modifier = AGE_EXPERIENCE_MATRIX[age_group][get_experience_bucket(years_of_experience)]
    focus = "power" if exercise_focus == "power" else "strength"

    params = ScaledCategoryParameters(
        sets=value_from_position(config.sets, modifier.sets_position),
        reps=value_from_position(config.reps[focus], modifier.reps_position),
        rest_seconds=config.rest_seconds[focus],
        tempo=format_tempo(config.tempo),
        rpe=config.rpe,
        one_rep_max_percent=config.one_rep_max_percent[focus],
    )
    return apply_age_safety_constraints(params, age_group)


def get_bodyweight_variant(
    base_slug: str,
    phase: str,
    experience_bucket: str,
    progressions: Optional[dict] = None,
) -> VariantSelection:
    tier = BODYWEIGHT_VARIANT_MATRIX.get(phase, {}).get(experience_bucket, "base")
    if tier in ("easier", "harder"):
        variant = (progressions or {}).get(tier)
        if variant:
            return VariantSelection(slug=variant, is_substituted=True)
    return VariantSelection(slug=base_slug, is_substituted=False)


def get_effective_one_rep_max_ceiling(age_group: str, phase: str) -> float:
    return min(AGE_SAFETY_CONSTRAINTS[age_group].one_rep_max_ceiling, PHASE_INTENSITY_RANGES[phase].max)


def get_one_rep_max_range(age_group: str, phase: str) -> ParameterRange:
    return ParameterRange(PHASE_INTENSITY_RANGES[phase].min, get_effective_one_rep_max_ceiling(age_group, phase))


def get_category_name(category_id: int) -> str:
    return CATEGORY_NAMES[category_id]


def get_category_sports(category_id: int) -> list[str]:
    return list(CATEGORY_SPORTS[category_id])


# -- Legacy intensity table --


@dataclass(frozen=True)
class IntensityConfig:
    one_rep_max_percent: ParameterRange
    sets_multiplier: float
    reps_multiplier: float
    rest_multiplier: float
    rpe: ParameterRange
    bodyweight_multiplier: float


INTENSITY_CONFIG: dict[str, IntensityConfig] = {
    "Low": IntensityConfig(_r(0.60, 0.70), 0.75, 1.0, 1.25, _r(5, 6), 0.67),
    "Moderate": IntensityConfig(_r(0.75, 0.80), 1.0, 1.0, 1.0, _r(6, 7), 1.0),
    "High": IntensityConfig(_r(0.85, 0.90), 1.25, 0.85, 0.75, _r(8, 9), 1.33),
}

_LEGACY_VARIANT_TIER = {"Low": "easier", "Moderate": "base", "High": "harder"}


@dataclass(frozen=True)
class ParsedReps:
    value: float
    unit: str
    suffix: str = ""


_SIDE_RE = re.compile(r"^([\d\s\-]+)\s*(each|per)\s+(side|leg|arm)", re.IGNORECASE)
_MIN_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*min(?:utes?)?$", re.IGNORECASE)
_SEC_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*s(?:ec(?:onds?)?)?$", re.IGNORECASE)
_RANGE_RE = re.compile(r"^(\d+)\s*-\s*(\d+)$")
_NUM_RE = re.compile(r"^(\d+)$")
_LEADING_DIGITS_RE = re.compile(r"^\s*(\d+)")


def parse_reps_string(reps: str) -> Optional[ParsedReps]:
    """Parse a prescription such as "10", "10-12", "30s", "2 min" or "5 each side".

    Returns None for values that cannot be scaled (AMRAP, free text).
    """
    text = reps.strip()
    if text.lower() == "amrap":
        return None

    side = _SIDE_RE.match(text)
    if side:
        num_part = side.group(1).strip()
        suffix = text[len(num_part):]
        if "-" in num_part:
            lo, hi = (int(p) for p in num_part.split("-", 1))
            return ParsedReps(round_half_up((lo + hi) / 2), "reps", suffix)
        return ParsedReps(int(num_part), "reps", suffix)

    minutes = _MIN_RE.match(text)
    if minutes:
        return ParsedReps(float(minutes.group(1)) * 60, "seconds")

    seconds = _SEC_RE.match(text)
    if seconds:
        return ParsedReps(float(seconds.group(1)), "seconds")

    rng = _RANGE_RE.match(text)
    if rng:
        return ParsedReps(round_half_up((int(rng.group(1)) + int(rng.group(2))) / 2), "reps")

    num = _NUM_RE.match(text)
    if num:
        return ParsedReps(int(num.group(1)), "reps")
    return None


def format_scaled_value(value: float, unit: str, suffix: str = "") -> str:
    if unit == "seconds":
        seconds = max(5, round_half_up(value / 5) * 5)
        if seconds >= 60 and seconds % 60 == 0:
            return f"{seconds // 60} min"
        return f"{seconds}s"
    return f"{max(1, round_half_up(value))}{suffix}"


def scale_reps_or_duration(reps: str, multiplier: float) -> str:
    parsed = parse_reps_string(reps)
    if parsed is None:
        return reps
    return format_scaled_value(parsed.value * multiplier, parsed.unit, parsed.suffix)


def leading_reps(reps: str, default: int = 8) -> int:
    match = _LEADING_DIGITS_RE.match(reps or "")
    return int(match.group(1)) if match else default


def average_one_rep_max_percent(intensity: str) -> float:
    rng = INTENSITY_CONFIG[intensity].one_rep_max_percent
    return (rng.min + rng.max) / 2


def apply_intensity_to_weighted(sets: int, reps: int, rest_seconds: int, intensity: str, one_rep_max: Optional[float] = None) -> dict:
    config = INTENSITY_CONFIG[intensity]
    avg = average_one_rep_max_percent(intensity)
    return {
        "sets": max(1, round_half_up(sets * config.sets_multiplier)),
        "reps": max(1, round_half_up(reps * config.reps_multiplier)),
        "rest_seconds": max(15, round_half_up(rest_seconds * config.rest_multiplier)),
        "weight": round_half_up(one_rep_max * avg) if one_rep_max else None,
        "percent_of_1rm": round_half_up(avg * 100),
        "rpe_target": {"min": config.rpe.min, "max": config.rpe.max},
    }


def apply_intensity_to_bodyweight(
    reps: str,
    rest_seconds: int,
    intensity: str,
    base_slug: str,
    progressions: Optional[dict] = None,
) -> dict:
    config = INTENSITY_CONFIG[intensity]
    tier = _LEGACY_VARIANT_TIER[intensity]
    slug = base_slug
    if tier != "base":
        slug = (progressions or {}).get(tier) or base_slug
    return {
        "exercise_slug": slug,
        "is_substituted": slug != base_slug,
        "reps": scale_reps_or_duration(reps, config.bodyweight_multiplier),
        "rest_seconds": max(15, round_half_up(rest_seconds * config.rest_multiplier)),
        "rpe_target": {"min": config.rpe.min, "max": config.rpe.max},
    }


def calculate_one_rep_max(weight: float, reps: int) -> float:
    """Epley estimate: weight * (1 + reps / 30)."""
    if reps <= 0 or weight <= 0:
        return 0
    if reps == 1:
        return weight
    return round_half_up(weight * (1 + reps / 30))


def calculate_target_weight(one_rep_max: float, percent: float) -> float:
    return round_half_up(one_rep_max * percent / 2.5) * 2.5
