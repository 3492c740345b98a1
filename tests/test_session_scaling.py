from types import SimpleNamespace

from core.services.session_scaling import (
    CategoryScalingStrategy,
    LegacyIntensityStrategy,
    strategy_for_session,
)


def _exercise(id, slug, tags, equipment, progressions=None):
    return SimpleNamespace(id=id, slug=slug, name=slug.replace("_", " ").title(), tags=tags, equipment=equipment, progressions=progressions)


SQUAT = _exercise(1, "back_squat", ["lower"], ["barbell", "rack"])
JUMP = _exercise(2, "box_jump", ["plyometric"], ["box"])
PUSH_UP = _exercise(3, "push_up", ["upper"], ["bodyweight"], {"easier": "incline_push_up", "harder": "decline_push_up"})


def _snapshot(**overrides):
    snap = {"category_id": 4, "phase": "GPP", "age_group": "36+", "years_of_experience": 3}
    snap.update(overrides)
    return snap


def test_category_strategy_weighted_without_max():
    strategy = CategoryScalingStrategy(_snapshot())
    out = strategy.scale({"exercise_id": 1, "sets": 3, "reps": "10", "rest_seconds": 60}, SQUAT, None)
    # Strength GPP: sets 10-12 at max, reps 6-8 at max_minus_1
    assert out["scaled_sets"] == 12
    assert out["scaled_reps"] == "7"
    assert out["scaled_rest_seconds"] == 30
    assert out["tempo"] == "2.1.2"
    assert out["percent_of_1rm"] == 65
    assert out["target_weight"] is None
    assert out["has_one_rep_max"] is False


def test_category_strategy_bodyweight_keeps_base_variant_mid_experience():
    strategy = CategoryScalingStrategy(_snapshot())
    out = strategy.scale({"exercise_id": 3}, PUSH_UP, None)
    assert out["exercise_focus"] == "bodyweight"
    assert out["is_bodyweight"] is True
    assert out["is_substituted"] is False
    assert out["substituted_exercise_slug"] is None
    assert out["percent_of_1rm"] is None


def test_category_strategy_beginner_gets_easier_variant_in_gpp():
    strategy = CategoryScalingStrategy(_snapshot(years_of_experience=0))
    out = strategy.scale({"exercise_id": 3}, PUSH_UP, None)
    assert out["substituted_exercise_slug"] == "incline_push_up"


def test_category_strategy_normalizes_legacy_age_group():
    strategy = CategoryScalingStrategy(_snapshot(age_group="18+", years_of_experience=None))
    ctx = strategy.context()
    assert ctx["age_group"] == "18-35"
    assert ctx["experience_bucket"] == "0-1"


def test_scale_all_attaches_exercise_summary_and_keeps_template_fields():
    strategy = CategoryScalingStrategy(_snapshot(category_id=2, phase="SPP"))
    occurrences = [
        {"exercise_id": 2, "sets": 3, "reps": "5", "rest_seconds": 60, "order_index": 0},
        {"exercise_id": 99, "sets": 2, "reps": "8", "rest_seconds": 60, "order_index": 1},
    ]
    out = strategy.scale_all(occurrences, {2: JUMP}, {})
    assert out[0]["exercise"]["slug"] == "box_jump"
    assert out[0]["order_index"] == 0
    assert out[0]["exercise_focus"] == "power"
    assert out[0]["percent_of_1rm"] == 45
    # unknown exercise rows are still returned, scaled as bodyweight
    assert out[1]["exercise"] is None
    assert out[1]["is_bodyweight"] is True


def test_legacy_strategy_defaults_to_moderate():
    strategy = LegacyIntensityStrategy()
    assert strategy.context() == {"strategy": "legacy_intensity", "intensity": "Moderate"}
    out = strategy.scale({"exercise_id": 1, "sets": 4, "reps": "8-10", "rest_seconds": 90}, SQUAT, 100)
    assert out["scaled_sets"] == 4
    assert out["scaled_reps"] == "8"
    assert out["scaled_rest_seconds"] == 90
    assert out["target_weight"] == 78
    assert out["has_one_rep_max"] is True


def test_legacy_strategy_low_bodyweight():
    strategy = LegacyIntensityStrategy("Low")
    out = strategy.scale({"exercise_id": 3, "sets": 3, "reps": "12", "rest_seconds": 45}, PUSH_UP, None)
    assert out["scaled_sets"] == 3
    assert out["scaled_reps"] == "8"
    assert out["scaled_rest_seconds"] == 56
    assert out["substituted_exercise_slug"] == "incline_push_up"


def test_strategy_for_session_prefers_snapshot():
    with_snapshot = SimpleNamespace(scaling_snapshot=_snapshot(), target_intensity="High")
    legacy = SimpleNamespace(scaling_snapshot=None, target_intensity="High")
    assert isinstance(strategy_for_session(with_snapshot), CategoryScalingStrategy)
    chosen = strategy_for_session(legacy)
    assert isinstance(chosen, LegacyIntensityStrategy)
    assert chosen.intensity == "High"
