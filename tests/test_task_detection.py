from indigo_api.schemas.game import Layer, LayerParams
from indigo_api.services.task_detection import (
    PlacedPattern,
    ScoreSnapshot,
    check_all,
    check_conditions,
    detect_symmetry,
    patterns_from_layers,
    unique_color_depths,
)


def _p(pid: str, x: float, y: float, depth: float = 0.5) -> PlacedPattern:
    return PlacedPattern(pattern_id=pid, x=x, y=y, dye_depth=depth)


def test_patterns_from_layers():
    layers = [Layer(texture_id="wave", dye_depth=0.7, params=LayerParams(x=30, y=40))]
    assert patterns_from_layers(layers) == [PlacedPattern(pattern_id="wave", x=30, y=40, dye_depth=0.7)]


def test_mirror_pair_is_symmetric():
    assert detect_symmetry([_p("a", 30, 50), _p("a", 70, 50)])


def test_single_pattern_is_not_symmetric():
    assert not detect_symmetry([_p("a", 30, 50)])


def test_unbalanced_layout_is_not_symmetric():
    assert not detect_symmetry([_p("a", 20, 20), _p("a", 40, 20), _p("a", 20, 40)])


def test_mirror_needs_same_pattern():
    assert detect_symmetry([_p("a", 30, 50), _p("a", 70, 50), _p("a", 30, 20)])
    assert not detect_symmetry([_p("a", 30, 50), _p("b", 70, 50), _p("a", 30, 20)])


def test_unique_color_depth_bands():
    patterns = [_p("a", 0, 0, d) for d in (0.1, 0.3, 0.5, 0.9, 1.0)]
    assert unique_color_depths(patterns) == 4


def test_create_cloth_conditions():
    patterns = [_p("a", 30, 50, 0.3), _p("a", 70, 50, 0.6), _p("b", 50, 50, 0.9)]
    assert check_conditions(patterns, None, {"type": "create_cloth", "requirements": {"min_patterns": 3}})
    assert not check_conditions(patterns, None, {"type": "create_cloth", "requirements": {"min_patterns": 4}})
    assert check_conditions(patterns, None, {"type": "create_cloth", "requirements": {"required_patterns": ["a", "b"]}})
    assert not check_conditions(patterns, None, {"type": "create_cloth", "requirements": {"required_patterns": ["c"]}})
    assert check_conditions(patterns, None, {"type": "create_cloth", "requirements": {"has_symmetry": True}})
    assert check_conditions(patterns, None, {"type": "create_cloth", "requirements": {"min_color_depths": 3}})


def test_score_and_grade_conditions():
    score = ScoreSnapshot(total_score=85, grade="S")
    assert check_conditions([], score, {"type": "achieve_score", "requirements": {"min_score": 80}})
    assert not check_conditions([], score, {"type": "achieve_score", "requirements": {"min_score": 90}})
    assert check_conditions([], score, {"type": "achieve_grade", "requirements": {"min_grade": "A"}})
    assert not check_conditions([], score, {"type": "achieve_grade", "requirements": {"min_grade": "SS"}})
    assert not check_conditions([], None, {"type": "achieve_grade", "requirements": {"min_grade": "C"}})


def test_unknown_or_missing_conditions_never_match():
    assert not check_conditions([_p("a", 0, 0)], None, None)
    assert not check_conditions([_p("a", 0, 0)], None, {"type": "daily_login"})


def test_check_all_reports_each_template():
    results = check_all(
        [_p("a", 10, 10)],
        ScoreSnapshot(total_score=50, grade="C"),
        [
            ("first", {"type": "create_cloth", "requirements": {"min_patterns": 1}}),
            ("score", {"type": "achieve_score", "requirements": {"min_score": 80}}),
        ],
    )
    assert [(r.task_id, r.satisfied, r.progress, r.target) for r in results] == [
        ("first", True, 1, 1),
        ("score", False, 0, 1),
    ]
