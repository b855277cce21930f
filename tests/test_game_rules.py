from indigo_api.services.game_rules import (
    MAX_LEVEL,
    apply_experience,
    exp_for_level,
    grade_for,
    grade_rank,
    rewards_for,
)


def test_grade_boundaries():
    assert grade_for(100) == "SSS"
    assert grade_for(95) == "SSS"
    assert grade_for(94.9) == "SS"
    assert grade_for(90) == "SS"
    assert grade_for(80) == "S"
    assert grade_for(79) == "A"
    assert grade_for(60) == "B"
    assert grade_for(59) == "C"
    assert grade_for(0) == "C"


def test_grade_rank_orders_grades():
    assert grade_rank("C") < grade_rank("A") < grade_rank("SSS")
    assert grade_rank("SSS") == 5
    assert grade_rank("X") == -1


def test_rewards_fall_back_to_c():
    assert rewards_for("S") == (100, 50)
    assert rewards_for("SSS") == (200, 100)
    assert rewards_for("unknown") == (30, 10)


def test_exp_for_level_curve():
    assert exp_for_level(1) == 100
    assert exp_for_level(2) == 282
    assert exp_for_level(4) == 800


def test_apply_experience_single_level_up():
    progress = apply_experience(1, 0, 100)
    assert progress.level == 2
    assert progress.exp == 0
    assert progress.leveled_up is True


def test_apply_experience_carries_over_multiple_levels():
    # 450 exp: 100 to reach lv2, 282 to reach lv3, 68 left over
    progress = apply_experience(1, 50, 400)
    assert progress.level == 3
    assert progress.exp == 68
    assert progress.levels_gained == 2


def test_apply_experience_without_level_up():
    progress = apply_experience(3, 10, 20)
    assert progress.level == 3
    assert progress.exp == 30
    assert progress.leveled_up is False


def test_apply_experience_caps_at_max_level():
    progress = apply_experience(MAX_LEVEL, 10, 1000)
    assert progress.level == MAX_LEVEL
    assert progress.exp == 1010
    assert progress.leveled_up is False


def test_negative_experience_is_ignored():
    progress = apply_experience(2, 10, -50)
    assert progress.level == 2
    assert progress.exp == 10
