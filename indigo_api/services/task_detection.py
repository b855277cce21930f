"""Task condition detection.

Checks a freshly created cloth (its placed patterns and score) against
task template conditions. Conditions are stored as JSON:

    {"type": "create_cloth", "requirements": {"min_patterns": 3, "has_symmetry": true}}
    {"type": "achieve_score", "requirements": {"min_score": 80}}
    {"type": "achieve_grade", "requirements": {"min_grade": "A"}}

Pattern coordinates are percentages of the canvas (0-100), so the mirror
axes are x=50 and y=50.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import math
from typing import Any

from indigo_api.schemas.game import Layer
from indigo_api.services.game_rules import grade_rank

SYMMETRY_TOLERANCE = 5.0
CENTER = 50.0


@dataclass(frozen=True)
class PlacedPattern:
    pattern_id: str
    x: float
    y: float
    dye_depth: float = 0.5


@dataclass(frozen=True)
class ScoreSnapshot:
    total_score: int
    grade: str


@dataclass
class TaskCheckResult:
    task_id: str
    satisfied: bool
    progress: int
    target: int


def patterns_from_layers(layers: Iterable[Layer]) -> list[PlacedPattern]:
    return [
        PlacedPattern(pattern_id=layer.texture_id, x=layer.params.x, y=layer.params.y, dye_depth=layer.dye_depth)
        for layer in layers
    ]


# ============================================================
# Condition checks
# ============================================================


def check_conditions(
    patterns: Sequence[PlacedPattern],
    score: ScoreSnapshot | None,
    conditions: dict[str, Any] | None,
) -> bool:
    """Return True when the cloth satisfies the template conditions."""
    if not conditions:
        return False
    requirements = conditions.get("requirements") or {}
    kind = conditions.get("type")
    if kind == "create_cloth":
        return _check_create_cloth(patterns, requirements)
    if kind == "achieve_score":
        return _check_score(score, requirements)
    if kind == "achieve_grade":
        return _check_grade(score, requirements)
    return False


def _check_create_cloth(patterns: Sequence[PlacedPattern], req: dict[str, Any]) -> bool:
    min_patterns = req.get("min_patterns")
    if min_patterns is not None and len(patterns) < int(min_patterns):
        return False

    required = req.get("required_patterns") or []
    if required:
        present = {p.pattern_id for p in patterns}
        if not all(pid in present for pid in required):
            return False

    if req.get("has_symmetry") is True and not detect_symmetry(patterns):
        return False

    min_depths = req.get("min_color_depths")
    if min_depths is not None and unique_color_depths(patterns) < int(min_depths):
        return False

    return True


def _check_score(score: ScoreSnapshot | None, req: dict[str, Any]) -> bool:
    if score is None:
        return False
    min_score = req.get("min_score")
    if min_score is not None and score.total_score < int(min_score):
        return False
    return True


def _check_grade(score: ScoreSnapshot | None, req: dict[str, Any]) -> bool:
    if score is None:
        return False
    min_grade = req.get("min_grade")
    if min_grade:
        current, required = grade_rank(score.grade), grade_rank(min_grade)
        if current == -1 or required == -1 or current < required:
            return False
    exact = req.get("grade")
    if exact and score.grade != exact:
        return False
    return True


def check_all(
    patterns: Sequence[PlacedPattern],
    score: ScoreSnapshot | None,
    templates: Iterable[tuple[str, dict[str, Any] | None]],
) -> list[TaskCheckResult]:
    """Check every (task_id, conditions) pair. Single-shot tasks: target is 1."""
    results = []
    for task_id, conditions in templates:
        satisfied = check_conditions(patterns, score, conditions)
        results.append(TaskCheckResult(task_id=task_id, satisfied=satisfied, progress=1 if satisfied else 0, target=1))
    return results


# ============================================================
# Pattern analysis
# ============================================================


def unique_color_depths(patterns: Sequence[PlacedPattern]) -> int:
    """Number of distinct depth bands (0-0.2, 0.2-0.4, ... 0.8-1.0) in use."""
    return len({min(4, math.floor(p.dye_depth * 5)) for p in patterns})


def detect_symmetry(patterns: Sequence[PlacedPattern]) -> bool:
    """Vertical-axis, horizontal-axis or central symmetry of same-texture patterns."""
    if len(patterns) < 2:
        return False
    return (
        _axis_symmetric(patterns, axis="x")
        or _axis_symmetric(patterns, axis="y")
        or _centrally_symmetric(patterns)
    )


def _axis_symmetric(patterns: Sequence[PlacedPattern], axis: str) -> bool:
    """Mirror check about x=50 (axis="x") or y=50 (axis="y").

    Patterns are grouped into 5% bands along the other coordinate; within a
    band, every off-centre pattern needs a mirrored twin with the same id.
    """

    def along(p: PlacedPattern) -> float:
        return p.x if axis == "x" else p.y

    def across(p: PlacedPattern) -> float:
        return p.y if axis == "x" else p.x

    groups: dict[int, list[PlacedPattern]] = {}
    for p in patterns:
        key = math.floor(across(p) / 5 + 0.5) * 5
        groups.setdefault(key, []).append(p)

    for group in groups.values():
        if len(group) < 2:
            continue
        if len(group) % 2 != 0 and not any(abs(along(p) - CENTER) < SYMMETRY_TOLERANCE for p in group):
            return False
        for p in group:
            if abs(along(p) - CENTER) < SYMMETRY_TOLERANCE:
                continue
            mirror = 100 - along(p)
            if not any(abs(along(q) - mirror) < SYMMETRY_TOLERANCE and q.pattern_id == p.pattern_id for q in group):
                return False
    return True


def _centrally_symmetric(patterns: Sequence[PlacedPattern]) -> bool:
    def is_center(p: PlacedPattern) -> bool:
        return abs(p.x - CENTER) < SYMMETRY_TOLERANCE and abs(p.y - CENTER) < SYMMETRY_TOLERANCE

    for p in patterns:
        if is_center(p):
            continue
        mx, my = 2 * CENTER - p.x, 2 * CENTER - p.y
        if not any(
            abs(q.x - mx) < SYMMETRY_TOLERANCE and abs(q.y - my) < SYMMETRY_TOLERANCE and q.pattern_id == p.pattern_id
            for q in patterns
        ):
            return False
    return len(patterns) >= 2
