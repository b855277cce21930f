"""Cloth scoring.

Four dimensions, each 0-100:
1. color      - average dye depth, depth variation, share of layers in the optimal range
2. pattern    - layer count, coverage, texture variety, fine-tuned placements
3. creativity - texture combination, parameter spread, dye spread, layout spread
4. technique  - translucent overlays, progressive dyeing, texture reuse

Total = mean of the four (rounded), grade from services.game_rules.
Deterministic and DB-free.
"""

from collections.abc import Sequence
from dataclasses import dataclass
import math

from indigo_api.schemas.game import Layer
from indigo_api.services.game_rules import OPTIMAL_DYE_DEPTH, grade_for

IDEAL_DEPTH = 0.6
IDEAL_DEPTH_STD = 0.15
IDEAL_DYE_SPREAD = 0.2


@dataclass(frozen=True)
class ScoreResult:
    color: int
    pattern: int
    creativity: int
    technique: int
    total: int
    grade: str

    def dimensions(self) -> dict[str, int]:
        return {
            "color": self.color,
            "pattern": self.pattern,
            "creativity": self.creativity,
            "technique": self.technique,
        }


@dataclass(frozen=True)
class ColorHSL:
    h: float
    s: float
    l: float


# ============================================================
# Helpers
# ============================================================


def _round(value: float) -> int:
    """Round half up (the client renders scores with the same rule)."""
    return math.floor(value + 0.5)


def _clamp_score(value: float) -> int:
    return max(0, min(100, _round(value)))


def _std(values: Sequence[float]) -> float:
    """Population standard deviation."""
    if not values:
        return 0.0
    avg = sum(values) / len(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


# ============================================================
# Dimensions
# ============================================================


def color_score(layers: Sequence[Layer]) -> int:
    if not layers:
        return 0
    depths = [layer.dye_depth for layer in layers]

    avg = sum(depths) / len(depths)
    depth_score = (1 - abs(avg - IDEAL_DEPTH) / IDEAL_DEPTH) * 30

    variance_score = max(0.0, 1 - abs(_std(depths) - IDEAL_DEPTH_STD) / 0.3) * 30

    low, high = OPTIMAL_DYE_DEPTH
    in_range = sum(1 for d in depths if low <= d <= high)
    harmony_score = in_range / len(depths) * 40

    return _clamp_score(depth_score + variance_score + harmony_score)


def pattern_score(layers: Sequence[Layer]) -> int:
    if not layers:
        return 0
    n = len(layers)

    layer_score = min(n, 5) / 5 * 30

    coverage = sum(layer.params.opacity * (1 + layer.dye_depth) for layer in layers)
    coverage_score = min(coverage / 4, 1) * 30

    unique = len({layer.texture_id for layer in layers})
    variety_score = min(unique / 3, 1) * 20

    points = 0
    for layer in layers:
        p = layer.params
        if abs(p.scale - 1) > 0.1:
            points += 3
        if p.rotation and abs(p.rotation) > 5:
            points += 3
        if abs(p.x) > 10 or abs(p.y) > 10:
            points += 2
        if p.opacity < 0.9:
            points += 2
    fine_tune_score = min(points / (n * 10), 1) * 20

    return _clamp_score(layer_score + coverage_score + variety_score + fine_tune_score)


def _parameter_spread(layers: Sequence[Layer]) -> float:
    if len(layers) <= 1:
        return 0.5
    scales = [layer.params.scale for layer in layers]
    opacities = [layer.params.opacity for layer in layers]
    rotations = [layer.params.rotation or 0 for layer in layers]
    return (
        min(_std(scales) / 0.5, 1) * 0.33
        + min(_std(opacities) / 0.3, 1) * 0.33
        + min(_std(rotations) / 45, 1) * 0.34
    )


def _dye_spread(layers: Sequence[Layer]) -> float:
    if len(layers) <= 1:
        return 0.5
    deviation = abs(_std([layer.dye_depth for layer in layers]) - IDEAL_DYE_SPREAD)
    return max(0.0, 1 - deviation / IDEAL_DYE_SPREAD)


def _layout_spread(layers: Sequence[Layer]) -> float:
    if not layers:
        return 0.0
    xs = [layer.params.x for layer in layers]
    ys = [layer.params.y for layer in layers]
    return min((_std(xs) + _std(ys)) / 200, 1)


def creativity_score(layers: Sequence[Layer]) -> int:
    if not layers:
        return 0
    combo = "-".join(sorted(layer.texture_id for layer in layers))
    uniqueness = min(len(combo) / 20, 1) * 30
    total = (
        uniqueness
        + _parameter_spread(layers) * 30
        + _dye_spread(layers) * 20
        + _layout_spread(layers) * 20
    )
    return _clamp_score(total)


def technique_score(layers: Sequence[Layer]) -> int:
    if not layers:
        return 0
    score = 0

    # Translucent overlay on top of the base layer
    if any(0.3 < layer.params.opacity < 0.8 for layer in layers[1:]):
        score += 40

    # Progressive dyeing: each dip at least as deep as the last (0.1 slack)
    if len(layers) > 1:
        depths = [layer.dye_depth for layer in layers]
        if all(depths[i] >= depths[i - 1] - 0.1 for i in range(1, len(depths))):
            score += 30

    unique = len({layer.texture_id for layer in layers})
    if unique > 1 and unique <= len(layers) * 0.8:
        score += 30
    elif unique > 1:
        score += 15

    return _clamp_score(score)


def calculate_score(layers: Sequence[Layer]) -> ScoreResult:
    """Score a cloth from its dye layers.

    Args:
        layers: Layers in application order (index 0 is the base).

    Returns:
        ScoreResult with the four dimensions, total and grade.
    """
    c = color_score(layers)
    p = pattern_score(layers)
    cr = creativity_score(layers)
    t = technique_score(layers)
    total = _round((c + p + cr + t) / 4)
    return ScoreResult(color=c, pattern=p, creativity=cr, technique=t, total=total, grade=grade_for(total))


# ============================================================
# Colour helpers (used by the client preview and sample galleries)
# ============================================================


def average_color(layers: Sequence[Layer]) -> ColorHSL:
    """Indigo tone for the layers' average dye depth (hue fixed at 210)."""
    if not layers:
        return ColorHSL(h=210, s=50, l=50)
    avg = sum(layer.dye_depth for layer in layers) / len(layers)
    return ColorHSL(h=210, s=30 + avg * 50, l=90 - avg * 40)


def color_difference(target: ColorHSL, actual: ColorHSL) -> int:
    """Similarity score (0-100, higher is closer) between two HSL colours."""
    hue_diff = min(abs(target.h - actual.h), 360 - abs(target.h - actual.h))
    sat_diff = abs(target.s - actual.s)
    light_diff = abs(target.l - actual.l)
    score = 100 - ((hue_diff / 180) * 40 + (sat_diff / 100) * 30 + (light_diff / 100) * 30) * 100
    return _clamp_score(score)
