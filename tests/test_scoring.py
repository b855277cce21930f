from indigo_api.schemas.game import Layer, LayerParams
from indigo_api.services.scoring import (
    ColorHSL,
    average_color,
    calculate_score,
    color_difference,
    technique_score,
)


def _layer(texture: str, depth: float, **params) -> Layer:
    return Layer(texture_id=texture, dye_depth=depth, params=LayerParams(**params))


def test_empty_cloth_scores_zero():
    result = calculate_score([])
    assert result.total == 0
    assert result.grade == "C"
    assert result.dimensions() == {"color": 0, "pattern": 0, "creativity": 0, "technique": 0}


def test_single_layer_dimensions():
    result = calculate_score([_layer("wave", 0.6)])
    assert result.color == 85
    assert result.pattern == 25
    assert result.creativity == 31
    assert result.technique == 0
    assert result.total == 35
    assert result.grade == "C"


def test_technique_rewards_overlay_and_progressive_dyeing():
    layers = [_layer("a", 0.4), _layer("b", 0.6, opacity=0.5)]
    assert technique_score(layers) == 85


def test_texture_reuse_scores_higher_than_all_unique():
    reused = [_layer("a", 0.4), _layer("a", 0.5), _layer("b", 0.6, opacity=0.5)]
    # overlay + progressive + reuse (2 unique <= 3 * 0.8)
    assert technique_score(reused) == 100


def test_scores_are_bounded_and_deterministic():
    layers = [
        _layer("wave", 0.2, x=10, y=80, scale=1.5, rotation=30, opacity=0.6),
        _layer("cloud", 0.9, x=90, y=20, scale=0.5, rotation=-45, opacity=0.8),
        _layer("fish", 0.5, x=50, y=50),
    ]
    first = calculate_score(layers)
    assert first == calculate_score(layers)
    for value in first.dimensions().values():
        assert 0 <= value <= 100
    assert first.total == (first.color + first.pattern + first.creativity + first.technique + 2) // 4


def test_layers_accept_camel_case_payload():
    layer = Layer.model_validate({"textureId": "wave", "dyeDepth": 0.3, "params": {"x": 12}})
    assert layer.texture_id == "wave"
    assert layer.params.x == 12
    assert layer.params.opacity == 1


def test_color_helpers():
    assert color_difference(ColorHSL(210, 50, 50), ColorHSL(210, 50, 50)) == 100
    assert average_color([]) == ColorHSL(h=210, s=50, l=50)
    deep = average_color([_layer("a", 1.0)])
    assert deep.l < average_color([_layer("a", 0.0)]).l
