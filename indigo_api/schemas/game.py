"""Schemas for the mini-game (dye layers and score results)."""

from pydantic import BaseModel, Field


class LayerParams(BaseModel):
    """Placement of a texture on the cloth (x/y in percent of the canvas)."""

    x: float = 0
    y: float = 0
    scale: float = 1
    opacity: float = Field(default=1, ge=0, le=1)
    rotation: float | None = None


class Layer(BaseModel):
    """A single dye layer."""

    texture_id: str = Field(alias="textureId", min_length=1)
    params: LayerParams = Field(default_factory=LayerParams)
    dye_depth: float = Field(alias="dyeDepth", ge=0, le=1)

    model_config = {"populate_by_name": True}


class ScoreDimensions(BaseModel):
    color: int = Field(ge=0, le=100)
    pattern: int = Field(ge=0, le=100)
    creativity: int = Field(ge=0, le=100)
    technique: int = Field(ge=0, le=100)


class ScoreSubmitResult(BaseModel):
    """Response of POST /api/game/score."""

    score_id: str
    dimensions: ScoreDimensions
    total_score: int
    grade: str
    exp_reward: int
    currency_reward: int
    leveled_up: bool
    old_level: int
    new_level: int
    completed_tasks: list[str] = Field(default_factory=list)
