"""Pydantic schemas for API request/response validation."""

from indigo_api.schemas.common import ErrorDetail, ErrorResponse, ok
from indigo_api.schemas.game import Layer, LayerParams, ScoreDimensions, ScoreSubmitResult

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "ok",
    "Layer",
    "LayerParams",
    "ScoreDimensions",
    "ScoreSubmitResult",
]
