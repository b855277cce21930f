"""Common schemas used across the API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Structured error detail."""

    code: str
    message: str
    user_message: str | None = Field(alias="userMessage", default=None)
    detail: dict[str, Any] | None = None

    model_config = {"populate_by_name": True}


class ErrorResponse(BaseModel):
    """Standard error response format.

    Format: { "success": false, "error": { "code", "message", "userMessage", "detail" } }
    """

    success: bool = False
    error: ErrorDetail


def ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    """Wrap a payload in the success envelope."""
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Validation or business rule failure"},
    401: {"model": ErrorResponse, "description": "Missing or invalid bearer token"},
    403: {"model": ErrorResponse, "description": "Not the owner"},
    404: {"model": ErrorResponse, "description": "Resource not found"},
}


def to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
