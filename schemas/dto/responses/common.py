"""
Response shapes shared by the auth and health routers.

ErrorResponse      body rendered by the AppError handlers
HealthResponse     GET /health
MessageResponse    {success, message} acknowledgement
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ErrorResponse(BaseModel):
    """Error body; `field` names the offending input, `details` carries extras
    such as remaining_minutes for a locked account."""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    code: str
    field: Optional[str] = None
    details: Optional[Any] = None


class HealthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    checks: dict[str, str]


class MessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: Optional[str] = None
