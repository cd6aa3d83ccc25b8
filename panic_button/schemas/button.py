"""Panic button API schemas."""

from typing import Any

from pydantic import BaseModel


class ButtonStatusResponse(BaseModel):
    state: dict[str, Any]
    has_permission: bool
    location_status: str | None
    location_error: str | None
    accuracy_degraded: bool


class PressResponse(BaseModel):
    outcome: str
    state: dict[str, Any]


class TransitionResponse(BaseModel):
    changed: bool
    state: dict[str, Any]


class PermissionResponse(BaseModel):
    granted: bool
    error: str | None
