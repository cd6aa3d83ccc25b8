"""Panic alert schemas."""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class PanicStatus(str, Enum):
    """Canonical panic status.

    The admin bulk screens use ``responded`` where the panic flow uses
    ``handling``; both are normalized to ``handling``.
    """

    PENDING = "pending"
    HANDLING = "handling"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


_STATUS_ALIASES = {
    "responded": PanicStatus.HANDLING,
}


def normalize_status(raw: str) -> PanicStatus:
    value = raw.strip().lower()
    if value in _STATUS_ALIASES:
        return _STATUS_ALIASES[value]
    try:
        return PanicStatus(value)
    except ValueError:
        raise ValueError(f"Unknown panic status '{raw}'") from None


class LocationReading(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: float | None = Field(default=None, ge=0)  # meters

    @field_validator("latitude", "longitude")
    @classmethod
    def must_be_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Coordinate must be a finite number")
        return v


class AlertRequest(BaseModel):
    latitude: float
    longitude: float

    @field_validator("latitude", "longitude")
    @classmethod
    def must_be_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Coordinate must be a finite number")
        return v

    @classmethod
    def from_reading(cls, reading: LocationReading) -> AlertRequest:
        return cls(latitude=reading.latitude, longitude=reading.longitude)


class AlertRecord(BaseModel):
    """Alert created by the backend."""

    id: int
    status: PanicStatus = PanicStatus.PENDING
    created_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v):
        if isinstance(v, str):
            return normalize_status(v)
        return v


class LastAlert(BaseModel):
    """Cached record of the most recent successful alert."""

    id: int
    timestamp: datetime
    location: LocationReading
    status: PanicStatus


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., pattern="^(handling|resolved)$")
    notes: str | None = Field(default=None, max_length=1000)


class TermsAcceptance(BaseModel):
    consent: bool = False
