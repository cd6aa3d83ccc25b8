"""Geolocation permission, readings and accuracy policy."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Protocol

import httpx
from pydantic import ValidationError

from panic_button.core.panic_policies import (
    ACCURATE_GPS_METERS,
    DEGRADED_ACCURACY_METERS,
    PERMISSION_DENIED,
    POSITION_UNAVAILABLE,
    STANDARD_GPS_METERS,
    TIMEOUT,
    USER_LOCATION_KEY,
)
from panic_button.schemas.panic import LocationReading
from panic_button.services.alert_store import KeyValueStore

logger = logging.getLogger(__name__)


class PositionError(Exception):
    """Raised by a position source, carrying a geolocation error code."""

    def __init__(self, code: int, message: str = "") -> None:
        self.code = code
        self.message = message
        super().__init__(message or f"geolocation error {code}")


class PositionSource(Protocol):
    async def read(self) -> LocationReading: ...


class StaticPositionSource:
    """Fixed coordinates, for wall-mounted kiosks."""

    def __init__(self, latitude: float | None, longitude: float | None, accuracy: float | None = None) -> None:
        self._latitude = latitude
        self._longitude = longitude
        self._accuracy = accuracy

    async def read(self) -> LocationReading:
        if self._latitude is None or self._longitude is None:
            raise PositionError(POSITION_UNAVAILABLE, "No fixed position configured")
        return LocationReading(latitude=self._latitude, longitude=self._longitude, accuracy=self._accuracy)


class HttpPositionSource:
    """Reads ``{latitude, longitude, accuracy}`` from a JSON endpoint."""

    def __init__(self, url: str, client: httpx.AsyncClient | None = None, timeout: float = 8.0) -> None:
        self._url = url
        self._client = client
        self._timeout = timeout

    async def read(self) -> LocationReading:
        try:
            if self._client is not None:
                response = await self._client.get(self._url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._url)
        except httpx.TimeoutException as exc:
            raise PositionError(TIMEOUT, str(exc)) from exc
        except httpx.HTTPError as exc:
            raise PositionError(POSITION_UNAVAILABLE, str(exc)) from exc

        if response.status_code in (401, 403):
            raise PositionError(PERMISSION_DENIED, "Position source refused access")
        if response.is_error:
            raise PositionError(POSITION_UNAVAILABLE, f"Position source returned {response.status_code}")

        try:
            return LocationReading.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise PositionError(POSITION_UNAVAILABLE, f"Unreadable position: {exc}") from exc


class LocationProvider(Protocol):
    """What the panic machine needs from a location service."""

    @property
    def has_permission(self) -> bool: ...

    @property
    def last_reading(self) -> LocationReading | None: ...

    @property
    def error(self) -> str | None: ...

    async def request_permission(self) -> bool: ...

    async def get_current_location(self) -> LocationReading | None: ...


def describe_position_error(exc: PositionError) -> str:
    if exc.code == PERMISSION_DENIED:
        return "Location access was denied. Allow location access and try again."
    if exc.code == POSITION_UNAVAILABLE:
        return "Location unavailable. Make sure GPS is on and you have a good signal."
    if exc.code == TIMEOUT:
        return "Timed out while getting your location. Try again."
    return f"Geolocation error code {exc.code}: {exc.message or 'unknown'}"


def describe_accuracy(reading: LocationReading | None) -> str | None:
    """Readiness text shown under the button."""
    if reading is None:
        return None
    if not reading.accuracy:
        return "Ready"
    accuracy = round(reading.accuracy)
    if accuracy <= ACCURATE_GPS_METERS:
        return f"Ready (accurate GPS: ±{accuracy}m)"
    if accuracy <= STANDARD_GPS_METERS:
        return f"Ready (standard GPS: ±{accuracy}m)"
    return f"Ready (estimated location: ±{accuracy}m)"


def is_accuracy_degraded(reading: LocationReading | None) -> bool:
    # Advisory only; a poor fix never blocks an alert.
    if reading is None or reading.accuracy is None:
        return False
    return reading.accuracy > DEGRADED_ACCURACY_METERS


class GeolocationService:
    """Location provider over a position source, with a persisted last reading."""

    def __init__(
        self,
        source: PositionSource,
        store: KeyValueStore,
        permission_timeout: float = 15.0,
        location_timeout: float = 10.0,
    ) -> None:
        self._source = source
        self._store = store
        self._permission_timeout = permission_timeout
        self._location_timeout = location_timeout
        self._has_permission = False
        self._last_reading: LocationReading | None = None
        self._error: str | None = None
        self._requesting = False

    @property
    def has_permission(self) -> bool:
        return self._has_permission

    @property
    def last_reading(self) -> LocationReading | None:
        return self._last_reading

    @property
    def error(self) -> str | None:
        return self._error

    def initialize(self, permission_state: str = "prompt") -> None:
        """Apply a known permission state; restore the stored reading if granted."""
        self._has_permission = permission_state == "granted"
        logger.info("Location permission state: %s", permission_state)
        if not self._has_permission:
            return
        raw = self._store.get(USER_LOCATION_KEY)
        if raw is None:
            return
        try:
            self._last_reading = LocationReading.model_validate(json.loads(raw))
            logger.info("Loaded stored location %s, %s", self._last_reading.latitude, self._last_reading.longitude)
        except (ValueError, ValidationError):
            logger.error("Stored location is unreadable, removing it")
            self._store.delete(USER_LOCATION_KEY)

    async def request_permission(self) -> bool:
        """Ask for location access by taking a reading.

        Returns False only when access is denied or the request times out;
        other position errors leave the caller free to retry.
        """
        if self._requesting:
            logger.debug("Permission request already pending")
            return self._has_permission

        self._requesting = True
        self._error = None
        try:
            reading = await asyncio.wait_for(self._source.read(), timeout=self._permission_timeout)
        except asyncio.TimeoutError:
            logger.error("Location permission request timed out")
            self._error = "Timed out while requesting location permission. Try again."
            return False
        except PositionError as exc:
            logger.error("Location permission request failed: code=%s %s", exc.code, exc.message)
            self._error = describe_position_error(exc)
            if exc.code == PERMISSION_DENIED:
                self._has_permission = False
                return False
            return True
        finally:
            self._requesting = False

        self._has_permission = True
        self._remember(reading)
        return True

    async def get_current_location(self) -> LocationReading | None:
        """Fresh reading, or the cached one when the source fails or is slow."""
        if not self._has_permission:
            # A granted request has already taken the reading.
            await self.request_permission()
            return self._last_reading

        try:
            reading = await asyncio.wait_for(self._source.read(), timeout=self._location_timeout)
        except asyncio.TimeoutError:
            logger.warning("Location read timed out, using cached location")
            return self._last_reading
        except PositionError as exc:
            message = describe_position_error(exc)
            if exc.code == PERMISSION_DENIED:
                self._has_permission = False
            if self._last_reading is not None:
                logger.warning("Location read failed (%s), using cached location", message)
                return self._last_reading
            self._error = message
            return None

        self._error = None
        self._remember(reading)
        return reading

    def _remember(self, reading: LocationReading) -> None:
        self._last_reading = reading
        self._store.set(USER_LOCATION_KEY, reading.model_dump_json())
        accuracy = f"±{round(reading.accuracy)}m" if reading.accuracy is not None else "unknown"
        logger.info("Location obtained: %s, %s (%s)", reading.latitude, reading.longitude, accuracy)
