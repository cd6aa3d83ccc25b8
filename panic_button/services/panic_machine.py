"""Panic button state machine.

Idle -> Confirming -> TermsPending -> Counting(n) -> Submitting -> Success | Failed

A single press only opens a short confirmation window; a second press inside
the window opens the terms gate. Accepting the terms with consent starts a
countdown that cannot be cancelled, after which exactly one alert is sent.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, ClassVar, Protocol, Union

from panic_button.core.errors import (
    AlertFailure,
    FailureReason,
    NoLocationError,
    PanicAlertError,
    UnauthenticatedError,
)
from panic_button.schemas.panic import AlertRecord, AlertRequest, LastAlert
from panic_button.services.alert_store import LastAlertRepository
from panic_button.services.location_service import (
    LocationProvider,
    describe_accuracy,
    is_accuracy_degraded,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    name: ClassVar[str] = "idle"


@dataclass(frozen=True)
class Confirming:
    name: ClassVar[str] = "confirming"


@dataclass(frozen=True)
class TermsPending:
    name: ClassVar[str] = "terms_pending"


@dataclass(frozen=True)
class Counting:
    remaining: int
    name: ClassVar[str] = "counting"


@dataclass(frozen=True)
class Submitting:
    name: ClassVar[str] = "submitting"


@dataclass(frozen=True)
class Success:
    alert: LastAlert | None = None
    name: ClassVar[str] = "success"


@dataclass(frozen=True)
class Failed:
    failure: AlertFailure
    name: ClassVar[str] = "failed"


ButtonState = Union[Idle, Confirming, TermsPending, Counting, Submitting, Success, Failed]


def describe_state(state: ButtonState) -> dict[str, Any]:
    """JSON-friendly view of a state value."""
    data: dict[str, Any] = {"phase": state.name}
    if isinstance(state, Counting):
        data["remaining"] = state.remaining
        data["cancellable"] = False
    elif isinstance(state, Success):
        data["alert"] = state.alert.model_dump(mode="json") if state.alert else None
    elif isinstance(state, Failed):
        data["reason"] = state.failure.reason.value
        data["message"] = state.failure.message
        data["status_code"] = state.failure.status_code
        data["retryable"] = state.failure.retryable
        data["reauthenticate"] = state.failure.reauthenticate
    return data


class PressOutcome(str, Enum):
    IGNORED = "ignored"
    PERMISSION_REQUIRED = "permission_required"
    NO_LOCATION = "no_location"
    CONFIRMING = "confirming"
    TERMS_OPENED = "terms_opened"


class CredentialProvider(Protocol):
    async def get_access_token(self) -> str | None: ...


class AlertSubmitter(Protocol):
    async def submit(self, request: AlertRequest, token: str) -> AlertRecord | None: ...


StateListener = Callable[[ButtonState], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PanicAlertMachine:
    """Drives one panic button.

    Timers are owned by the machine and torn down on every exit from the
    state that started them. The submission runs as a detached task so a
    teardown during ``Submitting`` lets it finish without applying its result.
    """

    def __init__(
        self,
        location: LocationProvider,
        backend: AlertSubmitter,
        credentials: CredentialProvider,
        last_alerts: LastAlertRepository,
        confirm_window: float = 3.0,
        countdown_start: int = 3,
        tick_seconds: float = 1.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._location = location
        self._backend = backend
        self._credentials = credentials
        self._last_alerts = last_alerts
        self._confirm_window = confirm_window
        self._countdown_start = countdown_start
        self._tick_seconds = tick_seconds
        self._clock = clock

        self._state: ButtonState = Idle()
        self._in_flight = False
        self._closed = False
        self._confirm_task: asyncio.Task | None = None
        self._countdown_task: asyncio.Task | None = None
        self._submission_task: asyncio.Task | None = None
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> ButtonState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def accuracy_degraded(self) -> bool:
        return is_accuracy_degraded(self._location.last_reading)

    @property
    def location_status(self) -> str | None:
        return describe_accuracy(self._location.last_reading)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def press(self) -> PressOutcome:
        if self._closed or self._in_flight or not isinstance(self._state, (Idle, Confirming)):
            return PressOutcome.IGNORED

        if not self._location.has_permission:
            logger.info("Panic button pressed without location permission, requesting it")
            await self._location.request_permission()
            return PressOutcome.PERMISSION_REQUIRED

        reading = self._location.last_reading
        if reading is None:
            reading = await self._location.get_current_location()
        if reading is None:
            logger.warning("Panic button pressed but no location is available")
            return PressOutcome.NO_LOCATION

        # The state may have moved while waiting on the location provider.
        if isinstance(self._state, Idle):
            self._set_state(Confirming())
            self._confirm_task = asyncio.get_running_loop().create_task(self._expire_confirmation())
            return PressOutcome.CONFIRMING
        if isinstance(self._state, Confirming):
            self._cancel_confirmation()
            self._set_state(TermsPending())
            return PressOutcome.TERMS_OPENED
        return PressOutcome.IGNORED

    def accept_terms(self, consent: bool) -> bool:
        """Start the countdown. Without consent this does nothing."""
        if not consent or not isinstance(self._state, TermsPending):
            return False
        self._set_state(Counting(self._countdown_start))
        self._countdown_task = asyncio.get_running_loop().create_task(self._run_countdown())
        return True

    def cancel(self) -> bool:
        """Close the confirmation or terms gate.

        Raises ValueError once the countdown has started.
        """
        if isinstance(self._state, (Counting, Submitting)):
            raise ValueError("The alert countdown has started and cannot be cancelled")
        if not isinstance(self._state, (Confirming, TermsPending)):
            return False
        self._cancel_confirmation()
        self._set_state(Idle())
        return True

    def acknowledge(self) -> bool:
        """Dismiss a success or failure result."""
        if not isinstance(self._state, (Success, Failed)):
            return False
        self._set_state(Idle())
        return True

    async def send_alert(self) -> ButtonState | None:
        """Submit the alert once the countdown reaches zero.

        Returns the terminal state, or None when the call was refused because
        a submission is already in flight or the countdown is not done.
        """
        if self._in_flight:
            logger.debug("Panic alert already in flight, ignoring")
            return None
        if not (isinstance(self._state, Counting) and self._state.remaining == 0):
            return None

        self._in_flight = True
        self._set_state(Submitting())
        try:
            alert = await self._submit()
        except PanicAlertError as exc:
            logger.warning("Panic alert failed: %s (%s)", exc.reason.value, exc.message)
            outcome: ButtonState = Failed(exc.to_failure())
        except Exception:  # noqa: BLE001 - an attempt always ends in a terminal state
            logger.exception("Unexpected error while sending panic alert")
            outcome = Failed(AlertFailure(FailureReason.NETWORK_ERROR, "An unexpected error occurred"))
        else:
            outcome = Success(alert)
        finally:
            self._in_flight = False

        if self._closed:
            logger.info("Panic button closed during submission; result %s not applied", outcome.name)
            return outcome
        self._set_state(outcome)
        return outcome

    async def close(self) -> None:
        """Tear down timers. An in-flight submission is left to finish."""
        self._cancel_confirmation()
        if self._countdown_task is not None and self._countdown_task is not asyncio.current_task():
            self._countdown_task.cancel()
        self._countdown_task = None
        if not isinstance(self._state, Submitting):
            self._set_state(Idle())
        self._closed = True

    async def drain(self) -> None:
        """Wait until no countdown or submission task is pending."""
        while True:
            pending = [
                task
                for task in (self._confirm_task, self._countdown_task, self._submission_task)
                if task is not None and not task.done()
            ]
            if not pending:
                return
            await asyncio.wait(pending)

    async def _submit(self) -> LastAlert | None:
        reading = await self._location.get_current_location()
        if reading is None:
            reading = self._location.last_reading
            if reading is not None:
                logger.info("Using cached location for panic alert")
        if reading is None:
            raise NoLocationError()

        token = await self._credentials.get_access_token()
        if not token:
            raise UnauthenticatedError()

        request = AlertRequest.from_reading(reading)
        logger.info("Sending panic alert from %s, %s", request.latitude, request.longitude)
        record = await self._backend.submit(request, token)
        if record is None:
            return None

        alert = LastAlert(id=record.id, timestamp=self._clock(), location=reading, status=record.status)
        self._last_alerts.save(alert)
        logger.info("Panic alert %s sent, status=%s", record.id, record.status.value)
        return alert

    async def _expire_confirmation(self) -> None:
        await asyncio.sleep(self._confirm_window)
        self._confirm_task = None
        if isinstance(self._state, Confirming):
            logger.info("Confirmation window elapsed")
            self._set_state(Idle())

    async def _run_countdown(self) -> None:
        remaining = self._countdown_start
        while remaining > 0:
            await asyncio.sleep(self._tick_seconds)
            if not isinstance(self._state, Counting):
                return
            remaining -= 1
            self._set_state(Counting(remaining))
        self._countdown_task = None
        self._submission_task = asyncio.get_running_loop().create_task(self.send_alert())

    def _cancel_confirmation(self) -> None:
        task = self._confirm_task
        self._confirm_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _set_state(self, state: ButtonState) -> None:
        previous = self._state
        self._state = state
        logger.info("Panic button: %s -> %s", previous.name, state.name)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:  # noqa: BLE001 - listener errors are logged only
                logger.exception("Panic button state listener failed")
