"""Panic alert failure taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureReason(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NO_LOCATION = "NO_LOCATION"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"


@dataclass(frozen=True)
class AlertFailure:
    """Terminal failure of one alert attempt, shown to the user."""

    reason: FailureReason
    message: str
    status_code: int | None = None

    @property
    def retryable(self) -> bool:
        return self.reason in (FailureReason.PERMISSION_DENIED, FailureReason.NO_LOCATION)

    @property
    def reauthenticate(self) -> bool:
        return self.reason is FailureReason.UNAUTHENTICATED


class PanicAlertError(Exception):
    """Base error for a failed alert submission."""

    reason = FailureReason.SERVER_ERROR
    default_message = "Failed to send the emergency alert"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)

    def to_failure(self) -> AlertFailure:
        return AlertFailure(reason=self.reason, message=self.message, status_code=self.status_code)


class NoLocationError(PanicAlertError):
    reason = FailureReason.NO_LOCATION
    default_message = "Cannot access your current location. Make sure GPS is on and location access is allowed."


class UnauthenticatedError(PanicAlertError):
    reason = FailureReason.UNAUTHENTICATED
    default_message = "Your session has expired. Please sign in again."


class AlertNetworkError(PanicAlertError):
    reason = FailureReason.NETWORK_ERROR
    default_message = "Could not reach the alert server"


class ServerError(PanicAlertError):
    reason = FailureReason.SERVER_ERROR


class InvalidResponseError(PanicAlertError):
    reason = FailureReason.INVALID_RESPONSE
    default_message = "Invalid response from server"
