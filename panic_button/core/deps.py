"""FastAPI dependencies for the panic button services."""

from __future__ import annotations

from fastapi import Request

from panic_button.services.alert_backend import AlertBackend
from panic_button.services.alert_store import LastAlertRepository
from panic_button.services.auth_service import TokenStore
from panic_button.services.location_service import LocationProvider
from panic_button.services.panic_machine import PanicAlertMachine


def get_machine(request: Request) -> PanicAlertMachine:
    return request.app.state.machine


def get_location(request: Request) -> LocationProvider:
    return request.app.state.location


def get_backend(request: Request) -> AlertBackend:
    return request.app.state.backend


def get_token_store(request: Request) -> TokenStore:
    return request.app.state.tokens


def get_last_alerts(request: Request) -> LastAlertRepository:
    return request.app.state.last_alerts
