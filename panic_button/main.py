"""panic-button FastAPI application."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from panic_button.api import alerts, auth, button, health, ws
from panic_button.core.config import settings
from panic_button.core.ws_manager import ws_manager
from panic_button.db.base import Base
from panic_button.db.session import SessionLocal, engine
from panic_button.models import KeyValueEntry  # noqa: F401 - register for create_all
from panic_button.services.alert_backend import AlertBackend
from panic_button.services.alert_store import LastAlertRepository, SqlKeyValueStore
from panic_button.services.auth_service import TokenStore
from panic_button.services.location_service import (
    GeolocationService,
    HttpPositionSource,
    PositionSource,
    StaticPositionSource,
)
from panic_button.services.panic_machine import ButtonState, PanicAlertMachine, describe_state

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)


def build_position_source() -> PositionSource:
    if settings.position_source == "http":
        return HttpPositionSource(settings.position_url, timeout=settings.location_timeout_seconds)
    return StaticPositionSource(settings.static_latitude, settings.static_longitude, settings.static_accuracy)


def _broadcast_state(state: ButtonState) -> None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    loop.create_task(ws_manager.broadcast("button.phase", describe_state(state)))


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    store = SqlKeyValueStore(SessionLocal)

    location = GeolocationService(
        build_position_source(),
        store,
        permission_timeout=settings.permission_timeout_seconds,
        location_timeout=settings.location_timeout_seconds,
    )
    location.initialize(settings.location_permission)

    backend = AlertBackend(settings.api_base_url, timeout=settings.request_timeout_seconds)
    tokens = TokenStore(store, settings.api_base_url, timeout=settings.request_timeout_seconds)
    last_alerts = LastAlertRepository(store)
    machine = PanicAlertMachine(
        location,
        backend,
        tokens,
        last_alerts,
        confirm_window=settings.confirm_window_seconds,
        countdown_start=settings.countdown_start,
        tick_seconds=settings.countdown_tick_seconds,
    )
    machine.subscribe(_broadcast_state)

    app.state.location = location
    app.state.backend = backend
    app.state.tokens = tokens
    app.state.last_alerts = last_alerts
    app.state.machine = machine
    logger.info("Panic button ready (backend=%s)", settings.api_base_url)
    try:
        yield
    finally:
        await app.state.machine.close()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(button.router)
app.include_router(alerts.router)
app.include_router(ws.router)
