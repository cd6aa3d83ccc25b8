"""Pytest fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from fastapi.testclient import TestClient

from panic_button.core.errors import PanicAlertError
from panic_button.schemas.panic import AlertRecord, LocationReading
from panic_button.services.alert_store import InMemoryKeyValueStore, LastAlertRepository
from panic_button.services.panic_machine import PanicAlertMachine

CAMPUS = LocationReading(latitude=-7.05, longitude=110.43, accuracy=30)


class FakeLocation:
    """Location provider with scripted answers."""

    def __init__(self, has_permission=True, cached=None, fresh=None, grant_on_request=False):
        self.has_permission = has_permission
        self.last_reading = cached
        self.fresh = fresh
        self.error = None
        self.grant_on_request = grant_on_request
        self.permission_requests = 0
        self.reads = 0

    async def request_permission(self):
        self.permission_requests += 1
        if self.grant_on_request:
            self.has_permission = True
        return self.has_permission

    async def get_current_location(self):
        self.reads += 1
        if self.fresh is not None:
            self.last_reading = self.fresh
        return self.fresh


class FakeBackend:
    """Records submissions; returns a record or raises a prepared error."""

    def __init__(self, record=None, error: PanicAlertError | None = None):
        self.record = record if record is not None else AlertRecord(id=42, status="pending")
        self.error = error
        self.calls = []

    async def submit(self, request, token):
        self.calls.append((request, token))
        if self.error is not None:
            raise self.error
        return self.record


class FakeCredentials:
    def __init__(self, token="test-token"):
        self.token = token

    async def get_access_token(self):
        return self.token


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def last_alerts(store):
    return LastAlertRepository(store)


@pytest.fixture
def location():
    return FakeLocation(cached=CAMPUS)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def credentials():
    return FakeCredentials()


@pytest.fixture
def make_machine(location, backend, credentials, last_alerts):
    """Machine factory with short timers."""

    def _make(**overrides):
        kwargs = {
            "location": location,
            "backend": backend,
            "credentials": credentials,
            "last_alerts": last_alerts,
            "confirm_window": 0.2,
            "countdown_start": 3,
            "tick_seconds": 0.01,
        }
        kwargs.update(overrides)
        return PanicAlertMachine(**kwargs)

    return _make


@pytest.fixture
def machine(make_machine):
    return make_machine()


@pytest.fixture
def client(machine, location, backend, last_alerts):
    """Test client with the app's services swapped for fakes."""
    from panic_button.main import app

    with TestClient(app) as c:
        app.state.machine = machine
        app.state.location = location
        app.state.backend = backend
        app.state.last_alerts = last_alerts
        yield c
