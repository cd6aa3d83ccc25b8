"""Key-value store and last-alert cache tests."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from panic_button.core.panic_policies import LAST_ALERT_KEY
from panic_button.db.base import Base
from panic_button.models import KeyValueEntry  # noqa: F401 - register for create_all
from panic_button.schemas.panic import LastAlert, LocationReading, PanicStatus
from panic_button.services.alert_store import LastAlertRepository, SqlKeyValueStore


def _alert(alert_id, status=PanicStatus.PENDING):
    return LastAlert(
        id=alert_id,
        timestamp=datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc),
        location=LocationReading(latitude=-7.05, longitude=110.43, accuracy=30),
        status=status,
    )


@pytest.fixture
def sql_store(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'kv.db'}")
    Base.metadata.create_all(bind=engine)
    yield SqlKeyValueStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    engine.dispose()


def test_sql_store_set_get_delete(sql_store):
    assert sql_store.get("k") is None
    sql_store.set("k", "v1")
    sql_store.set("k", "v2")
    assert sql_store.get("k") == "v2"
    sql_store.delete("k")
    assert sql_store.get("k") is None
    sql_store.delete("k")


def test_last_alert_is_overwritten_by_next_alert(sql_store):
    repo = LastAlertRepository(sql_store)
    repo.save(_alert(1))
    repo.save(_alert(2, PanicStatus.HANDLING))

    loaded = repo.load()

    assert loaded.id == 2
    assert loaded.status == PanicStatus.HANDLING
    assert loaded.location.accuracy == 30


def test_last_alert_missing(store):
    assert LastAlertRepository(store).load() is None


def test_unreadable_last_alert_is_discarded(store):
    store.set(LAST_ALERT_KEY, '{"id": "x"}')

    assert LastAlertRepository(store).load() is None
    assert store.get(LAST_ALERT_KEY) is None
