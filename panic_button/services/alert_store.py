"""Key-value storage and the last-alert cache."""

from __future__ import annotations

import json
import logging
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy.orm import Session, sessionmaker

from panic_button.core.panic_policies import LAST_ALERT_KEY
from panic_button.models.kv_entry import KeyValueEntry
from panic_button.schemas.panic import LastAlert

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store, used in tests and when no database is configured."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SqlKeyValueStore:
    """Store backed by the kv_entries table.

    Calls are synchronous and block the event loop for the length of one
    small query. That is fine for the local sqlite file the service ships
    with; a networked database should be wrapped in a thread first.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        with self._session_factory() as db:
            entry = db.get(KeyValueEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with self._session_factory() as db:
            entry = db.get(KeyValueEntry, key)
            if entry is None:
                db.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
            db.commit()

    def delete(self, key: str) -> None:
        with self._session_factory() as db:
            entry = db.get(KeyValueEntry, key)
            if entry is not None:
                db.delete(entry)
                db.commit()


class LastAlertRepository:
    """Holds the most recent successful alert under a fixed key."""

    def __init__(self, store: KeyValueStore, key: str = LAST_ALERT_KEY) -> None:
        self._store = store
        self._key = key

    def save(self, alert: LastAlert) -> None:
        self._store.set(self._key, alert.model_dump_json())
        logger.info("Cached last alert id=%s status=%s", alert.id, alert.status.value)

    def load(self) -> LastAlert | None:
        raw = self._store.get(self._key)
        if raw is None:
            return None
        try:
            return LastAlert.model_validate(json.loads(raw))
        except (ValueError, ValidationError):
            logger.warning("Discarding unreadable last alert entry")
            self._store.delete(self._key)
            return None
