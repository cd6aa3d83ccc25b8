"""SQLAlchemy models."""

from panic_button.models.kv_entry import KeyValueEntry

__all__ = ["KeyValueEntry"]
