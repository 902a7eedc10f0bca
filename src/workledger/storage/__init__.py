"""Storage layer for workledger application."""

from workledger.storage.base import KeyValueStore
from workledger.storage.factories import create_sqlite_store

__all__ = ["KeyValueStore", "create_sqlite_store"]
