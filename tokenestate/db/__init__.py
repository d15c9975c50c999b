"""Database layer for tokenestate."""

from tokenestate.db.repository import LedgerRepository
from tokenestate.db.schema import create_schema
from tokenestate.db.store import InMemoryPropertyStore, PropertyStore

__all__ = ["InMemoryPropertyStore", "LedgerRepository", "PropertyStore", "create_schema"]
