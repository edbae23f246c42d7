"""Persistence infrastructure for slot and user state."""

from .schema import ensure_schema
from .slot_store import PostgresSlotStore

__all__ = ["ensure_schema", "PostgresSlotStore"]
