"""Abstract interface for slot/user persistence.

This decouples the ingestion pipeline from the relational store.
Any implementation (PostgreSQL, in-memory fake for tests) can implement it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class SlotStore(ABC):
    """Upsert-capable store for slot occupancy and user identity.

    Implementations:
    - PostgresSlotStore: INSERT ... ON CONFLICT against PostgreSQL
    """

    @abstractmethod
    def upsert_slot(self, slot_id: str, taken_by: str, is_taken: bool) -> None:
        """Insert or overwrite the slot keyed by id.

        Only taken_by and is_taken are written on conflict.

        Raises:
            UnknownUserError: taken_by has no users row
            StoreError: any other persistence failure
        """

    @abstractmethod
    def upsert_user(self, user_id: str, login: Optional[str] = None) -> None:
        """Register a tag as user.

        With login=None an existing row is left untouched.

        Raises:
            StoreError: persistence failure
        """

    @abstractmethod
    def ping(self) -> bool:
        """Check whether the store is reachable."""
