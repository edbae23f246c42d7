"""Domain layer - Modelos y contratos."""

from .entities import NULL_USER_ID, Slot, User
from .event import Event, Status, describe_status
from .store_interface import SlotStore

__all__ = [
    "Event",
    "Status",
    "describe_status",
    "Slot",
    "User",
    "NULL_USER_ID",
    "SlotStore",
]
