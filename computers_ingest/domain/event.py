"""Modelo de dominio para eventos de los lectores RFID."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional


SLOT_DELIMITER = ";"


class Status(IntEnum):
    """Tipo de evento reportado por el lector."""
    PLACED = 0
    TAKEN = 1
    SCANNED = 2
    DISCONNECTED = 3

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    Status.PLACED: "placed the computer",
    Status.TAKEN: "taken the computer",
    Status.SCANNED: "scanned new tag",
    Status.DISCONNECTED: "RFID reader disconnected",
}


def describe_status(value: int) -> str:
    """Texto legible para cualquier entero de status, incluso desconocido."""
    try:
        return Status(value).description
    except ValueError:
        return "unknown status"


@dataclass(frozen=True)
class Event:
    """Evento efímero, uno por mensaje entrante.

    No tiene identidad propia: un duplicado es indistinguible del original,
    por eso todo lo que se hace con él debe ser idempotente.
    """
    message: str
    tag_id: str
    slot_list: str
    status: int
    login: Optional[str] = None

    @property
    def kind(self) -> Optional[Status]:
        """Status conocido, o None si el entero está fuera del enum."""
        try:
            return Status(self.status)
        except ValueError:
            return None

    def slot_ids(self) -> List[str]:
        """Slots afectados: separados por ';', sin vacíos ni repetidos."""
        seen = {}
        for segment in self.slot_list.split(SLOT_DELIMITER):
            slot_id = segment.strip()
            if slot_id:
                seen.setdefault(slot_id, None)
        return list(seen)
