"""Entidades persistentes: slots y usuarios."""

from __future__ import annotations

from dataclasses import dataclass


# Usuario sembrado en el schema para satisfacer la FK de slots.taken_by
NULL_USER_ID = "null"


@dataclass(frozen=True)
class Slot:
    id: str
    taken_by: str = NULL_USER_ID
    is_taken: bool = False


@dataclass(frozen=True)
class User:
    id: str
    login: str = ""
