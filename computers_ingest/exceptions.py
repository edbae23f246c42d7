"""Errores del pipeline de ingesta."""

from __future__ import annotations


class IngestError(Exception):
    """Base de los errores de ingesta."""


class DecodeError(IngestError):
    """El payload no se pudo convertir en un Event."""

    def __init__(self, message: str, payload: bytes = b""):
        super().__init__(message)
        self.payload = payload


class StoreError(IngestError):
    """Fallo de persistencia en un upsert."""


class UnknownUserError(StoreError):
    """El slot referencia un tag sin fila en users (violación de FK)."""

    def __init__(self, tag_id: str):
        super().__init__(f"unknown user {tag_id!r}")
        self.tag_id = tag_id
