"""Adaptador MQTT → Modelo de Dominio."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError, field_validator

from ..domain.event import Event
from ..exceptions import DecodeError

logger = logging.getLogger(__name__)


class DeviceStatusPayload(BaseModel):
    """Schema de validación para mensajes de estado de los lectores.

    Formato esperado:
    {
        "message": "texto libre",
        "RFID": "04A1B2C3",
        "slots": "A01;A02",
        "status": 0
    }
    """

    model_config = ConfigDict(extra="ignore")

    message: StrictStr = ""
    rfid: StrictStr = Field(default="", alias="RFID")
    slots: StrictStr = ""
    status: StrictInt
    login: Optional[StrictStr] = None

    @field_validator("message", "rfid", "slots", mode="before")
    @classmethod
    def null_as_empty(cls, v):
        # JSON null en un campo de texto equivale a no enviarlo
        return "" if v is None else v

    def to_event(self) -> Event:
        return Event(
            message=self.message,
            tag_id=self.rfid,
            slot_list=self.slots,
            status=self.status,
            login=self.login,
        )


class EventAdapter:
    """Adapta payloads MQTT al modelo de dominio.

    Responsabilidades:
    - Decodificación UTF-8 y JSON
    - Validación estricta de tipos
    - Conversión a Event
    """

    def decode(self, payload: bytes) -> Event:
        """Convierte un payload crudo en Event.

        Args:
            payload: Bytes tal como llegan del broker

        Returns:
            Event decodificado (status puede estar fuera del enum)

        Raises:
            DecodeError: si el payload no es un objeto JSON válido con los tipos esperados
        """
        data = self._parse_json(payload)

        if not isinstance(data, dict):
            raise DecodeError(
                f"payload must be a JSON object, got {type(data).__name__}",
                payload,
            )

        try:
            return DeviceStatusPayload.model_validate(data).to_event()
        except ValidationError as e:
            raise DecodeError(self._summarize(e), payload) from e

    def _parse_json(self, payload: bytes) -> Any:
        try:
            return json.loads(payload.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise DecodeError(f"payload is not UTF-8: {e}", payload) from e
        except (ValueError, RecursionError) as e:
            # JSONDecodeError, enteros de más de 4300 dígitos, anidamiento excesivo
            raise DecodeError(f"invalid JSON: {e}", payload) from e

    @staticmethod
    def _summarize(error: ValidationError) -> str:
        parts = []
        for item in error.errors():
            loc = ".".join(str(p) for p in item.get("loc", ()))
            parts.append(f"{loc}: {item.get('msg')}")
        return "; ".join(parts)
