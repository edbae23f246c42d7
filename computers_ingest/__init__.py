"""Ingesta MQTT de ocupación de slots de ordenadores con lectores RFID.

Estructura:
- transport/    → Cliente MQTT, handler y workers
- adapters/     → Payload crudo → Event
- domain/       → Event, Status, Slot, User, contrato del store
- pipeline/     → Despacho por status y upserts
- persistence/  → PostgreSQL (schema + upserts)
- monitoring/   → Stats y health
"""

__version__ = "0.1.0"
