"""Health checks del sistema."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..domain.store_interface import SlotStore


@dataclass
class HealthStatus:
    """Estado de salud del sistema."""
    healthy: bool
    mqtt_connected: bool
    db_connected: bool
    messages_processed: int
    messages_failed: int

    def to_dict(self) -> dict:
        return {
            "healthy": self.healthy,
            "mqtt_connected": self.mqtt_connected,
            "db_connected": self.db_connected,
            "messages_processed": self.messages_processed,
            "messages_failed": self.messages_failed,
        }


class HealthChecker:
    """Verifica el estado de salud del sistema."""

    def __init__(self, store: Optional[SlotStore] = None):
        self._store = store

    def check_database(self) -> bool:
        """Verifica conexión a BD."""
        if not self._store:
            return False
        return self._store.ping()

    def get_status(
        self,
        mqtt_connected: bool,
        processed: int,
        failed: int,
    ) -> HealthStatus:
        """Obtiene estado de salud completo."""
        db_ok = self.check_database()

        return HealthStatus(
            healthy=mqtt_connected and db_ok,
            mqtt_connected=mqtt_connected,
            db_connected=db_ok,
            messages_processed=processed,
            messages_failed=failed,
        )
