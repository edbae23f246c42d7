"""Estadísticas de procesamiento."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class Stats:
    """Estadísticas de procesamiento de mensajes.

    Los workers la actualizan en paralelo, por eso todo pasa por record_*.
    """

    received: int = 0
    processed: int = 0
    failed: int = 0
    decode_errors: int = 0
    last_message_at: float = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} processed={self.processed} "
            f"failed={self.failed} decode_errors={self.decode_errors}"
        )

    def record_received(self, at: float) -> None:
        with self._lock:
            self.received += 1
            self.last_message_at = at

    def record_result(self, success: bool) -> None:
        with self._lock:
            if success:
                self.processed += 1
            else:
                self.failed += 1

    def record_decode_error(self) -> None:
        with self._lock:
            self.decode_errors += 1
            self.failed += 1

    def to_dict(self) -> dict:
        """Convierte a diccionario."""
        with self._lock:
            return {
                "received": self.received,
                "processed": self.processed,
                "failed": self.failed,
                "decode_errors": self.decode_errors,
                "last_message_at": self.last_message_at,
                "started_at": self.started_at.isoformat(),
                "success_rate": self._success_rate(),
            }

    def _success_rate(self) -> float:
        """Calcula tasa de éxito."""
        total = self.processed + self.failed
        if total == 0:
            return 1.0
        return self.processed / total
