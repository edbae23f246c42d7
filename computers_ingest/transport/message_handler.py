"""Handler de mensajes MQTT."""

from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

from ..adapters.event_adapter import EventAdapter
from ..exceptions import DecodeError
from ..monitoring.stats import Stats
from ..pipeline.processor import EventProcessor

logger = logging.getLogger(__name__)

# Payloads más largos se recortan en los logs
LOG_PAYLOAD_LIMIT = 200


class MessageHandler:
    """Maneja mensajes MQTT y los procesa a través del pipeline.

    Responsabilidades:
    - Decodificación del payload a Event
    - Delegación al procesador
    - Tracking de estadísticas

    Nunca lanza: un mensaje malo o un fallo del store solo afecta a ese mensaje.
    """

    def __init__(
        self,
        processor: EventProcessor,
        adapter: Optional[EventAdapter] = None,
    ):
        self._processor = processor
        self._adapter = adapter or EventAdapter()
        self._stats = Stats()

    def handle(self, topic: str, payload: bytes) -> None:
        """Procesa un mensaje MQTT."""
        self._stats.record_received(time.time())

        try:
            event = self._adapter.decode(payload)
        except DecodeError as e:
            logger.warning(
                "[HANDLER] Discarding undecodable message: %s (topic=%s payload=%r)",
                e,
                topic,
                payload[:LOG_PAYLOAD_LIMIT],
            )
            self._stats.record_decode_error()
            return

        try:
            success = self._processor.process(event)
        except Exception as e:
            logger.exception("[HANDLER] Error: %s", e)
            success = False

        self._stats.record_result(success)

        # Log periódico
        if self._stats.received % 50 == 0:
            logger.info("[HANDLER] %s", self._stats)

    def consume(self, payloads: Iterable[bytes], topic: str = "") -> None:
        """Procesa en orden una secuencia de payloads crudos."""
        for payload in payloads:
            self.handle(topic, payload)

    @property
    def stats(self) -> Stats:
        return self._stats
