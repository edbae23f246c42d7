"""Servidor de ingesta - Punto de entrada principal.

Usa la arquitectura modular:
- transport/    → Cliente MQTT, handler y workers
- adapters/     → Conversión payload → Event
- pipeline/     → Aplicación de eventos al store
- persistence/  → Upserts en PostgreSQL
- monitoring/   → Stats y health
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from common.config import Settings
from common.db import get_engine

from .adapters.event_adapter import EventAdapter
from .monitoring.health import HealthChecker
from .monitoring.stats import Stats
from .persistence.schema import ensure_schema
from .persistence.slot_store import PostgresSlotStore
from .pipeline.processor import EventProcessor, UnknownTagPolicy
from .transport.async_processor import AsyncMessageProcessor
from .transport.message_handler import MessageHandler
from .transport.mqtt_client import QOS_EXACTLY_ONCE, MQTTClient

logger = logging.getLogger(__name__)


def _create_mqtt_client(settings: Settings) -> MQTTClient:
    return MQTTClient(
        broker_host=settings.mqtt_host,
        broker_port=settings.mqtt_port,
        username=settings.mqtt_user,
        password=settings.mqtt_password,
        client_id=settings.mqtt_client_id,
        use_tls=settings.mqtt_tls,
        will_topic=settings.server_will_topic,
        ack_timeout=settings.mqtt_ack_timeout,
        connect_timeout=settings.mqtt_connect_timeout,
    )


class ComputersServer:
    """Servidor MQTT → PostgreSQL de ocupación de slots.

    Componentes (todos propiedad de esta instancia, inyectados hacia abajo):
    - Engine SQLAlchemy compartido → PostgresSlotStore
    - EventProcessor + MessageHandler
    - AsyncMessageProcessor (workers)
    - MQTTClient
    """

    def __init__(
        self,
        settings: Settings,
        engine_factory: Callable[[Settings], Engine] = get_engine,
        mqtt_factory: Callable[[Settings], MQTTClient] = _create_mqtt_client,
    ):
        self._settings = settings
        self._engine_factory = engine_factory
        self._mqtt_factory = mqtt_factory

        self._engine: Optional[Engine] = None
        self._store: Optional[PostgresSlotStore] = None
        self._handler: Optional[MessageHandler] = None
        self._workers: Optional[AsyncMessageProcessor] = None
        self._mqtt: Optional[MQTTClient] = None
        self._health: Optional[HealthChecker] = None
        self._running = False

    def start(self) -> None:
        """Inicia el servidor.

        Raises:
            Exception: cualquier fallo de BD o ConnectionError del broker es fatal
        """
        settings = self._settings

        # 1. Conectar a BD
        self._engine = self._engine_factory(settings)
        if settings.db_ensure_schema:
            ensure_schema(self._engine)
        self._store = PostgresSlotStore(self._engine)

        # 2. Crear pipeline
        processor = EventProcessor(
            self._store,
            unknown_tag_policy=UnknownTagPolicy(settings.unknown_tag_policy),
        )
        self._handler = MessageHandler(processor, EventAdapter())

        # 3. Workers
        self._workers = AsyncMessageProcessor(
            self._handler.handle,
            max_queue_size=settings.ingest_queue_size,
            num_workers=settings.ingest_workers,
        )
        self._workers.start()

        # 4. Conectar MQTT
        self._mqtt = self._mqtt_factory(settings)
        try:
            self._mqtt.connect()
        except ConnectionError:
            self._workers.stop(drain_timeout=0)
            self._engine.dispose()
            raise

        # 5. Suscripciones (un fallo no es fatal)
        self._mqtt.subscribe(
            settings.device_stream_topic,
            QOS_EXACTLY_ONCE,
            self._workers.enqueue,
        )
        self._mqtt.subscribe(
            settings.device_will_topic,
            QOS_EXACTLY_ONCE,
            self._on_device_will,
        )

        # 6. Saludo retenido
        self._mqtt.publish(
            settings.server_stream_topic,
            settings.server_greeting,
            qos=QOS_EXACTLY_ONCE,
            retained=True,
        )

        self._health = HealthChecker(self._store)
        self._running = True
        logger.info("[SERVER] Server is ready to handle requests")

    def stop(self) -> None:
        """Detiene el servidor: drena workers, desconecta MQTT y cierra la BD."""
        self._running = False

        if self._workers:
            self._workers.stop(drain_timeout=self._settings.shutdown_grace)

        if self._mqtt:
            self._mqtt.disconnect()

        if self._engine is not None:
            self._engine.dispose()

        if self._handler:
            logger.info("[SERVER] Stopped. %s", self._handler.stats)

    def _on_device_will(self, topic: str, payload: bytes) -> None:
        logger.warning(
            "[SERVER] Device %s is offline",
            payload.decode("utf-8", errors="replace"),
        )
        logger.debug("[SERVER] Device will: topic=%s payload=%r", topic, payload)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._mqtt.is_connected if self._mqtt else False

    @property
    def handler(self) -> Optional[MessageHandler]:
        return self._handler

    @property
    def stats(self) -> dict:
        """Estadísticas del servidor."""
        handler_stats = self._handler.stats if self._handler else Stats()
        return {
            "running": self._running,
            "connected": self.is_connected,
            "db_connected": self._engine is not None,
            "workers": self._workers.metrics if self._workers else {},
            **handler_stats.to_dict(),
        }

    def health_check(self) -> dict:
        """Health check del servidor."""
        if not self._health or not self._handler:
            return {"healthy": False, "reason": "Not initialized"}

        status = self._health.get_status(
            mqtt_connected=self.is_connected,
            processed=self._handler.stats.processed,
            failed=self._handler.stats.failed,
        )
        return status.to_dict()
