"""Cliente MQTT del servidor de ordenadores."""

from __future__ import annotations

import json
import logging
import threading
from typing import Callable, Dict, List, Optional, Set

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

# Publicado por el broker en nombre del servidor si se cae sin DISCONNECT
LAST_WILL_PAYLOAD = json.dumps({"message": "server disconnected"}, separators=(",", ":"))

QOS_EXACTLY_ONCE = 2

TopicHandler = Callable[[str, bytes], None]


def _create_paho_client(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        client_id=client_id,
        protocol=mqtt.MQTTv311,
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
    )


class MQTTClient:
    """Cliente MQTT sobre paho.

    Responsabilidades:
    - Conexión TLS con credenciales y last-will
    - Suscripción por topic con confirmación (SUBACK)
    - Publicación con confirmación de entrega
    - Log de conexión/desconexión (la reconexión la hace el loop de paho)
    - Re-suscripción de los topics conocidos en cada reconexión
    """

    def __init__(
        self,
        broker_host: str = "localhost",
        broker_port: int = 8883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "computers-server",
        use_tls: bool = True,
        will_topic: Optional[str] = None,
        ack_timeout: float = 5.0,
        connect_timeout: float = 10.0,
        client_factory: Callable[[str], mqtt.Client] = _create_paho_client,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = client_id
        self.use_tls = use_tls
        self.will_topic = will_topic
        self.ack_timeout = ack_timeout
        self.connect_timeout = connect_timeout

        self._client_factory = client_factory
        self._client: Optional[mqtt.Client] = None
        self._connected = False
        self._connack = threading.Event()
        self._connect_error: Optional[str] = None

        self._suback_cond = threading.Condition()
        self._subacks: Dict[int, List] = {}
        # mids cuyo SUBACK nadie espera (timeout o re-suscripción tras reconectar)
        self._unwaited_mids: Set[int] = set()
        # topic → qos, se re-suscriben en cada reconexión (clean session)
        self._subscriptions: Dict[str, int] = {}

    def connect(self) -> None:
        """Conecta al broker y espera el CONNACK.

        Raises:
            ConnectionError: fallo de socket/TLS, credenciales rechazadas o timeout
        """
        self._client = self._client_factory(self.client_id)

        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_subscribe = self._on_subscribe

        if self.username:
            self._client.username_pw_set(self.username, self.password)

        if self.use_tls:
            self._client.tls_set()

        if self.will_topic:
            self._client.will_set(
                self.will_topic,
                LAST_WILL_PAYLOAD,
                qos=QOS_EXACTLY_ONCE,
                retain=True,
            )

        self._connack.clear()
        self._connect_error = None

        logger.info(
            "[MQTT] Connecting to %s:%d tls=%s client_id=%s",
            self.broker_host,
            self.broker_port,
            self.use_tls,
            self.client_id,
        )

        try:
            self._client.connect(self.broker_host, self.broker_port, keepalive=60)
        except OSError as e:
            raise ConnectionError(
                f"failed to connect to broker {self.broker_host}:{self.broker_port}: {e}"
            ) from e

        self._client.loop_start()

        if not self._connack.wait(self.connect_timeout):
            self._client.loop_stop()
            raise ConnectionError(
                f"timed out waiting for CONNACK from {self.broker_host}:{self.broker_port}"
            )

        if self._connect_error is not None:
            self._client.loop_stop()
            raise ConnectionError(f"broker refused connection: {self._connect_error}")

    def disconnect(self) -> None:
        """Desconexión limpia: el broker no publica el last-will."""
        if self._client:
            try:
                self._client.disconnect()
                self._client.loop_stop()
            except Exception as e:
                logger.warning("[MQTT] Disconnect error: %s", e)
        self._connected = False

    def subscribe(self, topic: str, qos: int, handler: TopicHandler) -> bool:
        """Suscribe handler(topic, payload) a un topic y espera el SUBACK.

        Un fallo se registra y devuelve False; nunca lanza.
        """
        if self._client is None:
            logger.error("[MQTT] Failed to subscribe to %s: not connected", topic)
            return False

        def _deliver(client, userdata, msg):
            handler(msg.topic, msg.payload)

        self._client.message_callback_add(topic, _deliver)
        self._subscriptions[topic] = qos

        try:
            result, mid = self._client.subscribe(topic, qos=qos)
        except (ValueError, OSError) as e:
            logger.error("[MQTT] Failed to subscribe to %s: %s", topic, e)
            return False

        if result != mqtt.MQTT_ERR_SUCCESS:
            logger.error(
                "[MQTT] Failed to subscribe to %s: %s",
                topic,
                mqtt.error_string(result),
            )
            return False

        with self._suback_cond:
            acked = self._suback_cond.wait_for(
                lambda: mid in self._subacks,
                timeout=self.ack_timeout,
            )
            reason_codes = self._subacks.pop(mid, None)
            if not acked:
                self._unwaited_mids.add(mid)

        if not acked:
            logger.error("[MQTT] Failed to subscribe to %s: SUBACK timeout", topic)
            return False

        if any(rc.is_failure for rc in reason_codes):
            logger.error(
                "[MQTT] Failed to subscribe to %s: broker rejected (%s)",
                topic,
                ", ".join(str(rc) for rc in reason_codes),
            )
            return False

        logger.info("[MQTT] Subscribed to %s qos=%d", topic, qos)
        return True

    def publish(
        self,
        topic: str,
        payload: str | bytes,
        qos: int = QOS_EXACTLY_ONCE,
        retained: bool = False,
    ) -> bool:
        """Publica y espera la confirmación de entrega. Los fallos solo se registran."""
        if self._client is None:
            logger.error("[MQTT] Failed to publish to %s: not connected", topic)
            return False

        try:
            info = self._client.publish(topic, payload, qos=qos, retain=retained)
            if info.rc != mqtt.MQTT_ERR_SUCCESS:
                logger.error(
                    "[MQTT] Failed to publish to %s: %s",
                    topic,
                    mqtt.error_string(info.rc),
                )
                return False
            info.wait_for_publish(timeout=self.ack_timeout)
        except (ValueError, RuntimeError, OSError) as e:
            logger.error("[MQTT] Failed to publish to %s: %s", topic, e)
            return False

        if not info.is_published():
            logger.error("[MQTT] Failed to publish to %s: delivery timeout", topic)
            return False

        logger.debug("[MQTT] Published to %s qos=%d retained=%s", topic, qos, retained)
        return True

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de conexión."""
        if reason_code.is_failure:
            self._connected = False
            self._connect_error = str(reason_code)
            logger.error("[MQTT] Connection failed: rc=%s", reason_code)
        else:
            self._connected = True
            logger.info("[MQTT] Connected to broker")
            self._resubscribe(client)
        self._connack.set()

    def _resubscribe(self, client) -> None:
        """Re-envía las suscripciones conocidas; la sesión MQTT es limpia.

        Corre en el hilo de red de paho: no espera SUBACK, el resultado
        llega a _on_subscribe y solo se registra.
        """
        for topic, qos in list(self._subscriptions.items()):
            try:
                result, mid = client.subscribe(topic, qos=qos)
            except (ValueError, OSError) as e:
                logger.error("[MQTT] Failed to resubscribe to %s: %s", topic, e)
                continue

            if result != mqtt.MQTT_ERR_SUCCESS:
                logger.error(
                    "[MQTT] Failed to resubscribe to %s: %s",
                    topic,
                    mqtt.error_string(result),
                )
                continue

            with self._suback_cond:
                self._unwaited_mids.add(mid)
            logger.info("[MQTT] Resubscribing to %s qos=%d", topic, qos)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        """Callback de desconexión."""
        self._connected = False
        if reason_code.is_failure:
            logger.warning("[MQTT] Connection lost to broker (rc=%s)", reason_code)
        else:
            logger.info("[MQTT] Disconnected from broker")

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None):
        with self._suback_cond:
            if mid in self._unwaited_mids:
                self._unwaited_mids.discard(mid)
                failed = [str(rc) for rc in reason_code_list if rc.is_failure]
                if failed:
                    logger.error("[MQTT] Late SUBACK mid=%d rejected (%s)", mid, ", ".join(failed))
                else:
                    logger.info("[MQTT] Late SUBACK mid=%d accepted", mid)
                return
            self._subacks[mid] = list(reason_code_list)
            self._suback_cond.notify_all()

    @property
    def is_connected(self) -> bool:
        return self._connected
