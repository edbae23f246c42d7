"""Tests del cliente MQTT con un cliente paho simulado.

Ejecutar:
    pytest tests/test_mqtt_client.py -v
"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import paho.mqtt.client as mqtt
import pytest
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.reasoncodes import ReasonCode

from computers_ingest.transport.mqtt_client import LAST_WILL_PAYLOAD, MQTTClient


CONNACK_OK = ReasonCode(PacketTypes.CONNACK, identifier=0)
CONNACK_NOT_AUTHORIZED = ReasonCode(PacketTypes.CONNACK, identifier=0x87)
SUBACK_QOS2 = ReasonCode(PacketTypes.SUBACK, identifier=2)
SUBACK_FAILURE = ReasonCode(PacketTypes.SUBACK, identifier=0x80)


@pytest.fixture
def paho_client():
    return MagicMock()


@pytest.fixture
def make_client(paho_client):
    def _make(connack=CONNACK_OK, **kwargs):
        params = dict(
            broker_host="broker.local",
            broker_port=8883,
            username="server",
            password="secret",
            client_id="computers-test",
            will_topic="server/will",
            ack_timeout=0.2,
            connect_timeout=0.2,
            client_factory=lambda client_id: paho_client,
        )
        params.update(kwargs)
        client = MQTTClient(**params)
        if connack is not None:
            paho_client.connect.side_effect = (
                lambda *a, **kw: client._on_connect(paho_client, None, {}, connack)
            )
        return client
    return _make


@pytest.fixture
def connected(make_client):
    client = make_client()
    client.connect()
    return client


# =============================================================================
# CONEXIÓN
# =============================================================================

class TestConnect:

    def test_connect_configures_client(self, make_client, paho_client):
        client = make_client()

        client.connect()

        paho_client.username_pw_set.assert_called_once_with("server", "secret")
        paho_client.tls_set.assert_called_once()
        paho_client.will_set.assert_called_once_with(
            "server/will", LAST_WILL_PAYLOAD, qos=2, retain=True
        )
        paho_client.connect.assert_called_once_with("broker.local", 8883, keepalive=60)
        paho_client.loop_start.assert_called_once()
        assert client.is_connected is True

    def test_last_will_payload(self):
        assert json.loads(LAST_WILL_PAYLOAD) == {"message": "server disconnected"}

    def test_plain_tcp(self, make_client, paho_client):
        make_client(use_tls=False).connect()

        paho_client.tls_set.assert_not_called()

    def test_refused_credentials(self, make_client, paho_client):
        client = make_client(connack=CONNACK_NOT_AUTHORIZED)

        with pytest.raises(ConnectionError):
            client.connect()

        paho_client.loop_stop.assert_called_once()
        assert client.is_connected is False

    def test_socket_error(self, make_client, paho_client):
        client = make_client(connack=None)
        paho_client.connect.side_effect = OSError("connection refused")

        with pytest.raises(ConnectionError):
            client.connect()

    def test_connack_timeout(self, make_client, paho_client):
        client = make_client(connack=None)

        with pytest.raises(ConnectionError):
            client.connect()

    def test_disconnect(self, connected, paho_client):
        connected.disconnect()

        paho_client.disconnect.assert_called_once()
        paho_client.loop_stop.assert_called_once()
        assert connected.is_connected is False

    def test_connection_lost_logged(self, connected, paho_client, caplog):
        with caplog.at_level("WARNING"):
            connected._on_disconnect(
                paho_client, None, None, ReasonCode(PacketTypes.DISCONNECT, identifier=0x80)
            )

        assert connected.is_connected is False
        assert "Connection lost" in caplog.text


# =============================================================================
# SUSCRIPCIÓN
# =============================================================================

class TestSubscribe:

    def _ack_with(self, client, paho_client, reason_code, mid=7):
        def _subscribe(topic, qos):
            client._on_subscribe(paho_client, None, mid, [reason_code])
            return mqtt.MQTT_ERR_SUCCESS, mid
        paho_client.subscribe.side_effect = _subscribe

    def test_subscribe_acknowledged(self, connected, paho_client):
        self._ack_with(connected, paho_client, SUBACK_QOS2)

        assert connected.subscribe("arduino/stream", 2, MagicMock()) is True
        paho_client.subscribe.assert_called_once_with("arduino/stream", qos=2)

    def test_messages_delivered_to_handler(self, connected, paho_client):
        self._ack_with(connected, paho_client, SUBACK_QOS2)
        handler = MagicMock()
        connected.subscribe("arduino/stream", 2, handler)

        topic, callback = paho_client.message_callback_add.call_args.args
        callback(paho_client, None, SimpleNamespace(topic="arduino/stream", payload=b"{}"))

        assert topic == "arduino/stream"
        handler.assert_called_once_with("arduino/stream", b"{}")

    def test_subscribe_rejected(self, connected, paho_client):
        self._ack_with(connected, paho_client, SUBACK_FAILURE)

        assert connected.subscribe("arduino/stream", 2, MagicMock()) is False

    def test_subscribe_not_sent(self, connected, paho_client):
        paho_client.subscribe.return_value = (mqtt.MQTT_ERR_NO_CONN, None)

        assert connected.subscribe("arduino/stream", 2, MagicMock()) is False

    def test_subscribe_ack_timeout(self, connected, paho_client):
        paho_client.subscribe.return_value = (mqtt.MQTT_ERR_SUCCESS, 11)

        assert connected.subscribe("arduino/stream", 2, MagicMock()) is False

    def test_subscribe_before_connect(self, make_client):
        assert make_client().subscribe("arduino/stream", 2, MagicMock()) is False

    def test_late_suback_is_discarded(self, connected, paho_client):
        paho_client.subscribe.return_value = (mqtt.MQTT_ERR_SUCCESS, 11)
        assert connected.subscribe("arduino/stream", 2, MagicMock()) is False

        connected._on_subscribe(paho_client, None, 11, [SUBACK_QOS2])

        assert connected._subacks == {}
        assert connected._unwaited_mids == set()

    def test_resubscribes_after_reconnect(self, connected, paho_client):
        self._ack_with(connected, paho_client, SUBACK_QOS2, mid=7)
        connected.subscribe("arduino/stream", 2, MagicMock())
        connected.subscribe("arduino/will", 2, MagicMock())
        paho_client.subscribe.reset_mock()
        paho_client.subscribe.side_effect = None
        paho_client.subscribe.return_value = (mqtt.MQTT_ERR_SUCCESS, 21)

        connected._on_disconnect(
            paho_client, None, None, ReasonCode(PacketTypes.DISCONNECT, identifier=0x80)
        )
        connected._on_connect(paho_client, None, {}, CONNACK_OK)

        topics = [c.args[0] for c in paho_client.subscribe.call_args_list]
        assert topics == ["arduino/stream", "arduino/will"]
        assert connected.is_connected is True

        connected._on_subscribe(paho_client, None, 21, [SUBACK_QOS2])
        assert connected._subacks == {}


# =============================================================================
# PUBLICACIÓN
# =============================================================================

class TestPublish:

    def test_publish_confirmed(self, connected, paho_client):
        info = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)
        info.is_published.return_value = True
        paho_client.publish.return_value = info

        assert connected.publish("server/stream", "hi", qos=2, retained=True) is True
        paho_client.publish.assert_called_once_with("server/stream", "hi", qos=2, retain=True)
        info.wait_for_publish.assert_called_once_with(timeout=0.2)

    def test_publish_not_queued(self, connected, paho_client):
        paho_client.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_NO_CONN)

        assert connected.publish("server/stream", "hi") is False

    def test_publish_wait_error(self, connected, paho_client):
        info = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)
        info.wait_for_publish.side_effect = RuntimeError("connection lost")
        paho_client.publish.return_value = info

        assert connected.publish("server/stream", "hi") is False

    def test_publish_timeout(self, connected, paho_client):
        info = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)
        info.is_published.return_value = False
        paho_client.publish.return_value = info

        assert connected.publish("server/stream", "hi") is False
