"""Transport layer - Recepción de datos MQTT."""

from .async_processor import AsyncMessageProcessor
from .message_handler import MessageHandler
from .mqtt_client import MQTTClient

__all__ = ["AsyncMessageProcessor", "MQTTClient", "MessageHandler"]
