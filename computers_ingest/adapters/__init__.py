"""Adapters layer - Conversión de contrato."""

from .event_adapter import DeviceStatusPayload, EventAdapter

__all__ = ["DeviceStatusPayload", "EventAdapter"]
