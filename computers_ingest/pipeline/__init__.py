"""Pipeline layer - Procesamiento de eventos."""

from .processor import EventProcessor, UnknownTagPolicy

__all__ = ["EventProcessor", "UnknownTagPolicy"]
