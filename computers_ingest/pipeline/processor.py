"""Procesador principal de eventos de los lectores."""

from __future__ import annotations

import logging
from enum import Enum

from ..domain.entities import NULL_USER_ID
from ..domain.event import Event, Status
from ..domain.store_interface import SlotStore
from ..exceptions import StoreError, UnknownUserError

logger = logging.getLogger(__name__)


class UnknownTagPolicy(Enum):
    """Qué hacer con Placed/Taken de un tag sin fila en users."""
    REJECT = "reject"
    SENTINEL = "sentinel"


class EventProcessor:
    """Aplica cada evento al store según su status.

    Pipeline:
    1. Clasificación por status
    2. Upsert por slot (Placed/Taken) o por usuario (Scanned)
    3. Aislamiento de fallos: un slot que falla no bloquea a sus hermanos

    Todas las mutaciones son upserts por clave primaria, así que aplicar el
    mismo evento dos veces deja el mismo estado. Entre eventos distintos gana
    el último que se escribe en el store.
    """

    def __init__(
        self,
        store: SlotStore,
        unknown_tag_policy: UnknownTagPolicy = UnknownTagPolicy.REJECT,
    ):
        self._store = store
        self._unknown_tag_policy = unknown_tag_policy
        self._dispatch = {
            Status.PLACED: self._handle_placed,
            Status.TAKEN: self._handle_taken,
            Status.SCANNED: self._handle_scanned,
            Status.DISCONNECTED: self._handle_disconnected,
        }

    def process(self, event: Event) -> bool:
        """Procesa un evento decodificado.

        Args:
            event: Evento adaptado del payload MQTT

        Returns:
            True si todas las mutaciones necesarias se aplicaron
        """
        kind = event.kind
        if kind is None:
            logger.warning(
                "[PROCESSOR] Unknown status=%d RFID=%s slots=%s: %s",
                event.status,
                event.tag_id,
                event.slot_list,
                event.message,
            )
            return True

        return self._dispatch[kind](event)

    def _handle_placed(self, event: Event) -> bool:
        logger.info(
            "[PROCESSOR] %s placed computer to %s",
            event.tag_id,
            event.slot_list,
        )
        return self._apply_slots(event, is_taken=False)

    def _handle_taken(self, event: Event) -> bool:
        logger.info(
            "[PROCESSOR] %s took computer from %s",
            event.tag_id,
            event.slot_list,
        )
        return self._apply_slots(event, is_taken=True)

    def _handle_scanned(self, event: Event) -> bool:
        logger.info("[PROCESSOR] Scanned the %s tag", event.tag_id)
        try:
            self._store.upsert_user(event.tag_id, event.login)
            return True
        except StoreError as e:
            logger.error(
                "[PROCESSOR] Failed to upsert user RFID=%s: %s",
                event.tag_id,
                e,
            )
            return False

    def _handle_disconnected(self, event: Event) -> bool:
        logger.warning(
            "[PROCESSOR] Reader reported disconnect RFID=%s: %s",
            event.tag_id,
            event.message,
        )
        return True

    def _apply_slots(self, event: Event, is_taken: bool) -> bool:
        """Un upsert por slot; los fallos se registran y se sigue."""
        failed = 0
        for slot_id in event.slot_ids():
            if not self._upsert_slot(slot_id, event.tag_id, is_taken):
                failed += 1

        if failed:
            logger.warning(
                "[PROCESSOR] Event partially applied: status=%s RFID=%s failed_slots=%d",
                event.kind.name,
                event.tag_id,
                failed,
            )
        return failed == 0

    def _upsert_slot(self, slot_id: str, tag_id: str, is_taken: bool) -> bool:
        try:
            self._store.upsert_slot(slot_id, tag_id, is_taken)
            return True
        except UnknownUserError:
            if self._unknown_tag_policy is UnknownTagPolicy.SENTINEL:
                logger.warning(
                    "[PROCESSOR] Unknown RFID=%s for slot=%s, falling back to %r user",
                    tag_id,
                    slot_id,
                    NULL_USER_ID,
                )
                return self._upsert_slot_as_sentinel(slot_id, is_taken)
            logger.error(
                "[PROCESSOR] Unknown RFID=%s, slot=%s not updated (tag was never scanned)",
                tag_id,
                slot_id,
            )
            return False
        except StoreError as e:
            logger.error("[PROCESSOR] Failed to upsert slot=%s: %s", slot_id, e)
            return False

    def _upsert_slot_as_sentinel(self, slot_id: str, is_taken: bool) -> bool:
        try:
            self._store.upsert_slot(slot_id, NULL_USER_ID, is_taken)
            return True
        except StoreError as e:
            logger.error("[PROCESSOR] Failed to upsert slot=%s: %s", slot_id, e)
            return False
