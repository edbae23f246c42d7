"""PostgreSQL Storage - Estado actual de slots y usuarios.

Solo guarda el último estado conocido: cada upsert sobrescribe la fila por
clave primaria, nunca se guarda historial.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..domain.entities import Slot, User
from ..domain.store_interface import SlotStore
from ..exceptions import StoreError, UnknownUserError

logger = logging.getLogger(__name__)

FOREIGN_KEY_VIOLATION = "23503"

# Whitelist fija: en conflicto solo se tocan taken_by/is_taken
UPSERT_SLOT_SQL = text("""
    INSERT INTO slots (id, taken_by, is_taken)
    VALUES (:id, :taken_by, :is_taken)
    ON CONFLICT (id) DO UPDATE
    SET taken_by = excluded.taken_by,
        is_taken = excluded.is_taken
""")

UPSERT_USER_SQL = text("""
    INSERT INTO users (id, login)
    VALUES (:id, :login)
    ON CONFLICT (id) DO UPDATE
    SET login = excluded.login
""")

INSERT_USER_IF_ABSENT_SQL = text("""
    INSERT INTO users (id, login)
    VALUES (:id, '')
    ON CONFLICT (id) DO NOTHING
""")


def _is_foreign_key_violation(error: IntegrityError) -> bool:
    orig = getattr(error, "orig", None)
    if getattr(orig, "pgcode", None) == FOREIGN_KEY_VIOLATION:
        return True
    return "foreign key" in str(orig).lower()


class PostgresSlotStore(SlotStore):
    """Storage de slots/users sobre un engine SQLAlchemy compartido.

    El engine tiene pool propio y es seguro para uso concurrente desde
    varios workers; cada upsert usa su propia transacción.
    """

    def __init__(self, engine: Engine):
        """Inicializa el storage.

        Args:
            engine: Engine de la BD (inyectado, compartido)
        """
        self._engine = engine

    def upsert_slot(self, slot_id: str, taken_by: str, is_taken: bool) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    UPSERT_SLOT_SQL,
                    {"id": slot_id, "taken_by": taken_by, "is_taken": bool(is_taken)},
                )
        except IntegrityError as e:
            if _is_foreign_key_violation(e):
                raise UnknownUserError(taken_by) from e
            raise StoreError(f"slot {slot_id!r} upsert rejected: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StoreError(f"slot {slot_id!r} upsert failed: {e}") from e

        logger.debug(
            "[STORE] Slot upserted: id=%s taken_by=%s is_taken=%s",
            slot_id,
            taken_by,
            is_taken,
        )

    def upsert_user(self, user_id: str, login: Optional[str] = None) -> None:
        if login is None:
            statement, params = INSERT_USER_IF_ABSENT_SQL, {"id": user_id}
        else:
            statement, params = UPSERT_USER_SQL, {"id": user_id, "login": login}

        try:
            with self._engine.begin() as conn:
                conn.execute(statement, params)
        except SQLAlchemyError as e:
            raise StoreError(f"user {user_id!r} upsert failed: {e}") from e

        logger.debug("[STORE] User upserted: id=%s", user_id)

    def get_slot(self, slot_id: str) -> Optional[Slot]:
        with self._engine.connect() as conn:
            row = conn.execute(
                text("SELECT id, taken_by, is_taken FROM slots WHERE id = :id"),
                {"id": slot_id},
            ).mappings().first()
        if row is None:
            return None
        return Slot(id=row["id"].strip(), taken_by=row["taken_by"], is_taken=bool(row["is_taken"]))

    def get_user(self, user_id: str) -> Optional[User]:
        with self._engine.connect() as conn:
            row = conn.execute(
                text("SELECT id, login FROM users WHERE id = :id"),
                {"id": user_id},
            ).mappings().first()
        if row is None:
            return None
        return User(id=row["id"], login=row["login"])

    def ping(self) -> bool:
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False
