"""Schema setup for the slots/users tables.

Creates tables and seeds the sentinel user if they don't exist.
Safe to call on every startup.
"""

from __future__ import annotations

import logging
import pathlib

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

SCHEMA_FILE = pathlib.Path(__file__).parent / "schema.sql"


def load_statements() -> list[str]:
    """Read schema.sql and split it into individual statements."""
    sql_content = SCHEMA_FILE.read_text()
    return [s.strip() for s in sql_content.split(";") if s.strip()]


def ensure_schema(engine: Engine) -> None:
    """Ensure tables and the sentinel user exist.

    Args:
        engine: store engine
    """
    logger.info("[DB] Ensuring schema exists")

    try:
        with engine.begin() as conn:
            for statement in load_statements():
                conn.execute(text(statement))

        logger.info("[DB] Schema ready")

    except Exception as e:
        logger.exception("[DB] Schema creation failed: %s", e)
        raise
