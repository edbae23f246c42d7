from __future__ import annotations

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine

from .config import Settings


logger = logging.getLogger(__name__)


def build_sqlalchemy_url(settings: Settings) -> URL | str:
    if settings.database_url:
        return settings.database_url

    # URL.create escapa usuario/contraseña con caracteres especiales.
    return URL.create(
        "postgresql+psycopg2",
        username=settings.db_user,
        password=settings.db_password or None,
        host=settings.db_host,
        port=settings.db_port,
        database=settings.db_name,
        query={"sslmode": settings.db_sslmode},
    )


def get_engine(settings: Settings) -> Engine:
    """Crea el engine y verifica la conexión.

    Un fallo del ping se propaga: sin BD el servidor no puede atender nada.
    """
    url = build_sqlalchemy_url(settings)

    # Log básico de parámetros de conexión (sin contraseña)
    logger.info(
        "[DB] Creating engine host=%s port=%s db=%s user=%s sslmode=%s",
        settings.db_host,
        settings.db_port,
        settings.db_name,
        settings.db_user,
        settings.db_sslmode,
    )

    engine = create_engine(url, pool_pre_ping=True, pool_recycle=300, future=True)

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("[DB] Connection test FAILED")
        engine.dispose()
        raise

    logger.info("[DB] Connection test OK")
    return engine
