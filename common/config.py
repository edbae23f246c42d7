from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


UNKNOWN_TAG_POLICIES = ("reject", "sentinel")


def _default_env_file() -> str:
    # .env junto al proceso, igual que en el despliegue con docker-compose.
    return str(Path.cwd() / ".env")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("true", "1", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str]
    db_host: str
    db_port: int
    db_user: str
    db_password: str
    db_name: str
    db_sslmode: str
    db_ensure_schema: bool

    mqtt_host: str
    mqtt_port: int
    mqtt_client_id: str
    mqtt_user: Optional[str]
    mqtt_password: Optional[str]
    mqtt_tls: bool
    mqtt_ack_timeout: float
    mqtt_connect_timeout: float

    server_will_topic: str
    server_stream_topic: str
    device_stream_topic: str
    device_will_topic: str
    server_greeting: str

    unknown_tag_policy: str
    ingest_workers: int
    ingest_queue_size: int
    shutdown_grace: float

    log_file: Optional[str]


def get_settings() -> Settings:
    # Carga el .env (si existe) sin pisar variables reales del entorno.
    env_file = os.getenv("COMPUTERS_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    unknown_tag_policy = os.getenv("UNKNOWN_TAG_POLICY", "reject").strip().lower()
    if unknown_tag_policy not in UNKNOWN_TAG_POLICIES:
        raise ValueError(
            f"UNKNOWN_TAG_POLICY must be one of {UNKNOWN_TAG_POLICIES}, got {unknown_tag_policy!r}"
        )

    ingest_workers = _env_int("INGEST_WORKERS", 4)
    if ingest_workers < 1:
        raise ValueError("INGEST_WORKERS must be >= 1")

    ingest_queue_size = _env_int("INGEST_QUEUE_SIZE", 1000)
    if ingest_queue_size < 1:
        raise ValueError("INGEST_QUEUE_SIZE must be >= 1")

    return Settings(
        database_url=os.getenv("DATABASE_URL") or None,
        db_host=os.getenv("PG_HOST", "localhost"),
        db_port=_env_int("PG_PORT", 5432),
        db_user=os.getenv("PG_USER", "postgres"),
        db_password=os.getenv("PG_PASSWORD", ""),
        db_name=os.getenv("PG_DBNAME", "computers"),
        db_sslmode=os.getenv("PG_SSLMODE", "prefer"),
        db_ensure_schema=_env_bool("DB_ENSURE_SCHEMA", True),
        mqtt_host=os.getenv("MQTT_HOST", "localhost"),
        mqtt_port=_env_int("MQTT_PORT", 8883),
        mqtt_client_id=os.getenv("MQTT_CLIENT_ID", "computers-server"),
        mqtt_user=os.getenv("MQTT_USER") or None,
        mqtt_password=os.getenv("MQTT_PASS") or None,
        mqtt_tls=_env_bool("MQTT_TLS", True),
        mqtt_ack_timeout=_env_float("MQTT_ACK_TIMEOUT_SECONDS", 5.0),
        mqtt_connect_timeout=_env_float("MQTT_CONNECT_TIMEOUT_SECONDS", 10.0),
        server_will_topic=os.getenv("SERVER_WILL_TOPIC", "server/will"),
        server_stream_topic=os.getenv("SERVER_STREAM_TOPIC", "server/stream"),
        device_stream_topic=os.getenv("ARDUINO_STREAM_TOPIC", "arduino/stream"),
        device_will_topic=os.getenv("ARDUINO_WILL_TOPIC", "arduino/will"),
        server_greeting=os.getenv("SERVER_GREETING", "hi"),
        unknown_tag_policy=unknown_tag_policy,
        ingest_workers=ingest_workers,
        ingest_queue_size=ingest_queue_size,
        shutdown_grace=_env_float("SHUTDOWN_GRACE_SECONDS", 5.0),
        log_file=os.getenv("LOG_FILE") or None,
    )
