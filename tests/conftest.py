"""Fixtures compartidas de los tests."""

import json
import threading
from dataclasses import replace

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from common.config import Settings
from computers_ingest.domain import NULL_USER_ID, Slot, SlotStore, User
from computers_ingest.exceptions import StoreError, UnknownUserError
from computers_ingest.persistence import PostgresSlotStore, ensure_schema


class FakeSlotStore(SlotStore):
    """Store en memoria con la misma FK que el schema real.

    calls registra cada upsert aplicado con éxito.
    """

    def __init__(self, fail_slots=(), fail_users=()):
        self.users = {NULL_USER_ID: User(NULL_USER_ID)}
        self.slots = {}
        self.calls = []
        self.attempts = []
        self.fail_slots = set(fail_slots)
        self.fail_users = set(fail_users)
        self._lock = threading.Lock()

    def upsert_slot(self, slot_id, taken_by, is_taken):
        with self._lock:
            self.attempts.append(("slot", slot_id, taken_by, is_taken))
            if slot_id in self.fail_slots:
                raise StoreError(f"slot {slot_id} exploded")
            if taken_by not in self.users:
                raise UnknownUserError(taken_by)
            self.slots[slot_id] = Slot(slot_id, taken_by, is_taken)
            self.calls.append(("slot", slot_id, taken_by, is_taken))

    def upsert_user(self, user_id, login=None):
        with self._lock:
            self.attempts.append(("user", user_id, login))
            if user_id in self.fail_users:
                raise StoreError(f"user {user_id} exploded")
            if login is None:
                self.users.setdefault(user_id, User(user_id))
            else:
                self.users[user_id] = User(user_id, login)
            self.calls.append(("user", user_id, login))

    def ping(self):
        return True


def payload(status, rfid="TAG1", slots="", message="", **extra):
    """Payload JSON como lo envía el lector."""
    data = {"message": message, "RFID": rfid, "slots": slots, "status": status}
    data.update(extra)
    return json.dumps(data).encode("utf-8")


@pytest.fixture
def fake_store():
    return FakeSlotStore()


def make_sqlite_engine(url="sqlite://"):
    """SQLite con foreign keys activas y el schema aplicado."""
    kwargs = {"poolclass": StaticPool} if url == "sqlite://" else {}
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False},
        future=True,
        **kwargs,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_conn, connection_record):
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    ensure_schema(engine)
    return engine


@pytest.fixture
def engine():
    engine = make_sqlite_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return PostgresSlotStore(engine)


BASE_SETTINGS = Settings(
    database_url="sqlite://",
    db_host="localhost",
    db_port=5432,
    db_user="postgres",
    db_password="",
    db_name="computers",
    db_sslmode="prefer",
    db_ensure_schema=True,
    mqtt_host="broker.local",
    mqtt_port=8883,
    mqtt_client_id="computers-test",
    mqtt_user="server",
    mqtt_password="secret",
    mqtt_tls=True,
    mqtt_ack_timeout=0.5,
    mqtt_connect_timeout=0.5,
    server_will_topic="server/will",
    server_stream_topic="server/stream",
    device_stream_topic="arduino/stream",
    device_will_topic="arduino/will",
    server_greeting="hi",
    unknown_tag_policy="reject",
    ingest_workers=1,
    ingest_queue_size=100,
    shutdown_grace=2.0,
    log_file=None,
)


@pytest.fixture
def make_settings():
    def _make(**overrides):
        return replace(BASE_SETTINGS, **overrides)
    return _make
