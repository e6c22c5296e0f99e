"""Fixtures y dobles de test compartidos."""

import asyncio
from types import SimpleNamespace
from typing import Any, List, Optional

import pytest
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.reasoncodes import ReasonCode
from sqlalchemy import create_engine, text

from mqtt_collector.core.domain.errors import BrokerConnectionError, ReceiveError
from mqtt_collector.core.domain.reading import InboundMessage
from mqtt_collector.infrastructure.persistence.sqlite_sink import SQLiteReadingSink


CONNACK_OK = ReasonCode(PacketTypes.CONNACK, "Success")
CONNACK_NOT_AUTHORIZED = ReasonCode(PacketTypes.CONNACK, "Not authorized")
SUBACK_QOS0 = ReasonCode(PacketTypes.SUBACK, "Granted QoS 0")
SUBACK_FAILURE = ReasonCode(PacketTypes.SUBACK, "Unspecified error")
DISCONNECT_ERROR = ReasonCode(PacketTypes.DISCONNECT, "Unspecified error")


# =============================================================================
# ENTORNO
# =============================================================================

@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Sin .env ni variables del colector heredadas del entorno real."""
    for name in (
        "COLLECTOR_DB_PATH",
        "COLLECTOR_DEVICE_ID",
        "COLLECTOR_BASE_TOPIC",
        "COLLECTOR_METRICS_PORT",
        "COLLECTOR_BACKOFF_SECONDS",
        "COLLECTOR_BACKOFF_MAX_SECONDS",
        "COLLECTOR_BACKOFF_MULTIPLIER",
        "COLLECTOR_BACKOFF_JITTER",
        "MQTT_BROKER_HOST",
        "MQTT_USERNAME",
        "MQTT_PASSWORD",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("COLLECTOR_ENV_FILE", str(tmp_path / "missing.env"))


# =============================================================================
# STORAGE
# =============================================================================

@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "readings.db")


@pytest.fixture
def sink(db_path):
    """Sink con esquema creado."""
    s = SQLiteReadingSink.from_path(db_path)
    s.ensure_schema()
    yield s
    s.dispose()


def read_rows(db_path: str) -> List[tuple]:
    """Lee las filas con un engine nuevo, independiente del sink."""
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        with engine.connect() as conn:
            rows = conn.execute(
                text("SELECT timestamp, topic, value, device_id FROM READINGS")
            ).all()
        return [tuple(r) for r in rows]
    finally:
        engine.dispose()


class RecordingSink:
    """Sink en memoria; opcionalmente falla en cada append."""

    def __init__(self, error: Optional[Exception] = None):
        self.readings: list = []
        self.error = error
        self.attempts = 0

    def append(self, reading) -> None:
        self.attempts += 1
        if self.error is not None:
            raise self.error
        self.readings.append(reading)


# =============================================================================
# SESIONES FALSAS (para el supervisor)
# =============================================================================

def message(topic: str, payload: bytes) -> InboundMessage:
    return InboundMessage(topic=topic, payload=payload)


class FakeSession:
    """Sesión guionada: cada item de ``messages`` es un mensaje o una excepción.

    Al agotarse el guion, ``receive`` falla como si el broker cerrara.
    """

    def __init__(
        self,
        connect_error: Optional[Exception] = None,
        subscribe_error: Optional[Exception] = None,
        messages: Optional[list] = None,
        block_when_exhausted: bool = False,
    ):
        self.connect_error = connect_error
        self.subscribe_error = subscribe_error
        self.messages = list(messages or [])
        self.block_when_exhausted = block_when_exhausted
        self.calls: List[Any] = []
        self.closed = False

    async def connect(self, timeout: float) -> None:
        self.calls.append(("connect", timeout))
        if self.connect_error is not None:
            raise self.connect_error

    async def subscribe(self, topic_filter: str, qos: int) -> None:
        self.calls.append(("subscribe", topic_filter, qos))
        if self.subscribe_error is not None:
            raise self.subscribe_error

    async def receive(self) -> InboundMessage:
        self.calls.append(("receive",))
        if self.messages:
            item = self.messages.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        if self.block_when_exhausted:
            await asyncio.Event().wait()
        raise ReceiveError("script exhausted")

    async def close(self) -> None:
        self.closed = True

    @property
    def receive_count(self) -> int:
        return sum(1 for c in self.calls if c[0] == "receive")


class SessionFactory:
    """Entrega las sesiones guionadas en orden; luego sesiones que no conectan."""

    def __init__(self, sessions: Optional[List[FakeSession]] = None):
        self.pending = list(sessions or [])
        self.created: List[FakeSession] = []

    def __call__(self) -> FakeSession:
        if self.pending:
            session = self.pending.pop(0)
        else:
            session = FakeSession(connect_error=BrokerConnectionError("connection refused"))
        self.created.append(session)
        return session


class SleepRecorder:
    """Reemplazo de asyncio.sleep que solo registra los retardos."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


# =============================================================================
# CLIENTE PAHO FALSO (para BrokerSession)
# =============================================================================

class FakePahoClient:
    """Imita la superficie de paho.mqtt.client.Client que usa BrokerSession."""

    def __init__(
        self,
        client_id: str = "",
        connack: ReasonCode = CONNACK_OK,
        connect_exc: Optional[Exception] = None,
        connect_rc: int = 0,
        silent: bool = False,
        subscribe_rc: int = 0,
        suback_codes: Optional[list] = None,
        disconnect_exc: Optional[Exception] = None,
    ):
        self.client_id = client_id
        self.connack = connack
        self.connect_exc = connect_exc
        self.connect_rc = connect_rc
        self.silent = silent
        self.subscribe_rc = subscribe_rc
        self.suback_codes = suback_codes if suback_codes is not None else [SUBACK_QOS0]
        self.disconnect_exc = disconnect_exc

        self.on_connect = None
        self.on_disconnect = None
        self.on_subscribe = None
        self.on_message = None

        self.connect_args = None
        self.credentials = None
        self.subscriptions: List[tuple] = []
        self.loop_started = False
        self.loop_stopped = False
        self.disconnected = False
        self._next_mid = 0

    def enable_logger(self, logger) -> None:
        self.logger = logger

    def username_pw_set(self, username, password) -> None:
        self.credentials = (username, password)

    def connect(self, host, port, keepalive):
        self.connect_args = (host, port, keepalive)
        if self.connect_exc is not None:
            raise self.connect_exc
        return self.connect_rc

    def loop_start(self):
        self.loop_started = True
        if not self.silent:
            self.on_connect(self, None, SimpleNamespace(session_present=False), self.connack, None)
        return 0

    def subscribe(self, topic, qos):
        self.subscriptions.append((topic, qos))
        if self.subscribe_rc:
            return self.subscribe_rc, None
        self._next_mid += 1
        self.on_subscribe(self, None, self._next_mid, self.suback_codes, None)
        return 0, self._next_mid

    def deliver(self, topic: str, payload: bytes) -> None:
        self.on_message(
            self,
            None,
            SimpleNamespace(topic=topic, payload=payload, qos=0, retain=False),
        )

    def drop(self, reason_code: ReasonCode = DISCONNECT_ERROR) -> None:
        self.on_disconnect(self, None, SimpleNamespace(is_disconnect_packet_from_server=False), reason_code, None)

    def disconnect(self):
        if self.disconnect_exc is not None:
            raise self.disconnect_exc
        self.disconnected = True
        return 0

    def loop_stop(self):
        self.loop_stopped = True
        return 0
