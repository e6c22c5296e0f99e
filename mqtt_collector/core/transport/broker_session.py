"""Sesión MQTT de un solo uso: connect → subscribe → receive.

paho-mqtt corre su loop de red en un hilo propio; los callbacks se pasan
al event loop de asyncio con ``call_soon_threadsafe`` y se consumen desde
una ``asyncio.Queue``. Así ``receive()`` solo suspende la tarea que lo
llama.

Una sesión nunca se reintenta por dentro: cualquier fallo la deja en
``FAILED`` y el supervisor crea una nueva.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import paho.mqtt.client as mqtt

from ..domain.errors import BrokerConnectionError, ReceiveError, SubscriptionError
from ..domain.reading import InboundMessage

logger = logging.getLogger(__name__)

MQTT_PORT = 1883
QOS_AT_MOST_ONCE = 0
CONNECT_TIMEOUT_SECONDS = 5.0
KEEPALIVE_SECONDS = 60

_EVENT_MESSAGE = "message"
_EVENT_CONNECTED = "connected"
_EVENT_DISCONNECTED = "disconnected"


class SessionState(str, Enum):
    """Estados de una sesión con el broker."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    RECEIVING = "receiving"
    FAILED = "failed"
    CLOSED = "closed"


def _default_client_factory(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
        clean_session=True,
    )


class BrokerSession:
    """Un intento de conexión + suscripción + recepción contra el broker.

    Uso:
        session = BrokerSession("localhost")
        await session.connect(timeout=5.0)
        await session.subscribe("/sensors/#")
        while True:
            message = await session.receive()
    """

    def __init__(
        self,
        broker_host: str = "localhost",
        broker_port: int = MQTT_PORT,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "data-collector",
        client_factory: Callable[[str], Any] = _default_client_factory,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = f"{client_id}-{uuid.uuid4().hex[:8]}"

        self._client_factory = client_factory
        self._client: Any = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._state = SessionState.DISCONNECTED
        self._connected = False
        self._closing = False

        self._events: "asyncio.Queue[Tuple[str, Any]]" = asyncio.Queue()
        self._connack: Optional[asyncio.Future] = None
        self._pending_subacks: Dict[int, asyncio.Future] = {}

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def connect(self, timeout: float = CONNECT_TIMEOUT_SECONDS) -> None:
        """Conecta al broker y espera el CONNACK.

        Raises:
            BrokerConnectionError: timeout, rechazo o error de socket
        """
        if self._state is not SessionState.DISCONNECTED:
            raise BrokerConnectionError(
                f"Session already used (state={self._state.value}); create a new one"
            )

        self._loop = asyncio.get_running_loop()
        self._state = SessionState.CONNECTING
        self._client = self._build_client()
        self._connack = self._loop.create_future()

        logger.info(
            "[MQTT] Connecting to %s:%d (client_id=%s timeout=%.1fs)",
            self.broker_host,
            self.broker_port,
            self.client_id,
            timeout,
        )

        try:
            await asyncio.wait_for(self._open(), timeout)
        except asyncio.TimeoutError as e:
            self._state = SessionState.FAILED
            raise BrokerConnectionError(
                f"Timed out after {timeout:.1f}s connecting to "
                f"{self.broker_host}:{self.broker_port}"
            ) from e
        except BrokerConnectionError:
            self._state = SessionState.FAILED
            raise
        except OSError as e:
            self._state = SessionState.FAILED
            raise BrokerConnectionError(
                f"Cannot reach broker {self.broker_host}:{self.broker_port}: {e}"
            ) from e

        self._state = SessionState.CONNECTED
        logger.info("[MQTT] Connected to broker %s:%d", self.broker_host, self.broker_port)

    async def _open(self) -> None:
        # connect() de paho bloquea en el socket; va al executor.
        rc = await self._loop.run_in_executor(
            None,
            self._client.connect,
            self.broker_host,
            self.broker_port,
            KEEPALIVE_SECONDS,
        )
        if rc != mqtt.MQTT_ERR_SUCCESS:
            raise BrokerConnectionError(f"Connect failed: {mqtt.error_string(rc)}")

        self._client.loop_start()
        await self._connack

    async def subscribe(self, topic_filter: str, qos: int = QOS_AT_MOST_ONCE) -> None:
        """Registra el filtro y espera el SUBACK.

        Raises:
            SubscriptionError: sesión no conectada o filtro rechazado
        """
        if self._state is not SessionState.CONNECTED or not self._connected:
            self._state = SessionState.FAILED
            raise SubscriptionError(
                f"Cannot subscribe to '{topic_filter}': session is not connected"
            )

        result, mid = self._client.subscribe(topic_filter, qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._state = SessionState.FAILED
            raise SubscriptionError(
                f"Subscribe to '{topic_filter}' failed: {mqtt.error_string(result)}"
            )

        # Se registra antes del primer await: el callback del SUBACK solo
        # corre en el event loop, después de ceder el control.
        suback = self._loop.create_future()
        self._pending_subacks[mid] = suback
        try:
            reason_codes = await suback
        except SubscriptionError:
            self._state = SessionState.FAILED
            raise
        finally:
            self._pending_subacks.pop(mid, None)

        failures = [rc for rc in reason_codes if rc.is_failure]
        if failures:
            self._state = SessionState.FAILED
            raise SubscriptionError(
                f"Broker rejected filter '{topic_filter}': {failures[0]}"
            )

        self._state = SessionState.SUBSCRIBED
        logger.info("[MQTT] Subscribed to %s (qos=%d)", topic_filter, qos)

    async def receive(self) -> InboundMessage:
        """Espera el siguiente mensaje con payload.

        Los eventos de estado se registran pero no se devuelven. Sin timeout:
        un broker silencioso bloquea hasta que el transporte se cierre.

        Raises:
            ReceiveError: el broker cerró la conexión
        """
        if self._state not in (SessionState.SUBSCRIBED, SessionState.RECEIVING):
            raise ReceiveError(f"Cannot receive in state {self._state.value}")

        self._state = SessionState.RECEIVING
        while True:
            kind, data = await self._events.get()
            if kind == _EVENT_MESSAGE:
                return data
            if kind == _EVENT_DISCONNECTED:
                self._state = SessionState.FAILED
                raise ReceiveError(f"Broker connection closed: {data}")
            logger.debug("[MQTT] Status event %s: %s", kind, data)

    async def close(self) -> None:
        """Detiene el loop de red y desconecta. Nunca lanza."""
        if self._state is SessionState.CLOSED:
            return

        self._closing = True
        self._state = SessionState.CLOSED

        for future in [self._connack, *self._pending_subacks.values()]:
            if future is not None and not future.done():
                future.cancel()
        self._pending_subacks.clear()

        if self._client is None or self._loop is None:
            return

        try:
            await self._loop.run_in_executor(None, self._shutdown_client, self._client)
        except Exception as e:
            logger.warning("[MQTT] Error closing session: %s", e)
        self._connected = False

    @staticmethod
    def _shutdown_client(client: Any) -> None:
        client.disconnect()
        client.loop_stop()

    # ------------------------------------------------------------------
    # Callbacks de paho (hilo de red) → event loop
    # ------------------------------------------------------------------

    def _build_client(self) -> Any:
        client = self._client_factory(self.client_id)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message
        client.enable_logger(logger)

        if self.username and self.password:
            client.username_pw_set(self.username, self.password)
        return client

    def _dispatch(self, handler: Callable[..., None], *args: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(handler, *args)
        except RuntimeError:
            # El event loop ya se cerró; la sesión está descartada.
            logger.debug("[MQTT] Dropped callback after loop shutdown: %s", handler.__name__)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de conexión."""
        self._dispatch(self._handle_connack, reason_code)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de desconexión."""
        self._dispatch(self._handle_disconnect, reason_code)

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None):
        """Callback de SUBACK."""
        self._dispatch(self._handle_suback, mid, list(reason_code_list))

    def _on_message(self, client, userdata, msg):
        """Callback de mensaje recibido."""
        message = InboundMessage(
            topic=msg.topic,
            payload=bytes(msg.payload),
            qos=msg.qos,
            retain=bool(msg.retain),
        )
        self._dispatch(self._events.put_nowait, (_EVENT_MESSAGE, message))

    def _handle_connack(self, reason_code) -> None:
        if reason_code.is_failure:
            self._connected = False
            logger.error("[MQTT] Connection refused: %s", reason_code)
            if self._connack is not None and not self._connack.done():
                self._connack.set_exception(
                    BrokerConnectionError(f"Broker refused connection: {reason_code}")
                )
            return

        self._connected = True
        self._events.put_nowait((_EVENT_CONNECTED, reason_code))
        if self._connack is not None and not self._connack.done():
            self._connack.set_result(None)

    def _handle_disconnect(self, reason_code) -> None:
        self._connected = False
        if self._closing:
            logger.info("[MQTT] Disconnected (%s)", reason_code)
            return

        logger.warning("[MQTT] Disconnected (%s)", reason_code)
        if self._connack is not None and not self._connack.done():
            self._connack.set_exception(
                BrokerConnectionError(f"Connection dropped during handshake: {reason_code}")
            )
        for suback in self._pending_subacks.values():
            if not suback.done():
                suback.set_exception(
                    SubscriptionError(f"Connection dropped before SUBACK: {reason_code}")
                )
        self._events.put_nowait((_EVENT_DISCONNECTED, reason_code))

    def _handle_suback(self, mid: int, reason_codes: List[Any]) -> None:
        suback = self._pending_subacks.get(mid)
        if suback is not None and not suback.done():
            suback.set_result(reason_codes)
