"""Supervisor: sesiones MQTT indefinidas con ingesta at-least-once.

Flujo por sesión:
  session_factory() → connect (5s) → subscribe → receive → Reading → sink.append

Cualquier fallo (connect, subscribe, receive, decode, append) aborta la
sesión completa: no se salta un mensaje malo para seguir en la misma
sesión. Se registra el error, se espera el backoff y se empieza de cero.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from ..domain.errors import SessionError, UnexpectedSessionError
from ..domain.reading import Reading
from ..monitoring import metrics
from ..monitoring.stats import CollectorStats
from ..transport.broker_session import CONNECT_TIMEOUT_SECONDS, QOS_AT_MOST_ONCE
from ..transport.topics import derive_topic_filter
from .backoff import BackoffPolicy
from .state_machine import (
    SupervisorAction,
    SupervisorEvent,
    SupervisorState,
    transition,
)

logger = logging.getLogger(__name__)


class Supervisor:
    """Ejecuta sesiones contra el broker para siempre.

    ``session_factory`` devuelve una sesión nueva (``BrokerSession`` o un
    doble de test) con ``connect``, ``subscribe``, ``receive`` y ``close``.
    ``sink`` es cualquier objeto con ``append(reading)``.

    Uso:
        supervisor = Supervisor(lambda: BrokerSession(host), sink, "dev-1")
        await supervisor.run_forever()
    """

    def __init__(
        self,
        session_factory: Callable[[], Any],
        sink: Any,
        device_id: str,
        base_topic: str = "",
        connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
        backoff: Optional[BackoffPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        stats: Optional[CollectorStats] = None,
    ):
        self._session_factory = session_factory
        self._sink = sink
        self._device_id = device_id
        self._base_topic = base_topic
        self._connect_timeout = connect_timeout
        self._backoff = backoff or BackoffPolicy()
        self._sleep = sleep
        self._clock = clock
        self._stats = stats or CollectorStats()

        self._state = SupervisorState.IDLE
        self._session: Any = None
        self._topic_filter: Optional[str] = None
        self._consecutive_failures = 0
        self._next_delay = 0.0

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def stats(self) -> CollectorStats:
        return self._stats

    @property
    def topic_filter(self) -> Optional[str]:
        return self._topic_filter

    async def run_forever(self, max_sessions: Optional[int] = None) -> None:
        """Bucle principal. No termina en operación normal.

        Args:
            max_sessions: si se indica, retorna en vez de iniciar la sesión
                número ``max_sessions + 1`` (tests y diagnóstico)
        """
        logger.info(
            "[SUPERVISOR] Starting device_id=%s base_topic=%r backoff=%s",
            self._device_id,
            self._base_topic,
            self._backoff,
        )
        self._state, action = transition(SupervisorState.IDLE, SupervisorEvent.START)
        try:
            while True:
                if (
                    action is SupervisorAction.CONNECT
                    and max_sessions is not None
                    and self._stats.sessions >= max_sessions
                ):
                    logger.info("[SUPERVISOR] Session limit reached. %s", self._stats)
                    return

                event = await self._perform(action)
                self._state, action = transition(self._state, event)
        finally:
            await self._close_session()

    async def _perform(self, action: SupervisorAction) -> SupervisorEvent:
        if action is SupervisorAction.SLEEP:
            await self._sleep(self._next_delay)
            return SupervisorEvent.BACKOFF_ELAPSED

        try:
            if action is SupervisorAction.CONNECT:
                await self._start_session()
                return SupervisorEvent.CONNECTED
            if action is SupervisorAction.SUBSCRIBE:
                await self._subscribe()
                return SupervisorEvent.SUBSCRIBED
            await self._ingest_next()
            return SupervisorEvent.READING_STORED
        except SessionError as e:
            await self._abort_session(e)
        except Exception as e:
            await self._abort_session(UnexpectedSessionError(repr(e)), exc_info=e)
        return SupervisorEvent.FAILED

    async def _start_session(self) -> None:
        self._session = self._session_factory()
        self._topic_filter = derive_topic_filter(self._base_topic)
        self._stats.sessions += 1
        metrics.SESSIONS_STARTED.inc()

        logger.info("[SUPERVISOR] Session #%d starting", self._stats.sessions)
        await self._session.connect(self._connect_timeout)

    async def _subscribe(self) -> None:
        await self._session.subscribe(self._topic_filter, QOS_AT_MOST_ONCE)
        self._consecutive_failures = 0
        metrics.BROKER_CONNECTED.set(1)
        logger.info(
            "[SUPERVISOR] Session #%d streaming from %s",
            self._stats.sessions,
            self._topic_filter,
        )

    async def _ingest_next(self) -> None:
        message = await self._session.receive()
        self._stats.received += 1
        self._stats.last_message_at = self._clock()
        metrics.MESSAGES_RECEIVED.inc()

        reading = Reading.from_message(message, self._device_id, clock=self._clock)
        self._sink.append(reading)

        self._stats.persisted += 1
        metrics.READINGS_PERSISTED.inc()
        logger.debug("[SUPERVISOR] Stored topic=%s value=%s", reading.topic, reading.value)

        if self._stats.persisted % 100 == 0:
            logger.info("[SUPERVISOR] %s", self._stats)

    async def _abort_session(self, error: SessionError, exc_info: Optional[BaseException] = None) -> None:
        self._consecutive_failures += 1
        kind = error.kind.value
        self._stats.record_failure(kind)
        metrics.SESSION_FAILURES.labels(kind=kind).inc()
        metrics.BROKER_CONNECTED.set(0)

        self._next_delay = self._backoff.delay_for(self._consecutive_failures)
        logger.error(
            "[SUPERVISOR] Session failed kind=%s: %s, retrying in %.2fs",
            kind,
            error,
            self._next_delay,
            exc_info=exc_info,
        )
        await self._close_session()

    async def _close_session(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        try:
            await session.close()
        except Exception as e:
            logger.warning("[SUPERVISOR] Error closing session: %s", e)
