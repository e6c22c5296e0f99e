"""Máquina de estados del supervisor.

Función pura ``transition(state, event) -> (state, action)``: el supervisor
ejecuta la acción, traduce el resultado a un evento y vuelve a llamar.
No hay estado terminal; el único camino de salida es matar el proceso.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple


class SupervisorState(str, Enum):
    """Estados del supervisor."""
    IDLE = "idle"
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    STREAMING = "streaming"
    BACKOFF = "backoff"


class SupervisorEvent(str, Enum):
    """Resultado de ejecutar la acción anterior."""
    START = "start"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    READING_STORED = "reading_stored"
    FAILED = "failed"
    BACKOFF_ELAPSED = "backoff_elapsed"


class SupervisorAction(str, Enum):
    """Lo que el supervisor debe hacer a continuación."""
    CONNECT = "connect"
    SUBSCRIBE = "subscribe"
    RECEIVE = "receive"
    SLEEP = "sleep"


class InvalidTransition(ValueError):
    """Par (estado, evento) que no tiene transición definida."""

    def __init__(self, state: SupervisorState, event: SupervisorEvent):
        self.state = state
        self.event = event
        super().__init__(f"No transition from {state.value} on {event.value}")


_S = SupervisorState
_E = SupervisorEvent
_A = SupervisorAction

TRANSITIONS: Dict[Tuple[SupervisorState, SupervisorEvent], Tuple[SupervisorState, SupervisorAction]] = {
    (_S.IDLE, _E.START): (_S.CONNECTING, _A.CONNECT),
    (_S.CONNECTING, _E.CONNECTED): (_S.SUBSCRIBING, _A.SUBSCRIBE),
    (_S.CONNECTING, _E.FAILED): (_S.BACKOFF, _A.SLEEP),
    (_S.SUBSCRIBING, _E.SUBSCRIBED): (_S.STREAMING, _A.RECEIVE),
    (_S.SUBSCRIBING, _E.FAILED): (_S.BACKOFF, _A.SLEEP),
    (_S.STREAMING, _E.READING_STORED): (_S.STREAMING, _A.RECEIVE),
    (_S.STREAMING, _E.FAILED): (_S.BACKOFF, _A.SLEEP),
    # Cada reintento arranca con una sesión nueva.
    (_S.BACKOFF, _E.BACKOFF_ELAPSED): (_S.CONNECTING, _A.CONNECT),
}


def transition(
    state: SupervisorState,
    event: SupervisorEvent,
) -> Tuple[SupervisorState, SupervisorAction]:
    """Siguiente estado y acción para ``(state, event)``.

    Raises:
        InvalidTransition: si el par no está en la tabla
    """
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransition(state, event) from None
