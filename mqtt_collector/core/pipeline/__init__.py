"""Pipeline de supervisión.

- state_machine.py: transiciones puras (estado, evento) → (estado, acción)
- backoff.py: retardo entre sesiones
- supervisor.py: bucle principal connect → subscribe → receive → append
"""

from .backoff import BackoffPolicy
from .state_machine import (
    InvalidTransition,
    SupervisorAction,
    SupervisorEvent,
    SupervisorState,
    transition,
)
from .supervisor import Supervisor

__all__ = [
    "BackoffPolicy",
    "InvalidTransition",
    "Supervisor",
    "SupervisorAction",
    "SupervisorEvent",
    "SupervisorState",
    "transition",
]
