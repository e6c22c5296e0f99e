"""Política de espera entre sesiones.

Por defecto es un retardo fijo de 1 segundo, sin jitter ni tope de
reintentos. Se puede configurar como backoff exponencial con jitter
vía entorno.
"""

from __future__ import annotations

import os
import random
from dataclasses import dataclass
from typing import Callable

from ..domain.errors import StartupError


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as e:
        raise StartupError(f"Invalid {name}={raw!r}: expected a number") from e


@dataclass(frozen=True)
class BackoffPolicy:
    """Configuración del retardo entre reintentos."""
    base_seconds: float = 1.0
    max_seconds: float = 1.0
    multiplier: float = 1.0
    jitter: float = 0.0

    @classmethod
    def from_env(cls) -> "BackoffPolicy":
        """Lee COLLECTOR_BACKOFF_*.

        Raises:
            StartupError: si algún valor no es numérico
        """
        base = _read_float("COLLECTOR_BACKOFF_SECONDS", "1.0")
        return cls(
            base_seconds=base,
            max_seconds=_read_float("COLLECTOR_BACKOFF_MAX_SECONDS", str(base)),
            multiplier=_read_float("COLLECTOR_BACKOFF_MULTIPLIER", "1.0"),
            jitter=_read_float("COLLECTOR_BACKOFF_JITTER", "0.0"),
        )

    def delay_for(
        self,
        consecutive_failures: int,
        rand: Callable[[float, float], float] = random.uniform,
    ) -> float:
        """Retardo en segundos tras ``consecutive_failures`` fallos seguidos (>= 1)."""
        # El exponente se acota para no desbordar el float en caídas largas.
        exponent = min(max(consecutive_failures, 1) - 1, 64)
        delay = self.base_seconds * (self.multiplier ** exponent)
        delay = min(delay, max(self.max_seconds, self.base_seconds))
        if self.jitter > 0:
            delay += rand(0, delay * self.jitter)
        return delay
