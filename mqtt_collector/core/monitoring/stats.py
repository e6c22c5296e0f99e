"""Estadísticas del colector."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class CollectorStats:
    """Contadores en proceso del supervisor."""

    sessions: int = 0
    received: int = 0
    persisted: int = 0
    failures: Counter = field(default_factory=Counter)
    last_message_at: float = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_failures(self) -> int:
        return sum(self.failures.values())

    def record_failure(self, kind: str) -> None:
        self.failures[kind] += 1

    def __str__(self) -> str:
        return (
            f"Stats: sessions={self.sessions} received={self.received} "
            f"persisted={self.persisted} failures={self.total_failures}"
        )

    def to_dict(self) -> dict:
        """Convierte a diccionario."""
        return {
            "sessions": self.sessions,
            "received": self.received,
            "persisted": self.persisted,
            "failures": dict(self.failures),
            "last_message_at": self.last_message_at,
            "started_at": self.started_at.isoformat(),
        }
