"""Modelo de dominio para lecturas recibidas por MQTT."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from .errors import DecodeError


@dataclass(frozen=True)
class InboundMessage:
    """Mensaje con payload tal como llega del broker."""
    topic: str
    payload: bytes
    qos: int = 0
    retain: bool = False


@dataclass(frozen=True)
class Reading:
    """Lectura ingerida - única entidad persistida.

    Se crea al recibir el mensaje, se persiste de inmediato y nunca se muta.
    El timestamp es el reloj local en el momento de la recepción, no el del
    broker ni el del publicador.
    """
    timestamp: int
    topic: str
    value: str
    device_id: str

    @classmethod
    def from_message(
        cls,
        message: InboundMessage,
        device_id: str,
        clock: Callable[[], float] = time.time,
    ) -> "Reading":
        """Construye la lectura a partir de un mensaje MQTT.

        Raises:
            DecodeError: si el payload no es UTF-8 válido
        """
        try:
            value = message.payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(message.topic, str(e)) from e

        return cls(
            timestamp=int(clock()),
            topic=message.topic,
            value=value,
            device_id=device_id,
        )

    def to_params(self) -> dict:
        """Convierte a parámetros para el INSERT."""
        return {
            "timestamp": self.timestamp,
            "topic": self.topic,
            "value": self.value,
            "device_id": self.device_id,
        }
