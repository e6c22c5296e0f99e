"""Taxonomía de errores del colector.

Cada frontera de componente lanza su propio tipo. Todos los errores de sesión
llevan un ``kind`` para que el supervisor pueda diferenciar la política de
reintento si algún día hace falta.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Tipo de fallo que aborta una sesión."""
    CONNECTION = "connection"
    SUBSCRIPTION = "subscription"
    RECEIVE = "receive"
    DECODE = "decode"
    STORAGE = "storage"
    UNEXPECTED = "unexpected"


class CollectorError(Exception):
    """Base de todos los errores del colector."""


class StartupError(CollectorError):
    """El store no se puede abrir o el esquema no se puede crear.

    Es fatal: el proceso termina.
    """


class SessionError(CollectorError):
    """Fallo que abandona la sesión actual; el supervisor reintenta."""

    kind: ErrorKind = ErrorKind.UNEXPECTED


class BrokerConnectionError(SessionError):
    """Timeout, rechazo o fallo de handshake al conectar al broker."""

    kind = ErrorKind.CONNECTION


class SubscriptionError(SessionError):
    """Conexión no viva o filtro rechazado por el broker."""

    kind = ErrorKind.SUBSCRIPTION


class ReceiveError(SessionError):
    """El canal de mensajes se cerró (desconexión, reset de red)."""

    kind = ErrorKind.RECEIVE


class DecodeError(SessionError):
    """El payload no es texto UTF-8 válido."""

    kind = ErrorKind.DECODE

    def __init__(self, topic: str, reason: str):
        self.topic = topic
        self.reason = reason
        super().__init__(f"Payload on topic '{topic}' is not valid text: {reason}")


class StorageError(SessionError):
    """Fallo de I/O o de restricción al insertar una lectura."""

    kind = ErrorKind.STORAGE


class UnexpectedSessionError(SessionError):
    """Envoltorio para excepciones no clasificadas dentro de una sesión."""

    kind = ErrorKind.UNEXPECTED
