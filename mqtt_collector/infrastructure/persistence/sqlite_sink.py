"""Sink append-only de lecturas sobre SQLite.

Cada append abre su propia transacción y hace commit de forma
independiente: un append fallido nunca deja una fila parcial.
No hay update, delete ni lectura desde este módulo.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ...common.db import get_engine
from ...core.domain.errors import StartupError, StorageError
from ...core.domain.reading import Reading

logger = logging.getLogger(__name__)


READINGS_DDL = """
    CREATE TABLE IF NOT EXISTS READINGS (
        timestamp int NOT NULL,
        topic varchar(255) NOT NULL,
        value varchar(255) NOT NULL,
        device_id varchar(255) NOT NULL
    )
"""

_INSERT_READING = """
    INSERT INTO READINGS (timestamp, topic, value, device_id)
    VALUES (:timestamp, :topic, :value, :device_id)
"""


class SQLiteReadingSink:
    """Escritor durable de lecturas.

    Uso:
        sink = SQLiteReadingSink.from_path("./dev.db")
        sink.ensure_schema()
        sink.append(reading)
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._appended = 0

    @classmethod
    def from_path(cls, db_path: str) -> "SQLiteReadingSink":
        return cls(get_engine(db_path))

    @property
    def appended(self) -> int:
        return self._appended

    def ensure_schema(self) -> None:
        """Crea la tabla READINGS si no existe. Seguro de llamar en cada arranque.

        Raises:
            StartupError: si el store no se puede abrir o el DDL falla
        """
        logger.info("[SINK] Ensuring schema exists")
        try:
            with self._engine.begin() as conn:
                conn.execute(text(READINGS_DDL))
        except SQLAlchemyError as e:
            logger.error("[SINK] Schema creation failed: %s", e)
            raise StartupError(f"Cannot prepare reading store: {e}") from e

        logger.info("[SINK] Schema ready")

    def append(self, reading: Reading) -> None:
        """Inserta una lectura como una operación atómica.

        Raises:
            StorageError: ante cualquier fallo de I/O o restricción
        """
        try:
            with self._engine.begin() as conn:
                conn.execute(text(_INSERT_READING), reading.to_params())
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to append reading (topic={reading.topic}): {e}"
            ) from e

        self._appended += 1
        logger.debug(
            "[SINK] Appended ts=%d topic=%s device=%s",
            reading.timestamp,
            reading.topic,
            reading.device_id,
        )

    def dispose(self) -> None:
        """Libera las conexiones del pool."""
        self._engine.dispose()
