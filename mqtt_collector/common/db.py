from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine


logger = logging.getLogger(__name__)


def build_sqlalchemy_url(db_path: str) -> str:
    # ":memory:" se deja tal cual; cualquier otra ruta se pasa como archivo.
    if db_path == ":memory:":
        return "sqlite://"
    return f"sqlite:///{Path(db_path)}"


def get_engine(db_path: str) -> Engine:
    url = build_sqlalchemy_url(db_path)

    logger.info("[DB] Crear engine SQLite path=%s", db_path)

    # SQLite no abre el archivo hasta la primera conexión; los errores de
    # ruta aparecen en ensure_schema().
    return create_engine(url, future=True)
