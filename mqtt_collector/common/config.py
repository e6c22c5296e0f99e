from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _default_env_file() -> str:
    return str(Path.cwd() / ".env")


@dataclass(frozen=True)
class Settings:
    db_path: str
    device_id: str
    base_topic: str
    broker_host: str

    mqtt_username: Optional[str]
    mqtt_password: Optional[str]

    log_level: str
    metrics_port: Optional[int]

    def with_overrides(self, **overrides) -> "Settings":
        """Aplica los valores de CLI que no son None."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)


def _read_optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("[CONFIG] Ignoring invalid %s=%r (expected an integer)", name, raw)
        return None


def get_settings() -> Settings:
    # Carga el .env (si existe) sin pisar variables de entorno reales.
    env_file = os.getenv("COLLECTOR_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    db_path = os.getenv("COLLECTOR_DB_PATH", "./dev.db")
    device_id = os.getenv("COLLECTOR_DEVICE_ID", "UNKNOWN_DEVICE")
    # Vacío significa suscribirse a todo.
    base_topic = os.getenv("COLLECTOR_BASE_TOPIC", "")
    broker_host = os.getenv("MQTT_BROKER_HOST", "localhost")

    mqtt_username = os.getenv("MQTT_USERNAME") or None
    mqtt_password = os.getenv("MQTT_PASSWORD") or None

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

    return Settings(
        db_path=db_path,
        device_id=device_id,
        base_topic=base_topic,
        broker_host=broker_host,
        mqtt_username=mqtt_username,
        mqtt_password=mqtt_password,
        log_level=log_level,
        metrics_port=_read_optional_int("COLLECTOR_METRICS_PORT"),
    )
