"""Transporte MQTT.

- topics.py: derivación del filtro de suscripción
- broker_session.py: sesión paho-mqtt de un solo uso expuesta como asyncio
"""

from .broker_session import (
    CONNECT_TIMEOUT_SECONDS,
    MQTT_PORT,
    QOS_AT_MOST_ONCE,
    BrokerSession,
    SessionState,
)
from .topics import derive_topic_filter, matches

__all__ = [
    "CONNECT_TIMEOUT_SECONDS",
    "MQTT_PORT",
    "QOS_AT_MOST_ONCE",
    "BrokerSession",
    "SessionState",
    "derive_topic_filter",
    "matches",
]
