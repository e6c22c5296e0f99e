"""Métricas Prometheus del colector."""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)

SESSIONS_STARTED = Counter(
    "collector_sessions_started_total",
    "Broker sessions started by the supervisor",
)
MESSAGES_RECEIVED = Counter(
    "collector_messages_received_total",
    "MQTT messages received",
)
READINGS_PERSISTED = Counter(
    "collector_readings_persisted_total",
    "Readings appended to the store",
)
SESSION_FAILURES = Counter(
    "collector_session_failures_total",
    "Sessions aborted, by error kind",
    ["kind"],  # connection, subscription, receive, decode, storage, unexpected
)
BROKER_CONNECTED = Gauge(
    "collector_broker_connected",
    "1 while a session is subscribed and streaming",
)


def serve_metrics(port: int) -> None:
    """Expone /metrics en un hilo aparte."""
    start_http_server(port)
    logger.info("[METRICS] Serving Prometheus metrics on :%d", port)
