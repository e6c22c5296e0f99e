"""Derivación del filtro de suscripción."""

from __future__ import annotations

from paho.mqtt.client import topic_matches_sub

MULTI_LEVEL_WILDCARD = "#"


def derive_topic_filter(base_topic: str) -> str:
    """Filtro MQTT a partir del topic base configurado.

    ``""`` → ``"#"``: cualquier topic, cualquier profundidad, con o sin "/" inicial.
    ``"sensors"`` → ``"/sensors/#"``: cualquier topic bajo ese prefijo.
    """
    if base_topic == "":
        return MULTI_LEVEL_WILDCARD
    return f"/{base_topic}/{MULTI_LEVEL_WILDCARD}"


def matches(topic_filter: str, topic: str) -> bool:
    """True si ``topic`` cae dentro de ``topic_filter`` según la semántica MQTT."""
    return topic_matches_sub(topic_filter, topic)
