"""Colector MQTT → SQLite.

Se suscribe a una jerarquía de topics y persiste cada mensaje como una
lectura append-only en una base SQLite local.
"""

__version__ = "0.4.0"
