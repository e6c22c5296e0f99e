"""Persistencia de lecturas."""

from .sqlite_sink import READINGS_DDL, SQLiteReadingSink

__all__ = ["READINGS_DDL", "SQLiteReadingSink"]
