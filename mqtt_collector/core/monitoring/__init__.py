"""Monitoring layer - Métricas y observabilidad."""

from .stats import CollectorStats

__all__ = ["CollectorStats"]
