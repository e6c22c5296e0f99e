"""Núcleo del colector: dominio, transporte, pipeline y monitoreo."""
