"""Nutrir realtime notification fan-out service."""

__version__ = "1.0.0"
