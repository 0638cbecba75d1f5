"""Realtime notification services."""
