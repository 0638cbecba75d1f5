"""Web layer for Nutrir realtime notifications.

FastAPI application, realtime services (broadcaster, session relays, remote
channel groups, dispatcher) and their message models.
"""

__version__ = "1.0.0"
