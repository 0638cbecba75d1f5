"""FastAPI application for Nutrir realtime notifications."""
