"""Domain services for Nutrir realtime notifications."""

from .change_notifier import ChangeNotifier

__all__ = ["ChangeNotifier"]
