"""Notification domain - transactional and internal email dispatch"""

from .service import DispatchResult, NotificationDispatcher, NotificationKind, get_dispatcher

__all__ = ["DispatchResult", "NotificationDispatcher", "NotificationKind", "get_dispatcher"]
