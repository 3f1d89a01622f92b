"""Refresh notifications between mutating routes and dashboard stats"""

import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

DATA_TYPES = ('users', 'projects', 'frameworks')


class RefreshNotifier:
    """Tracks when each data type last changed and tells subscribers.

    Listeners are called as ``listener(data_type, refreshed_at)``. A failing
    listener is logged and does not stop the others.
    """

    def __init__(self):
        self.last_refreshed = {data_type: None for data_type in DATA_TYPES}
        self._listeners = []

    def subscribe(self, listener):
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def notify_refresh(self, data_type: str):
        if data_type not in self.last_refreshed:
            raise ValueError(f"Unknown data type: {data_type}")
        refreshed_at = datetime.now(timezone.utc)
        self.last_refreshed[data_type] = refreshed_at
        for listener in list(self._listeners):
            try:
                listener(data_type, refreshed_at)
            except Exception:
                logger.exception("Refresh listener failed for %s", data_type)

    def refresh_all(self):
        for data_type in DATA_TYPES:
            self.notify_refresh(data_type)
