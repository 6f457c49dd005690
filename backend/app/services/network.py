"""
Online/offline state observed by the upload queue.
"""

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

NetworkListener = Callable[[bool, bool], None]


class NetworkMonitor:
    """Holds the reachability flag and notifies listeners with (was_online, is_online)."""

    def __init__(self, online: bool = True):
        self._online = online
        self._listeners: List[NetworkListener] = []

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        was_online = self._online
        self._online = online
        if was_online == online:
            return

        logger.info("Network state changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                listener(was_online, online)
            except Exception:
                logger.exception("Network listener failed")

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
