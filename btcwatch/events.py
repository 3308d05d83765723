"""
Publish/subscribe hook for newly created alerts.

UI layers subscribe here to be told about alerts as they are recorded.
"""

import logging
from typing import Callable

from btcwatch.database.models import AlertEvent

logger = logging.getLogger(__name__)

AlertHandler = Callable[[AlertEvent], None]


class AlertEventBus:
    """Fans new AlertEvents out to subscribers."""

    def __init__(self) -> None:
        self._handlers: list[AlertHandler] = []

    def subscribe(self, handler: AlertHandler) -> None:
        """Register a callback for new alerts."""
        self._handlers.append(handler)

    def unsubscribe(self, handler: AlertHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    @property
    def subscribers(self) -> tuple[AlertHandler, ...]:
        return tuple(self._handlers)

    def publish(self, event: AlertEvent) -> None:
        """Call every subscriber; a failing subscriber does not stop the rest."""
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Alert subscriber {handler!r} failed: {e}")
