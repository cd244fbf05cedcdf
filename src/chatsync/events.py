"""
Typed publish/subscribe between the monitor, the transport and the controller.

Events are enum members rather than free-form strings; ``on()`` returns a
cleanup function the same way the socket handlers do.
"""

import logging
from enum import Enum
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)
Handler = Callable[[Any], None]


class TransportEvent(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    DATA_AVAILABLE = "data_available"


class MonitorEvent(str, Enum):
    QUALITY_CHANGE = "quality_change"
    STATUS_CHANGE = "status_change"
    RECOVERY_READY = "recovery_ready"


class EventEmitter(Generic[E]):
    def __init__(self) -> None:
        self._handlers: dict[E, list[Handler]] = {}

    def on(self, event: E, handler: Handler) -> Callable[[], None]:
        """Register a handler. Returns a function that removes it again."""
        self._handlers.setdefault(event, []).append(handler)

        def remove() -> None:
            try:
                self._handlers.get(event, []).remove(handler)
            except ValueError:
                pass
        return remove

    def emit(self, event: E, payload: Any = None) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(payload)
            except Exception as e:
                logger.error(f"Handler for {event.value} failed: {e}", exc_info=True)

    def clear(self) -> None:
        self._handlers.clear()
