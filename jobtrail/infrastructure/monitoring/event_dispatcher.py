"""Best-effort delivery of domain events to subscribed handlers.

Handlers typically forward events to an audit log. Delivery never blocks or
fails the operation that produced the event: handler errors are logged and
dropped.
"""

import logging
import threading
from typing import Callable, List

from jobtrail.domain.events.resilience_events import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


class EventDispatcher:
    """Fan-out of domain events to registered handlers."""

    def __init__(self) -> None:
        self._handlers: List[EventHandler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: EventHandler) -> None:
        """Registers a handler for all events."""
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        """Removes a previously registered handler (no-op if unknown)."""
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def dispatch(self, event: DomainEvent) -> None:
        """Delivers an event to every handler."""
        logger.debug(f"EVENT: {event}")
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler {handler!r} failed for {type(event).__name__}: {e}", exc_info=True)


# Process-wide dispatcher used when components are not given one explicitly
default_dispatcher = EventDispatcher()
