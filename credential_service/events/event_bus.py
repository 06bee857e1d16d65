"""
Event bus implementation for publishing and subscribing to events.
Provides decoupled communication between services through events.
"""

import asyncio
from typing import Dict, List, Set
from collections import defaultdict
import structlog

from ..interfaces.event_interface import EventHandler, IEvent, IEventBus

logger = structlog.get_logger()


class InMemoryEventBus(IEventBus):
    """
    In-memory event bus implementation for single-instance deployments.

    Handler failures are logged and never reach the publisher.
    """

    def __init__(self):
        self._handlers: Dict[str, Set[EventHandler]] = defaultdict(set)
        self._global_handlers: Set[EventHandler] = set()
        self._lock = asyncio.Lock()

    async def publish(self, event: IEvent) -> bool:
        """
        Publish an event to all registered handlers.

        Handlers run concurrently and are awaited before returning.

        Returns:
            True once every handler has run, whatever its outcome
        """
        event_type = event.event_type
        handlers: List[EventHandler] = list(
            self._handlers.get(event_type, set()) | self._global_handlers
        )

        if not handlers:
            logger.debug("No handlers registered for event", event_type=event_type)
            return True

        results = await asyncio.gather(
            *(handler(event) for handler in handlers),
            return_exceptions=True
        )

        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(
                    "Event handler failed",
                    event_type=event_type,
                    handler=getattr(handler, "__name__", repr(handler)),
                    correlation_id=event.correlation_id,
                    error=str(result)
                )

        logger.debug(
            "Event published",
            event_type=event_type,
            handler_count=len(handlers),
            correlation_id=event.correlation_id
        )
        return True

    async def subscribe(self, event_type: str, handler: EventHandler) -> bool:
        async with self._lock:
            self._handlers[event_type].add(handler)

        logger.debug(
            "Handler subscribed to event type",
            event_type=event_type,
            handler=getattr(handler, "__name__", repr(handler))
        )
        return True

    async def subscribe_to_all(self, handler: EventHandler) -> bool:
        """Subscribe a handler that receives every event."""
        async with self._lock:
            self._global_handlers.add(handler)
        return True

