"""
Event contracts for credential lifecycle notifications.

Operations collect events while their transaction runs and hand them to the
bus only after it has committed, so a subscriber never sees a change that was
rolled back.
"""

from typing import Any, Awaitable, Callable, Dict, Protocol, runtime_checkable
from datetime import datetime
from abc import ABC, abstractmethod


class IEvent(ABC):
    """A credential lifecycle event."""

    @property
    @abstractmethod
    def event_type(self) -> str:
        """Name subscribers register under."""

    @property
    @abstractmethod
    def timestamp(self) -> datetime:
        """Creation time, naive UTC."""

    @property
    @abstractmethod
    def data(self) -> Dict[str, Any]:
        """Loggable payload; never contains secrets such as temporary passwords."""

    @property
    @abstractmethod
    def correlation_id(self) -> str:
        ...


EventHandler = Callable[[IEvent], Awaitable[None]]


@runtime_checkable
class IEventBus(Protocol):
    """Fan-out of committed events to their subscribers."""

    async def publish(self, event: IEvent) -> bool:
        """
        Deliver an event to every handler of its type and to global handlers.

        A failing handler is logged and does not affect the others or the
        publisher.
        """
        ...

    async def subscribe(self, event_type: str, handler: EventHandler) -> bool:
        ...

    async def subscribe_to_all(self, handler: EventHandler) -> bool:
        ...
