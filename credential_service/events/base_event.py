"""
Base event implementation for the event system.
Provides common functionality for all events in the system.
"""

import uuid
from typing import Any, Dict
from datetime import datetime

from ..interfaces.event_interface import IEvent
from ..models.base import utcnow


class BaseEvent(IEvent):
    """
    Base implementation for all events.

    Concrete events are dataclasses; the generated __init__ calls
    __post_init__, which stamps the system fields.
    """

    def __post_init__(self):
        self._correlation_id = str(uuid.uuid4())
        self._timestamp = utcnow()

    @property
    def event_type(self) -> str:
        """Event type identifier based on class name."""
        return self.__class__.__name__

    @property
    def correlation_id(self) -> str:
        return self._correlation_id

    @property
    def timestamp(self) -> datetime:
        return self._timestamp

    @property
    def data(self) -> Dict[str, Any]:
        """Event data payload excluding system fields."""
        return {
            key: value for key, value in self.__dict__.items()
            if not key.startswith("_")
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary representation."""
        return {
            "event_type": self.event_type,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data
        }

    def __str__(self) -> str:
        return f"{self.event_type}(correlation_id={self.correlation_id}, timestamp={self.timestamp})"
