"""Shared hover state between the map and the elevation chart.

Either view publishes the point under the pointer and the other one reads it.
The views never call each other; they only see this channel.
"""

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HoveredPoint:
    lat: float
    lng: float
    cumulative_distance_km: float
    index: int | None = None

    def to_dict(self) -> dict:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "cumulative_distance_km": self.cumulative_distance_km,
            "index": self.index,
        }


HoverListener = Callable[[HoveredPoint | None], None]


class HoverChannel:
    """Holds the current HoveredPoint. Last write wins."""

    def __init__(self):
        self._current: HoveredPoint | None = None
        self._listeners: list[HoverListener] = []

    @property
    def current(self) -> HoveredPoint | None:
        return self._current

    def publish(self, point: HoveredPoint | None) -> None:
        self._current = point
        for listener in list(self._listeners):
            listener(point)

    def clear(self) -> None:
        self.publish(None)

    def subscribe(self, listener: HoverListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
