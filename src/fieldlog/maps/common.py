"""Building blocks the map providers are composed from."""

import asyncio
import json
import logging
import secrets
import time
from dataclasses import replace
from typing import Callable, Generic, TypeVar

from fieldlog.config import DEFAULT_INIT_TIMEOUT
from fieldlog.maps import mercator
from fieldlog.maps.types import (
    EVENT_NAMES,
    MAP_TYPES,
    MapContainer,
    MapEvent,
    MapEventHandler,
    MapInitializationError,
    MapOptions,
    MapType,
    MarkerOptions,
    PolylineOptions,
    Viewport,
)
from fieldlog.models import GeoPoint, MapBounds

logger = logging.getLogger(__name__)

LAYOUT_POLL_INTERVAL = 0.1  # seconds
HOVER_MESSAGE_TYPE = "fieldlog-hover"  # postMessage type seen by the embedding page

T = TypeVar("T")


def new_overlay_id(prefix: str) -> str:
    """Opaque overlay id: millisecond timestamp plus a random suffix."""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


async def wait_for_layout(container: MapContainer, timeout: float, interval: float = LAYOUT_POLL_INTERVAL) -> None:
    """Poll until the container has a positive width and height.

    Raises:
        MapInitializationError: If the container is still unsized after timeout.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not container.has_size:
        if loop.time() >= deadline:
            raise MapInitializationError(
                f"Map container {container.element_id!r} has no size after {timeout:.1f}s"
            )
        logger.debug("Map container %s has no size, waiting...", container.element_id)
        await asyncio.sleep(interval)


def hover_relay_script(hover_url: str) -> str:
    """JavaScript defining fieldlogRelayHover(latLng) for a rendered map page.

    The function posts the pointer position, or a clear when latLng is null,
    to hover_url and forwards the resolved point to the embedding page.
    """
    return f"""
function fieldlogRelayHover(latLng) {{
  const body = latLng ? {{lat: latLng.lat, lng: latLng.lng}} : {{clear: true}};
  fetch({json.dumps(hover_url)}, {{
    method: 'POST',
    headers: {{'Content-Type': 'application/json'}},
    body: JSON.stringify(body)
  }}).then((r) => r.json()).then((res) => {{
    if (window.parent !== window) {{
      window.parent.postMessage({{type: {json.dumps(HOVER_MESSAGE_TYPE)}, point: res.point}}, window.location.origin);
    }}
  }});
}}
"""


class OverlayRegistry(Generic[T]):
    """Overlay options keyed by the ids handed out to callers."""

    def __init__(self, prefix: str):
        self.prefix = prefix
        self._items: dict[str, T] = {}

    def add(self, options: T) -> str:
        overlay_id = new_overlay_id(self.prefix)
        while overlay_id in self._items:
            overlay_id = new_overlay_id(self.prefix)
        self._items[overlay_id] = options
        return overlay_id

    def get(self, overlay_id: str) -> T | None:
        return self._items.get(overlay_id)

    def update(self, overlay_id: str, **changes) -> T | None:
        """Apply a partial update. Unknown ids are ignored; unknown fields raise TypeError."""
        current = self._items.get(overlay_id)
        if current is None:
            return None
        updated = replace(current, **changes)
        self._items[overlay_id] = updated
        return updated

    def remove(self, overlay_id: str) -> bool:
        return self._items.pop(overlay_id, None) is not None

    def clear(self) -> None:
        self._items.clear()

    def items(self) -> list[tuple[str, T]]:
        return list(self._items.items())

    def __contains__(self, overlay_id: str) -> bool:
        return overlay_id in self._items

    def __len__(self) -> int:
        return len(self._items)


class EventRegistry:
    """Map-level listeners keyed by the backend's native event names.

    Callers use the shared vocabulary in EVENT_NAMES; event_map translates it
    and normalize turns a native payload into a MapEvent.
    """

    def __init__(self, event_map: dict[str, str], normalize: Callable[[dict], MapEvent]):
        self.event_map = event_map
        self.normalize = normalize
        self._listeners: dict[str, list[MapEventHandler]] = {}

    def native_name(self, event: str) -> str:
        if event not in EVENT_NAMES:
            logger.debug("Passing through unknown map event name %r", event)
        return self.event_map.get(event, event)

    def on(self, event: str, handler: MapEventHandler) -> None:
        self._listeners.setdefault(self.native_name(event), []).append(handler)

    def off(self, event: str, handler: MapEventHandler | None = None) -> None:
        native = self.native_name(event)
        if handler is None:
            self._listeners.pop(native, None)
            return
        handlers = self._listeners.get(native, [])
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._listeners.pop(native, None)

    def dispatch(self, native_event: str, payload: dict | None = None) -> int:
        """Deliver a native event to its listeners; returns how many ran."""
        handlers = list(self._listeners.get(native_event, []))
        if not handlers:
            return 0
        event = self.normalize(payload or {})
        for handler in handlers:
            handler(event)
        return len(handlers)

    def listener_count(self, event: str | None = None) -> int:
        if event is not None:
            return len(self._listeners.get(self.native_name(event), []))
        return sum(len(h) for h in self._listeners.values())

    def clear(self) -> None:
        self._listeners.clear()


def route_event(
    markers: OverlayRegistry[MarkerOptions],
    polylines: OverlayRegistry[PolylineOptions],
    events: EventRegistry,
    native_event: str,
    payload: dict,
) -> int:
    """Deliver a native event to an overlay's own handler or to the map.

    Payloads whose ``target`` is an overlay id are handled by that overlay
    (marker clicks, polyline pointer moves); everything else goes to the
    map-level listeners. Returns the number of handlers that ran.
    """
    target = payload.get("target")
    if target in markers:
        marker = markers.get(target)
        if native_event == "click" and marker.on_click:
            marker.on_click()
            return 1
        return 0
    if target in polylines:
        line = polylines.get(target)
        handler = {"mousemove": line.on_mousemove, "mouseout": line.on_mouseout}.get(native_event)
        if handler is None:
            return 0
        handler(events.normalize(payload))
        return 1
    return events.dispatch(native_event, payload)


class BaseMapProvider:
    """State and operations shared by every map backend.

    Subclasses pass their native event names and payload normalizer, report
    the deepest zoom the active base layer supports via max_zoom(), and may
    override load() to do backend work once the container has a size.
    """

    name = ""

    def __init__(
        self,
        event_map: dict[str, str],
        normalize: Callable[[dict], MapEvent],
        init_timeout: float = DEFAULT_INIT_TIMEOUT,
    ):
        self.init_timeout = init_timeout
        self.container: MapContainer | None = None
        self.viewport: Viewport | None = None
        self.options: MapOptions | None = None
        self.markers: OverlayRegistry[MarkerOptions] = OverlayRegistry("marker")
        self.polylines: OverlayRegistry[PolylineOptions] = OverlayRegistry("line")
        self.events = EventRegistry(event_map, normalize)

    @property
    def is_initialized(self) -> bool:
        return self.viewport is not None

    async def load(self) -> None:
        """Backend-specific loading; runs after the container has a size."""

    async def initialize(self, container: MapContainer, options: MapOptions) -> None:
        if self.is_initialized:
            logger.debug("%s map already initialized; ignoring", self.name)
            return
        await wait_for_layout(container, self.init_timeout)
        await self.load()
        self.container = container
        self.options = options
        self.viewport = Viewport(center=options.center, zoom=options.zoom)
        self.set_map_type(options.map_type)
        logger.debug(
            "%s map initialized in %s (%dx%d)",
            self.name, container.element_id, container.width, container.height,
        )

    def destroy(self) -> None:
        self.events.clear()
        self.clear_markers()
        self.clear_polylines()
        self.viewport = None
        self.container = None

    # View operations

    def max_zoom(self) -> int:
        raise NotImplementedError

    def _view_changed(self, zoomed: bool) -> None:
        self.events.dispatch(self.events.native_name("move"))
        if zoomed:
            self.events.dispatch(self.events.native_name("zoom"))

    def set_center(self, center: GeoPoint, animate: bool = True) -> None:
        if not self.viewport:
            return
        self.viewport.center = center
        self._view_changed(zoomed=False)

    def pan_to(self, position: GeoPoint) -> None:
        self.set_center(position, animate=True)

    def set_zoom(self, zoom: int) -> None:
        if not self.viewport:
            return
        self.viewport.zoom = max(0, min(int(zoom), self.max_zoom()))
        self._view_changed(zoomed=True)

    def fit_bounds(self, bounds: MapBounds, padding: int = 50) -> None:
        if not self.viewport or not self.container:
            return
        self.viewport.center = bounds.center
        self.viewport.zoom = mercator.zoom_for_bounds(
            bounds, self.container.width, self.container.height, padding, self.max_zoom()
        )
        self._view_changed(zoomed=True)

    # Markers

    def add_marker(self, options: MarkerOptions) -> str:
        if not self.viewport:
            return ""
        return self.markers.add(options)

    def remove_marker(self, marker_id: str) -> None:
        self.markers.remove(marker_id)

    def update_marker(self, marker_id: str, **changes) -> None:
        self.markers.update(marker_id, **changes)

    def clear_markers(self) -> None:
        self.markers.clear()

    # Polylines

    def add_polyline(self, options: PolylineOptions) -> str:
        if not self.viewport:
            return ""
        return self.polylines.add(options)

    def remove_polyline(self, line_id: str) -> None:
        self.polylines.remove(line_id)

    def update_polyline(self, line_id: str, **changes) -> None:
        self.polylines.update(line_id, **changes)

    def clear_polylines(self) -> None:
        self.polylines.clear()

    # Events

    def on(self, event: str, handler: MapEventHandler) -> None:
        if not self.viewport:
            return
        self.events.on(event, handler)

    def off(self, event: str, handler: MapEventHandler | None = None) -> None:
        self.events.off(event, handler)

    def dispatch(self, native_event: str, payload: dict | None = None) -> int:
        """Feed a native event in from the browser.

        A payload with ``target`` set to an overlay id goes to that overlay's
        own handlers; anything else goes to map-level listeners.
        """
        return route_event(self.markers, self.polylines, self.events, native_event, payload or {})

    # Base layer

    def set_map_type(self, map_type: MapType) -> None:
        if not self.viewport:
            return
        if map_type not in MAP_TYPES:
            raise ValueError(f"Unknown map type: {map_type}")
        self.viewport.map_type = map_type
        self.viewport.zoom = min(self.viewport.zoom, self.max_zoom())

    # Utilities

    def get_center(self) -> GeoPoint:
        if not self.viewport:
            return GeoPoint(0.0, 0.0)
        return self.viewport.center

    def get_zoom(self) -> int:
        if not self.viewport:
            return 0
        return self.viewport.zoom

    def get_bounds(self) -> MapBounds | None:
        if not self.viewport or not self.container:
            return None
        return mercator.visible_bounds(
            self.viewport.center, self.viewport.zoom, self.container.width, self.container.height
        )
