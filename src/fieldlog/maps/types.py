"""Types shared by every map provider."""

from dataclasses import dataclass
from typing import Callable, Literal, Protocol

from fieldlog.models import GeoPoint, MapBounds

MapType = Literal["roadmap", "satellite", "terrain", "hybrid"]
MAP_TYPES: tuple[str, ...] = ("roadmap", "satellite", "terrain", "hybrid")

# Event names callers subscribe with; each provider maps them to its own
EVENT_NAMES: tuple[str, ...] = ("move", "zoom", "click", "dblclick", "mousemove", "mouseout", "rightclick")


class MapError(Exception):
    """Base class for map provider failures."""


class MapInitializationError(MapError):
    """A provider could not be initialized (no container size, API load failed)."""


class MapLoadError(MapError):
    """Neither the requested provider nor the tile fallback could be created."""


@dataclass(frozen=True)
class Pixel:
    x: float
    y: float


@dataclass
class MapContainer:
    """The surface a map renders into.

    Containers inside conditionally rendered UI can exist before they have a
    size; providers wait for resize() to give them one.
    """

    element_id: str = "map"
    width: int = 0
    height: int = 0

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    @property
    def has_size(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass
class MarkerIcon:
    url: str | None = None
    size: tuple[int, int] | None = None  # width, height
    anchor: tuple[int, int] | None = None  # x, y
    color: str | None = None  # built-in colored pin when no url


@dataclass
class MarkerOptions:
    position: GeoPoint
    title: str | None = None
    icon: str | MarkerIcon | None = None
    draggable: bool = False
    on_click: Callable[[], None] | None = None


@dataclass
class PolylineOptions:
    path: list[GeoPoint]
    stroke_color: str = "#FF0000"
    stroke_opacity: float = 0.8
    stroke_weight: int = 3
    geodesic: bool = True
    clickable: bool = True
    editable: bool = False
    on_mousemove: Callable[["MapEvent"], None] | None = None
    on_mouseout: Callable[["MapEvent"], None] | None = None


@dataclass
class MapOptions:
    center: GeoPoint
    zoom: int = 10
    map_type: MapType = "terrain"
    disable_default_ui: bool = False
    zoom_control: bool = True
    map_type_control: bool = True
    street_view_control: bool = True
    fullscreen_control: bool = True
    gesture_handling: Literal["cooperative", "greedy", "none", "auto"] = "auto"


@dataclass
class MapEvent:
    lat_lng: GeoPoint | None = None
    pixel: Pixel | None = None


MapEventHandler = Callable[[MapEvent], None]


@dataclass
class Viewport:
    center: GeoPoint
    zoom: int
    map_type: MapType = "terrain"


class MapProvider(Protocol):
    """Capability interface every map backend implements."""

    name: str

    async def initialize(self, container: MapContainer, options: MapOptions) -> None: ...

    def destroy(self) -> None: ...

    @property
    def is_initialized(self) -> bool: ...

    def set_center(self, center: GeoPoint, animate: bool = True) -> None: ...

    def set_zoom(self, zoom: int) -> None: ...

    def fit_bounds(self, bounds: MapBounds, padding: int = 50) -> None: ...

    def pan_to(self, position: GeoPoint) -> None: ...

    def add_marker(self, options: MarkerOptions) -> str: ...

    def remove_marker(self, marker_id: str) -> None: ...

    def update_marker(self, marker_id: str, **changes) -> None: ...

    def clear_markers(self) -> None: ...

    def add_polyline(self, options: PolylineOptions) -> str: ...

    def remove_polyline(self, line_id: str) -> None: ...

    def update_polyline(self, line_id: str, **changes) -> None: ...

    def clear_polylines(self) -> None: ...

    def on(self, event: str, handler: MapEventHandler) -> None: ...

    def off(self, event: str, handler: MapEventHandler | None = None) -> None: ...

    def dispatch(self, native_event: str, payload: dict | None = None) -> int: ...

    def set_map_type(self, map_type: MapType) -> None: ...

    def get_center(self) -> GeoPoint: ...

    def get_zoom(self) -> int: ...

    def get_bounds(self) -> MapBounds | None: ...

    def pixel_to_lat_lng(self, pixel: Pixel) -> GeoPoint | None: ...

    def lat_lng_to_pixel(self, lat_lng: GeoPoint) -> Pixel | None: ...

    def render(self, hover_url: str | None = None) -> str: ...
