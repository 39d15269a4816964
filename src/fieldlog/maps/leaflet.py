"""Raster tile map provider rendered with folium (Leaflet).

Needs no API key: tiles come from OpenStreetMap, OpenTopoMap and Esri.
"""

import logging

import folium

from fieldlog.config import DEFAULT_INIT_TIMEOUT
from fieldlog.maps import mercator
from fieldlog.maps.common import BaseMapProvider, hover_relay_script
from fieldlog.maps.types import MapEvent, MapInitializationError, MarkerIcon, Pixel
from fieldlog.models import GeoPoint

logger = logging.getLogger(__name__)

# map type -> (tile url template, attribution, max zoom)
TILE_LAYERS: dict[str, tuple[str, str, int]] = {
    "roadmap": (
        "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
        "&copy; OpenStreetMap contributors",
        19,
    ),
    "terrain": (
        "https://{s}.tile.opentopomap.org/{z}/{x}/{y}.png",
        "&copy; OpenStreetMap contributors, SRTM | &copy; OpenTopoMap (CC-BY-SA)",
        17,
    ),
    "satellite": (
        "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
        "&copy; Esri",
        19,
    ),
}
TILE_LAYERS["hybrid"] = TILE_LAYERS["satellite"]

# Leaflet's names for the shared event vocabulary
LEAFLET_EVENTS = {
    "move": "move",
    "zoom": "zoomend",
    "click": "click",
    "dblclick": "dblclick",
    "mousemove": "mousemove",
    "mouseout": "mouseout",
    "rightclick": "contextmenu",
}

DEFAULT_MARKER_SIZE = (25, 41)
DEFAULT_MARKER_ANCHOR = (12, 41)


def normalize_leaflet_event(payload: dict) -> MapEvent:
    """Leaflet mouse events carry ``latlng`` and ``containerPoint``."""
    latlng = payload.get("latlng")
    point = payload.get("containerPoint")
    return MapEvent(
        lat_lng=GeoPoint(lat=latlng["lat"], lng=latlng["lng"]) if latlng else None,
        pixel=Pixel(x=point["x"], y=point["y"]) if point else None,
    )


def _hover_relay_html(hover_url: str, line_names: list[str]) -> str:
    # folium declares its layers as page globals in a script after the body
    bindings = "\n".join(
        f"  {name}.on('mousemove', (e) => fieldlogRelayHover(e.latlng));\n"
        f"  {name}.on('mouseout', () => fieldlogRelayHover(null));"
        for name in line_names
    )
    return (
        f"<script>{hover_relay_script(hover_url)}"
        f"document.addEventListener('DOMContentLoaded', () => {{\n{bindings}\n}});\n</script>"
    )


class TileProvider(BaseMapProvider):
    """Map provider backed by self-hosted style raster tiles."""

    name = "tile"

    def __init__(self, init_timeout: float = DEFAULT_INIT_TIMEOUT):
        super().__init__(LEAFLET_EVENTS, normalize_leaflet_event, init_timeout)

    def max_zoom(self) -> int:
        map_type = self.viewport.map_type if self.viewport else "roadmap"
        return TILE_LAYERS[map_type][2]

    def pixel_to_lat_lng(self, pixel: Pixel) -> GeoPoint | None:
        if not self.viewport or not self.container:
            return None
        return mercator.container_point_to_lat_lng(
            pixel.x, pixel.y, self.viewport.center, self.viewport.zoom,
            self.container.width, self.container.height,
        )

    def lat_lng_to_pixel(self, lat_lng: GeoPoint) -> Pixel | None:
        if not self.viewport or not self.container:
            return None
        x, y = mercator.lat_lng_to_container_point(
            lat_lng, self.viewport.center, self.viewport.zoom,
            self.container.width, self.container.height,
        )
        return Pixel(x=x, y=y)

    # Rendering

    def _convert_icon(self, icon: str | MarkerIcon | None):
        if icon is None:
            return None
        if isinstance(icon, str):
            return folium.CustomIcon(icon, icon_size=DEFAULT_MARKER_SIZE, icon_anchor=DEFAULT_MARKER_ANCHOR)
        if icon.url:
            return folium.CustomIcon(
                icon.url,
                icon_size=icon.size or DEFAULT_MARKER_SIZE,
                icon_anchor=icon.anchor or DEFAULT_MARKER_ANCHOR,
            )
        if icon.color:
            return folium.Icon(color=icon.color)
        return None

    def build_map(self, hover_url: str | None = None) -> folium.Map:
        """Build a folium map reflecting the current viewport and overlays.

        With hover_url, pointer moves over lines that listen for the pointer
        are posted there from the page.
        """
        if not self.viewport:
            raise MapInitializationError("Tile map is not initialized")
        options = self.options
        tiles, attribution, max_zoom = TILE_LAYERS[self.viewport.map_type]
        fmap = folium.Map(
            location=[self.viewport.center.lat, self.viewport.center.lng],
            zoom_start=self.viewport.zoom,
            tiles=None,
            max_zoom=max_zoom,
            zoom_control=options.zoom_control and not options.disable_default_ui,
            width="100%",
            height="100%",
        )
        folium.TileLayer(
            tiles=tiles, attr=attribution, name=self.viewport.map_type, max_zoom=max_zoom
        ).add_to(fmap)

        hover_lines = []
        for _, line in self.polylines.items():
            layer = folium.PolyLine(
                locations=[[p.lat, p.lng] for p in line.path],
                color=line.stroke_color,
                weight=line.stroke_weight,
                opacity=line.stroke_opacity,
            ).add_to(fmap)
            if line.on_mousemove is not None:
                hover_lines.append(layer.get_name())

        for _, marker in self.markers.items():
            folium.Marker(
                location=[marker.position.lat, marker.position.lng],
                tooltip=marker.title,
                icon=self._convert_icon(marker.icon),
                draggable=marker.draggable,
            ).add_to(fmap)

        if hover_url and hover_lines:
            fmap.get_root().html.add_child(folium.Element(_hover_relay_html(hover_url, hover_lines)))

        logger.debug(
            "Built tile map with %d polylines and %d markers", len(self.polylines), len(self.markers)
        )
        return fmap

    def render(self, hover_url: str | None = None) -> str:
        return self.build_map(hover_url).get_root().render()
