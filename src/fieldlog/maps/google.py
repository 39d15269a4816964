"""Google Maps provider.

Requires an API key. initialize() loads the Maps JavaScript API bootstrap,
so a bad key or an unreachable service fails here rather than in the browser.
"""

import asyncio
import logging
from urllib.parse import urlencode

import requests
from jinja2 import Template

from fieldlog.config import DEFAULT_INIT_TIMEOUT
from fieldlog.maps.common import BaseMapProvider, hover_relay_script
from fieldlog.maps.types import MapEvent, MapInitializationError, MarkerIcon, Pixel
from fieldlog.models import GeoPoint

logger = logging.getLogger(__name__)

MAPS_JS_URL = "https://maps.googleapis.com/maps/api/js"
STATIC_MAPS_URL = "https://maps.googleapis.com/maps/api/staticmap"
API_VERSION = "weekly"
API_LIBRARIES = "places,geometry"
REQUEST_TIMEOUT = 10  # seconds
MAX_ZOOM = 21
STATIC_MAX_SIZE = 640  # pixels per side on the free tier

# Google's names for the shared event vocabulary
GOOGLE_EVENTS = {
    "move": "center_changed",
    "zoom": "zoom_changed",
    "click": "click",
    "dblclick": "dblclick",
    "mousemove": "mousemove",
    "mouseout": "mouseout",
    "rightclick": "rightclick",
}

PAGE_TEMPLATE = Template("""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<style>html, body, #{{ element_id }} { height: 100%; margin: 0; padding: 0; }</style>
</head>
<body>
<div id="{{ element_id }}"></div>
<script>
{% if relay_script %}{{ relay_script|safe }}{% endif %}
function initMap() {
  const map = new google.maps.Map(document.getElementById({{ element_id|tojson }}), {{ map_options|tojson }});
  const polylines = {{ polylines|tojson }};
  const hoverLines = {{ hover_lines|tojson }};
  const markers = {{ markers|tojson }};
  polylines.forEach((line, i) => {
    const polyline = new google.maps.Polyline(Object.assign({map: map}, line));
    if (hoverLines.includes(i)) {
      polyline.addListener('mousemove', (e) => fieldlogRelayHover({lat: e.latLng.lat(), lng: e.latLng.lng()}));
      polyline.addListener('mouseout', () => fieldlogRelayHover(null));
    }
  });
  markers.forEach((marker) => {
    const opts = {map: map, position: marker.position, title: marker.title, draggable: marker.draggable};
    if (marker.icon) {
      opts.icon = {url: marker.icon.url};
      if (marker.icon.size) opts.icon.scaledSize = new google.maps.Size(marker.icon.size[0], marker.icon.size[1]);
      if (marker.icon.anchor) opts.icon.anchor = new google.maps.Point(marker.icon.anchor[0], marker.icon.anchor[1]);
    }
    new google.maps.Marker(opts);
  });
}
</script>
<script async src="{{ script_url }}"></script>
</body>
</html>
""")


def normalize_google_event(payload: dict) -> MapEvent:
    """Google mouse events carry ``latLng`` and ``pixel``."""
    lat_lng = payload.get("latLng")
    pixel = payload.get("pixel")
    return MapEvent(
        lat_lng=GeoPoint(lat=lat_lng["lat"], lng=lat_lng["lng"]) if lat_lng else None,
        pixel=Pixel(x=pixel["x"], y=pixel["y"]) if pixel else None,
    )


def _hex_to_static_color(color: str, opacity: float) -> str:
    """'#RRGGBB' + opacity -> Static Maps '0xRRGGBBAA'."""
    alpha = max(0, min(255, int(round(opacity * 255))))
    return f"0x{color.lstrip('#')[:6].upper()}{alpha:02X}"


class GoogleMapsProvider(BaseMapProvider):
    """Map provider backed by the Google Maps Platform."""

    name = "commercial-api"

    def __init__(self, api_key: str, init_timeout: float = DEFAULT_INIT_TIMEOUT):
        if not api_key:
            raise ValueError("Google Maps provider requires an API key")
        super().__init__(GOOGLE_EVENTS, normalize_google_event, init_timeout)
        self.api_key = api_key

    def script_url(self) -> str:
        return f"{MAPS_JS_URL}?{urlencode({'key': self.api_key, 'v': API_VERSION, 'libraries': API_LIBRARIES, 'callback': 'initMap'})}"

    def _load_api(self) -> None:
        """Fetch the Maps JavaScript API bootstrap to confirm the key works."""
        try:
            response = requests.get(
                MAPS_JS_URL,
                params={"key": self.api_key, "v": API_VERSION, "libraries": API_LIBRARIES},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise MapInitializationError(f"Failed to load Google Maps API: {e}") from e

    async def load(self) -> None:
        logger.debug("Loading Google Maps API (%s)", API_VERSION)
        await asyncio.to_thread(self._load_api)

    def max_zoom(self) -> int:
        return MAX_ZOOM

    def pixel_to_lat_lng(self, pixel: Pixel) -> GeoPoint | None:
        # Needs an OverlayView projection, which only exists in the browser
        return None

    def lat_lng_to_pixel(self, lat_lng: GeoPoint) -> Pixel | None:
        return None

    # Rendering

    def _icon_dict(self, icon: str | MarkerIcon | None) -> dict | None:
        if icon is None:
            return None
        if isinstance(icon, str):
            return {"url": icon}
        if not icon.url:
            return None
        return {"url": icon.url, "size": icon.size, "anchor": icon.anchor}

    def _map_options(self) -> dict:
        options = self.options
        return {
            "center": {"lat": self.viewport.center.lat, "lng": self.viewport.center.lng},
            "zoom": self.viewport.zoom,
            "mapTypeId": self.viewport.map_type,
            "disableDefaultUI": options.disable_default_ui,
            "zoomControl": options.zoom_control,
            "mapTypeControl": options.map_type_control,
            "streetViewControl": options.street_view_control,
            "fullscreenControl": options.fullscreen_control,
            "gestureHandling": options.gesture_handling,
        }

    def render(self, hover_url: str | None = None) -> str:
        if not self.viewport:
            raise MapInitializationError("Google map is not initialized")
        lines = [line for _, line in self.polylines.items()]
        polylines = [
            {
                "path": [{"lat": p.lat, "lng": p.lng} for p in line.path],
                "geodesic": line.geodesic,
                "strokeColor": line.stroke_color,
                "strokeOpacity": line.stroke_opacity,
                "strokeWeight": line.stroke_weight,
                "clickable": line.clickable,
                "editable": line.editable,
            }
            for line in lines
        ]
        hover_lines = []
        if hover_url:
            hover_lines = [i for i, line in enumerate(lines) if line.on_mousemove is not None]
        markers = [
            {
                "position": {"lat": m.position.lat, "lng": m.position.lng},
                "title": m.title,
                "draggable": m.draggable,
                "icon": self._icon_dict(m.icon),
            }
            for _, m in self.markers.items()
        ]
        return PAGE_TEMPLATE.render(
            element_id=self.container.element_id,
            map_options=self._map_options(),
            polylines=polylines,
            hover_lines=hover_lines,
            relay_script=hover_relay_script(hover_url) if hover_lines else None,
            markers=markers,
            script_url=self.script_url(),
        )

    def static_map_url(self) -> str:
        """Static Maps API URL for the current view and overlays."""
        if not self.viewport:
            raise MapInitializationError("Google map is not initialized")
        width = min(self.container.width, STATIC_MAX_SIZE)
        height = min(self.container.height, STATIC_MAX_SIZE)
        params: list[tuple[str, str]] = [
            ("center", f"{self.viewport.center.lat},{self.viewport.center.lng}"),
            ("zoom", str(self.viewport.zoom)),
            ("size", f"{width}x{height}"),
            ("maptype", self.viewport.map_type),
        ]
        for _, line in self.polylines.items():
            coords = "|".join(f"{p.lat:.6f},{p.lng:.6f}" for p in line.path)
            color = _hex_to_static_color(line.stroke_color, line.stroke_opacity)
            params.append(("path", f"color:{color}|weight:{line.stroke_weight}|{coords}"))
        for _, m in self.markers.items():
            params.append(("markers", f"{m.position.lat:.6f},{m.position.lng:.6f}"))
        params.append(("key", self.api_key))
        return f"{STATIC_MAPS_URL}?{urlencode(params)}"

    def fetch_static_map(self) -> bytes:
        """Download the static map image (PNG)."""
        response = requests.get(self.static_map_url(), timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.content

