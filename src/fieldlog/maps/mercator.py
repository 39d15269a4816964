"""Web Mercator math for 256px raster tiles.

World pixel coordinates at zoom z span 0..256 * 2**z on both axes, with
(0, 0) at the north-west corner.
"""

import math

from fieldlog.models import GeoPoint, MapBounds

TILE_SIZE = 256
MAX_LATITUDE = 85.0511287798


def _clamp_lat(lat: float) -> float:
    return max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))


def world_size(zoom: float) -> float:
    return TILE_SIZE * (2 ** zoom)


def project(point: GeoPoint, zoom: float) -> tuple[float, float]:
    """Lat/lng -> world pixel (x, y) at the given zoom."""
    size = world_size(zoom)
    x = (point.lng + 180.0) / 360.0 * size
    sin_lat = math.sin(math.radians(_clamp_lat(point.lat)))
    y = (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)) * size
    return x, y


def unproject(x: float, y: float, zoom: float) -> GeoPoint:
    """World pixel (x, y) -> lat/lng at the given zoom."""
    size = world_size(zoom)
    lng = x / size * 360.0 - 180.0
    n = math.pi - 2 * math.pi * y / size
    lat = math.degrees(math.atan(math.sinh(n)))
    return GeoPoint(lat=lat, lng=lng)


def zoom_for_bounds(bounds: MapBounds, width: int, height: int, padding: int = 0, max_zoom: int = 19) -> int:
    """Largest integer zoom at which bounds fit inside width x height minus padding."""
    avail_w = max(width - 2 * padding, 1)
    avail_h = max(height - 2 * padding, 1)

    x1, y1 = project(GeoPoint(bounds.north, bounds.west), 0)
    x2, y2 = project(GeoPoint(bounds.south, bounds.east), 0)
    span_x = abs(x2 - x1)
    span_y = abs(y2 - y1)

    if span_x == 0 and span_y == 0:
        return max_zoom

    zoom_x = math.log2(avail_w / span_x) if span_x > 0 else max_zoom
    zoom_y = math.log2(avail_h / span_y) if span_y > 0 else max_zoom
    zoom = math.floor(min(zoom_x, zoom_y))
    return max(0, min(zoom, max_zoom))


def visible_bounds(center: GeoPoint, zoom: int, width: int, height: int) -> MapBounds:
    """Geographic bounds of a width x height viewport centered on center."""
    cx, cy = project(center, zoom)
    north_west = unproject(cx - width / 2, cy - height / 2, zoom)
    south_east = unproject(cx + width / 2, cy + height / 2, zoom)
    return MapBounds(
        north=north_west.lat,
        south=south_east.lat,
        east=south_east.lng,
        west=north_west.lng,
    )


def container_point_to_lat_lng(x: float, y: float, center: GeoPoint, zoom: int, width: int, height: int) -> GeoPoint:
    cx, cy = project(center, zoom)
    return unproject(cx - width / 2 + x, cy - height / 2 + y, zoom)


def lat_lng_to_container_point(point: GeoPoint, center: GeoPoint, zoom: int, width: int, height: int) -> tuple[float, float]:
    cx, cy = project(center, zoom)
    px, py = project(point, zoom)
    return px - cx + width / 2, py - cy + height / 2
