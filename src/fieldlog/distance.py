"""Great-circle distance and nearest-point helpers.

All functions take any object with ``lat`` and ``lng`` attributes in degrees
(``GeoPoint`` and ``TrackPoint`` both qualify). Nothing here raises on bad
numbers: a NaN coordinate simply propagates into the result, so display code
has to treat NaN as "unavailable".
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Protocol, Sequence

from fieldlog.models import MapBounds

# Earth's mean radius in kilometers
EARTH_RADIUS_KM = 6371.0

# Planar (degree) distance under which a pointer counts as hovering the track
HOVER_THRESHOLD = 0.01


class LatLng(Protocol):
    @property
    def lat(self) -> float: ...

    @property
    def lng(self) -> float: ...


@dataclass(frozen=True)
class NearestPoint:
    index: int
    planar_distance: float

    def within(self, threshold: float = HOVER_THRESHOLD) -> bool:
        return self.planar_distance < threshold


def _to_rad(deg: float) -> float:
    return deg * (math.pi / 180)


def haversine_distance(p1: LatLng, p2: LatLng) -> float:
    """Calculate distance between two points using the Haversine formula.

    Returns:
        Distance in kilometers
    """
    dlat = _to_rad(p2.lat - p1.lat)
    dlng = _to_rad(p2.lng - p1.lng)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(_to_rad(p1.lat)) * math.cos(_to_rad(p2.lat)) * math.sin(dlng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def cumulative_distances(points: Sequence[LatLng]) -> list[float]:
    """Return the running distance (km) through each point; the first is 0."""
    if not points:
        return []
    cum_dist = [0.0]
    for i in range(1, len(points)):
        cum_dist.append(cum_dist[-1] + haversine_distance(points[i - 1], points[i]))
    return cum_dist


def nearest_point(target: LatLng, points: Sequence[LatLng]) -> NearestPoint | None:
    """Find the point closest to target by planar distance on raw lat/lng.

    This is intentionally not geodesic: it is only used to resolve pointer
    positions, where speed matters more than accuracy. Ties keep the earliest
    index. Returns None for an empty sequence.
    """
    best_index = -1
    best_distance = math.inf
    for i, pt in enumerate(points):
        d = math.sqrt((pt.lat - target.lat) ** 2 + (pt.lng - target.lng) ** 2)
        if d < best_distance:
            best_distance = d
            best_index = i
    if best_index < 0:
        return None
    return NearestPoint(index=best_index, planar_distance=best_distance)


def track_bounds(points: Sequence[LatLng]) -> MapBounds | None:
    """Bounding box of a track, or None when there are no points."""
    if not points:
        return None
    lats = [p.lat for p in points]
    lngs = [p.lng for p in points]
    return MapBounds(north=max(lats), south=min(lats), east=max(lngs), west=min(lngs))
