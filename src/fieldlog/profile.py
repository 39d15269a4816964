"""Elevation profile series and hover resolution for a track."""

import math
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Sequence

from fieldlog.distance import HOVER_THRESHOLD, LatLng, cumulative_distances, nearest_point
from fieldlog.hover import HoveredPoint
from fieldlog.models import TrackPoint

# Decimal places for axis labels and tooltips
LABEL_DECIMALS = 2


def format_distance_label(km: float) -> str:
    return f"{km:.{LABEL_DECIMALS}f}km"


@dataclass
class ElevationProfile:
    """Distance-indexed elevation series, one sample per track point."""

    distances_km: list[float] = field(default_factory=list)
    elevations: list[float] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    points: list[TrackPoint] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.distances_km

    @property
    def total_distance_km(self) -> float:
        return self.distances_km[-1] if self.distances_km else 0.0

    def resolve_index(self, position: float) -> int | None:
        """Round a fractional chart index to the nearest valid point index."""
        if self.is_empty or math.isnan(position):
            return None
        index = int(math.floor(position + 0.5))
        return max(0, min(index, len(self.distances_km) - 1))

    def index_at_distance(self, km: float) -> int | None:
        """Nearest sample to a chart-space x coordinate (km along the track)."""
        if self.is_empty or math.isnan(km):
            return None
        i = bisect_left(self.distances_km, km)
        if i == 0:
            return 0
        if i >= len(self.distances_km):
            return len(self.distances_km) - 1
        before = self.distances_km[i - 1]
        after = self.distances_km[i]
        return i - 1 if km - before <= after - km else i

    def hovered_point(self, index: int) -> HoveredPoint:
        pt = self.points[index]
        return HoveredPoint(
            lat=pt.lat,
            lng=pt.lng,
            cumulative_distance_km=self.distances_km[index],
            index=index,
        )

    def point_at(self, position: float) -> HoveredPoint | None:
        """Chart hover: fractional index -> the track point under the cursor."""
        index = self.resolve_index(position)
        if index is None:
            return None
        return self.hovered_point(index)

    def point_at_distance(self, km: float) -> HoveredPoint | None:
        index = self.index_at_distance(km)
        if index is None:
            return None
        return self.hovered_point(index)

    def index_near(self, target: LatLng, threshold: float = HOVER_THRESHOLD) -> int | None:
        """Map hover: resolve a pointer location to a chart index.

        Returns None when the pointer is not close enough to the track.
        """
        nearest = nearest_point(target, self.points)
        if nearest is None or not nearest.within(threshold):
            return None
        return nearest.index

    def hover_from_map(self, target: LatLng, threshold: float = HOVER_THRESHOLD) -> HoveredPoint | None:
        index = self.index_near(target, threshold)
        if index is None:
            return None
        return self.hovered_point(index)

    def to_dict(self) -> dict:
        return {
            "distances_km": self.distances_km,
            "elevations": self.elevations,
            "labels": self.labels,
            "points": [{"lat": p.lat, "lng": p.lng} for p in self.points],
        }


def project(points: Sequence[TrackPoint]) -> ElevationProfile:
    """Build the elevation series for a track.

    Tracks with fewer than two points give an empty profile; the caller shows
    a "no data" state instead of drawing an empty chart. Missing elevations
    are plotted as 0.
    """
    if len(points) < 2:
        return ElevationProfile()

    distances = cumulative_distances(points)
    return ElevationProfile(
        distances_km=distances,
        elevations=[p.elevation if p.elevation is not None else 0.0 for p in points],
        labels=[format_distance_label(d) for d in distances],
        points=list(points),
    )
