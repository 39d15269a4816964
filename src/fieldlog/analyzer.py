import math
from typing import Sequence

from fieldlog.distance import haversine_distance
from fieldlog.formatters import round_half_up
from fieldlog.models import TrackPoint, TrackStatistics


def _accumulate(
    points: Sequence[TrackPoint],
) -> tuple[float, float, float, float, float, float, int]:
    """Run one pass over consecutive point pairs.

    Returns (total_distance_km, ascent, descent, max_elevation, min_elevation,
             moving_seconds, elevation_pairs).

    Distance accumulates for every pair. Elevation only for pairs where both
    ends carry an elevation, time only for pairs where both carry a timestamp.
    """
    total_distance = 0.0
    ascent = 0.0
    descent = 0.0
    max_elevation = float("-inf")
    min_elevation = float("inf")
    moving_seconds = 0.0
    elevation_pairs = 0

    for i in range(1, len(points)):
        prev = points[i - 1]
        curr = points[i]

        total_distance += haversine_distance(prev, curr)

        if prev.elevation is not None and curr.elevation is not None:
            delta = curr.elevation - prev.elevation
            if delta > 0:
                ascent += delta
            else:
                descent += abs(delta)
            max_elevation = max(max_elevation, prev.elevation, curr.elevation)
            min_elevation = min(min_elevation, prev.elevation, curr.elevation)
            elevation_pairs += 1

        if prev.time is not None and curr.time is not None:
            moving_seconds += (curr.time - prev.time).total_seconds()

    return total_distance, ascent, descent, max_elevation, min_elevation, moving_seconds, elevation_pairs


def _whole(value: float) -> int:
    # NaN passes through so display code can show it as unavailable
    rounded = round_half_up(value)
    return rounded if math.isnan(rounded) else int(rounded)


def compute_statistics(points: Sequence[TrackPoint]) -> TrackStatistics | None:
    """Compute aggregate metrics for a track.

    Returns None when the data cannot support the numbers: fewer than two
    points, or no consecutive pair with elevation on both ends. Callers must
    show "unavailable" in that case rather than zero ascent/descent.
    """
    if len(points) < 2:
        return None

    totals = _accumulate(points)
    total_distance, ascent, descent, max_elevation, min_elevation, moving_seconds, elevation_pairs = totals

    if elevation_pairs == 0:
        return None

    if total_distance > 0:
        average_gradient = ((ascent - descent) / (total_distance * 1000)) * 100
    else:
        average_gradient = 0.0

    return TrackStatistics(
        total_distance_km=round_half_up(total_distance, 2),
        total_ascent_m=_whole(ascent),
        total_descent_m=_whole(descent),
        average_gradient_percent=round_half_up(average_gradient, 1),
        max_elevation_m=_whole(max_elevation),
        min_elevation_m=_whole(min_elevation),
        moving_time_minutes=_whole(moving_seconds / 60),
    )
