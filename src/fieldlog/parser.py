import logging
import re
from datetime import datetime, timedelta, timezone

import gpxpy
import gpxpy.gpx

from fieldlog.distance import haversine_distance
from fieldlog.formatters import round_half_up
from fieldlog.models import ParseResult, TrackPoint

logger = logging.getLogger(__name__)

# Demo track used when no device file is available: five points stepping
# down from the summit of Mt. Fuji, one minute apart.
SYNTHETIC_POINTS = [
    (35.6586, 138.7454, 3776),
    (35.6587, 138.7455, 3770),
    (35.6588, 138.7456, 3765),
    (35.6589, 138.7457, 3760),
    (35.6590, 138.7458, 3755),
]

_ELEVATION_RE = re.compile(r"<((?:\w+:)?ele)>([^<]*)</\1>")


def _normalize_time(t: datetime | None) -> datetime | None:
    """Make every timestamp timezone-aware UTC so deltas never mix naive/aware."""
    if t is None:
        return None
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)


def _drop_unreadable_elevations(document: str) -> str:
    """Remove <ele> values that are not numbers so only that point loses its elevation."""
    dropped = 0

    def check(match: re.Match) -> str:
        nonlocal dropped
        try:
            float(match.group(2))
        except ValueError:
            dropped += 1
            return ""
        return match.group(0)

    cleaned = _ELEVATION_RE.sub(check, document)
    if dropped:
        logger.warning("Ignoring %d unreadable elevation value(s)", dropped)
    return cleaned


def _empty_result() -> ParseResult:
    now = datetime.now(timezone.utc)
    return ParseResult(
        points=[],
        distance_km=0.0,
        duration_minutes=0,
        elevation_gain_m=0,
        start_time=now,
        end_time=now,
    )


def parse_gpx(document: str) -> ParseResult:
    """Parse a GPX document into track points plus quick summary metrics.

    Malformed documents are not an error: they produce an empty point list and
    zeroed metrics, and the caller decides what to tell the user.
    A point whose elevation or time cannot be read keeps its position with
    that field set to None.

    elevation_gain_m only counts ascent between consecutive points that both
    carry an elevation; descent is left to the statistics engine.
    """
    try:
        gpx = gpxpy.parse(_drop_unreadable_elevations(document))
    except (gpxpy.gpx.GPXException, ValueError) as e:
        logger.warning("Could not parse GPX document: %s", e)
        return _empty_result()

    points: list[TrackPoint] = []
    for track in gpx.tracks:
        for segment in track.segments:
            for pt in segment.points:
                points.append(
                    TrackPoint(
                        lat=pt.latitude,
                        lon=pt.longitude,
                        elevation=pt.elevation,
                        time=_normalize_time(pt.time),
                    )
                )

    if not points:
        logger.warning("GPX document contains no track points")
        return _empty_result()

    total_distance = 0.0
    elevation_gain = 0.0
    start_time: datetime | None = None
    end_time: datetime | None = None

    for i, pt in enumerate(points):
        if pt.time is not None:
            if start_time is None:
                start_time = pt.time
            end_time = pt.time
        if i == 0:
            continue
        prev = points[i - 1]
        total_distance += haversine_distance(prev, pt)
        if prev.elevation is not None and pt.elevation is not None:
            delta = pt.elevation - prev.elevation
            if delta > 0:
                elevation_gain += delta

    if start_time is not None and end_time is not None:
        duration = int(round_half_up((end_time - start_time).total_seconds() / 60))
    else:
        now = datetime.now(timezone.utc)
        start_time = end_time = now
        duration = 0

    return ParseResult(
        points=points,
        distance_km=round_half_up(total_distance, 1),
        duration_minutes=duration,
        elevation_gain_m=int(round_half_up(elevation_gain)),
        start_time=start_time,
        end_time=end_time,
    )


def parse_gpx_file(filepath: str) -> ParseResult:
    """Read and parse a GPX file. Raises FileNotFoundError for missing paths."""
    with open(filepath, "r", encoding="utf-8") as f:
        return parse_gpx(f.read())


def synthetic_track(now: datetime | None = None) -> str:
    """Return a small fixed GPX document for demos and tests."""
    if now is None:
        now = datetime.now(timezone.utc)
    now = now.replace(microsecond=0)

    gpx = gpxpy.gpx.GPX()
    gpx.creator = "fieldlog"
    track = gpxpy.gpx.GPXTrack(name="Sample Track")
    gpx.tracks.append(track)
    segment = gpxpy.gpx.GPXTrackSegment()
    track.segments.append(segment)

    for i, (lat, lon, ele) in enumerate(SYNTHETIC_POINTS):
        segment.points.append(
            gpxpy.gpx.GPXTrackPoint(
                latitude=lat,
                longitude=lon,
                elevation=ele,
                time=now + timedelta(minutes=i),
            )
        )

    return gpx.to_xml(version="1.1")
