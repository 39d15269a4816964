"""Drawing a track on any map provider.

A track is drawn as stacked polylines, widest and faintest first, so the
route appears to glow. Only the thin top line listens for the pointer.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Sequence

from fieldlog.distance import track_bounds
from fieldlog.hover import HoverChannel, HoveredPoint
from fieldlog.maps.types import MapEvent, MapProvider, MarkerIcon, MarkerOptions, PolylineOptions
from fieldlog.models import GeoPoint, Photo, TrackPoint
from fieldlog.profile import ElevationProfile

logger = logging.getLogger(__name__)

TRACK_COLOR = "#8DB600"
FIT_PADDING = 50  # pixels

# (weight, opacity), drawn in this order
GLOW_LAYERS = [
    (12, 0.3),  # outer glow
    (8, 0.4),  # middle glow
    (5, 0.6),  # inner glow
    (2, 1.0),  # main track
]


def _circle_icon(fill: str, size: int, stroke_width: int) -> MarkerIcon:
    r = size // 2 - stroke_width
    svg = (
        f'<svg width="{size}" height="{size}" xmlns="http://www.w3.org/2000/svg">'
        f'<circle cx="{size // 2}" cy="{size // 2}" r="{r}" fill="{fill}" '
        f'stroke="white" stroke-width="{stroke_width}"/></svg>'
    )
    url = "data:image/svg+xml;base64," + base64.b64encode(svg.encode()).decode()
    return MarkerIcon(url=url, size=(size, size), anchor=(size // 2, size // 2))


START_ICON = _circle_icon("#22C55E", 24, 3)
END_ICON = _circle_icon("#EF4444", 24, 3)
HOVER_ICON = _circle_icon("#4285F4", 16, 2)


@dataclass
class RenderedTrack:
    line_ids: list[str] = field(default_factory=list)
    start_marker_id: str | None = None
    end_marker_id: str | None = None

    @property
    def interactive_line_id(self) -> str | None:
        return self.line_ids[-1] if self.line_ids else None

    def remove(self, provider: MapProvider) -> None:
        for line_id in self.line_ids:
            provider.remove_polyline(line_id)
        for marker_id in (self.start_marker_id, self.end_marker_id):
            if marker_id:
                provider.remove_marker(marker_id)
        self.line_ids = []
        self.start_marker_id = self.end_marker_id = None


def render_track(
    provider: MapProvider,
    points: Sequence[TrackPoint],
    profile: ElevationProfile | None = None,
    hover: HoverChannel | None = None,
    fit: bool = True,
) -> RenderedTrack:
    """Draw a track with glow, start/end markers, and hover publishing.

    With a profile and a hover channel, pointer movement over the main line
    publishes the nearest track sample and leaving the line clears it.
    """
    rendered = RenderedTrack()
    if not points:
        return rendered

    path = [GeoPoint(lat=p.lat, lng=p.lng) for p in points]
    on_mousemove = on_mouseout = None
    if profile is not None and hover is not None:
        on_mousemove = _publish_map_hover(profile, hover)

        def on_mouseout(event: MapEvent) -> None:
            hover.clear()

    last = len(GLOW_LAYERS) - 1
    for i, (weight, opacity) in enumerate(GLOW_LAYERS):
        interactive = i == last
        line_id = provider.add_polyline(
            PolylineOptions(
                path=path,
                stroke_color=TRACK_COLOR,
                stroke_opacity=opacity,
                stroke_weight=weight,
                clickable=interactive,
                on_mousemove=on_mousemove if interactive else None,
                on_mouseout=on_mouseout if interactive else None,
            )
        )
        rendered.line_ids.append(line_id)

    rendered.start_marker_id = provider.add_marker(
        MarkerOptions(position=path[0], title="Start", icon=START_ICON)
    )
    rendered.end_marker_id = provider.add_marker(
        MarkerOptions(position=path[-1], title="Goal", icon=END_ICON)
    )

    if fit:
        bounds = track_bounds(path)
        provider.fit_bounds(bounds, FIT_PADDING)

    return rendered


def _publish_map_hover(profile: ElevationProfile, hover: HoverChannel):
    def on_mousemove(event: MapEvent) -> None:
        if event.lat_lng is None:
            return
        point = profile.hover_from_map(event.lat_lng)
        if point is not None:
            hover.publish(point)

    return on_mousemove


class TrackHoverMarker:
    """Keeps one marker on the map in step with a HoverChannel."""

    def __init__(self, provider: MapProvider, hover: HoverChannel):
        self.provider = provider
        self.marker_id: str | None = None
        self._unsubscribe = hover.subscribe(self.update)
        if hover.current is not None:
            self.update(hover.current)

    def update(self, point: HoveredPoint | None) -> None:
        if point is None:
            if self.marker_id:
                self.provider.remove_marker(self.marker_id)
                self.marker_id = None
            return
        position = GeoPoint(lat=point.lat, lng=point.lng)
        if self.marker_id and self.provider.is_initialized:
            self.provider.update_marker(self.marker_id, position=position)
        else:
            self.marker_id = self.provider.add_marker(MarkerOptions(position=position, icon=HOVER_ICON)) or None

    def detach(self) -> None:
        self._unsubscribe()
        if self.marker_id:
            self.provider.remove_marker(self.marker_id)
            self.marker_id = None


def add_photo_markers(provider: MapProvider, photos: Sequence[Photo], on_click=None) -> list[str]:
    """Add a marker for every geotagged photo; returns the marker ids."""
    marker_ids = []
    for photo in photos:
        if photo.lat is None or photo.lng is None:
            continue

        def clicked(photo_id: str = photo.id) -> None:
            logger.debug("Photo clicked: %s", photo_id)
            if on_click is not None:
                on_click(photo_id)

        marker_id = provider.add_marker(
            MarkerOptions(
                position=GeoPoint(lat=photo.lat, lng=photo.lng),
                title=photo.caption or "Photo",
                on_click=clicked,
            )
        )
        if marker_id:
            marker_ids.append(marker_id)
    return marker_ids
