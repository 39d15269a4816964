"""Lifecycle of the map shown for one track.

A MapSession owns at most one live provider. The provider is acquired on
mount and released on unmount, on a provider switch, and when initialization
fails, so two providers never share a container.
"""

import logging
from typing import Sequence

from fieldlog.config import TILE_PROVIDER, MapConfig
from fieldlog.hover import HoverChannel
from fieldlog.maps.factory import create_provider, create_tile_provider, select_provider
from fieldlog.maps.track import RenderedTrack, TrackHoverMarker, add_photo_markers, render_track
from fieldlog.maps.types import MapContainer, MapError, MapOptions, MapProvider, MapType
from fieldlog.models import GeoPoint, Photo, TrackPoint
from fieldlog.profile import ElevationProfile, project
from fieldlog.store import SettingsStore

logger = logging.getLogger(__name__)

DEFAULT_CENTER = GeoPoint(lat=35.6762, lng=139.6503)  # Tokyo
DEFAULT_ZOOM = 10
LOAD_FAILED_MESSAGE = "map failed to load"

IDLE = "idle"
LOADING = "loading"
READY = "ready"
FAILED = "failed"


class MapSession:
    def __init__(
        self,
        container: MapContainer,
        config: MapConfig,
        points: Sequence[TrackPoint] = (),
        photos: Sequence[Photo] = (),
        hover: HoverChannel | None = None,
        settings: SettingsStore | None = None,
        map_type: MapType = "terrain",
    ):
        self.container = container
        self.config = config
        self.points = list(points)
        self.photos = list(photos)
        self.hover = hover if hover is not None else HoverChannel()
        self.settings = settings
        self.map_type = map_type
        self.profile: ElevationProfile = project(self.points)

        self.provider: MapProvider | None = None
        self.requested: str | None = None
        self.state = IDLE
        self.error: str | None = None
        self.track: RenderedTrack | None = None
        self.hover_marker: TrackHoverMarker | None = None
        self.photo_marker_ids: list[str] = []

    @property
    def provider_name(self) -> str | None:
        return self.provider.name if self.provider else None

    def _initial_requested(self) -> str:
        if self.settings is not None:
            preferred = self.settings.get_preferred_provider()
            if preferred:
                return preferred
        return self.config.provider

    def _map_options(self, provider_name: str) -> MapOptions:
        center = self.points[0].to_geo() if self.points else DEFAULT_CENTER
        return MapOptions(
            center=center,
            zoom=DEFAULT_ZOOM,
            map_type=self.map_type,
            zoom_control=True,
            street_view_control=provider_name != TILE_PROVIDER,
            fullscreen_control=True,
        )

    async def _initialize(self, provider: MapProvider) -> MapProvider:
        try:
            await provider.initialize(self.container, self._map_options(provider.name))
        except BaseException:
            provider.destroy()
            raise
        return provider

    async def mount(self, provider_name: str | None = None) -> MapProvider | None:
        """Create, initialize and populate a provider.

        Falls back to the tile renderer if the requested provider fails to
        initialize. If that fails too the session ends up FAILED with an error
        message and retry() can be called.
        """
        if self.provider is not None:
            self.unmount()

        self.requested = provider_name or self.requested or self._initial_requested()
        self.state = LOADING
        self.error = None

        try:
            provider = await self._initialize(create_provider(self.requested, self.config))
        except MapError as e:
            logger.warning("Map initialization failed: %s", e)
            provider = None
        except Exception:
            logger.exception("Map initialization failed")
            provider = None

        if provider is None and select_provider(self.requested, self.config) != TILE_PROVIDER:
            logger.warning("Falling back to tile map")
            try:
                provider = await self._initialize(create_tile_provider(self.config))
            except Exception:
                logger.exception("Tile map fallback failed")
                provider = None

        if provider is None:
            self.state = FAILED
            self.error = LOAD_FAILED_MESSAGE
            return None

        self.provider = provider
        self._populate()
        self.state = READY
        return provider

    def _populate(self) -> None:
        if self.points:
            self.track = render_track(self.provider, self.points, self.profile, self.hover)
        self.hover_marker = TrackHoverMarker(self.provider, self.hover)
        if self.photos:
            self.photo_marker_ids = add_photo_markers(self.provider, self.photos)

    def unmount(self) -> None:
        """Release the provider and everything attached to it. Safe to repeat."""
        if self.hover_marker is not None:
            self.hover_marker.detach()
            self.hover_marker = None
        if self.provider is not None:
            self.provider.destroy()
            self.provider = None
        self.track = None
        self.photo_marker_ids = []
        if self.state != FAILED:
            self.state = IDLE

    async def switch_provider(self, provider_name: str) -> MapProvider | None:
        """Tear down the current provider, then build the new one."""
        if self.settings is not None:
            self.settings.set_preferred_provider(provider_name)
        self.unmount()
        return await self.mount(provider_name)

    async def retry(self) -> MapProvider | None:
        self.unmount()
        return await self.mount(self.requested)

    def set_map_type(self, map_type: MapType) -> None:
        self.map_type = map_type
        if self.provider is not None:
            self.provider.set_map_type(map_type)

    def render(self, hover_url: str | None = None) -> str:
        """Render the mounted map. hover_url receives pointer moves from the page."""
        if self.provider is None:
            raise MapError(self.error or "map is not mounted")
        return self.provider.render(hover_url)

    async def __aenter__(self) -> "MapSession":
        await self.mount()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.unmount()
