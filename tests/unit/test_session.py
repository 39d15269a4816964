import asyncio
from unittest.mock import MagicMock, patch

import pytest
import requests

from fieldlog.config import COMMERCIAL_PROVIDER, TILE_PROVIDER, MapConfig
from fieldlog.hover import HoverChannel
from fieldlog.maps.google import GoogleMapsProvider
from fieldlog.maps.leaflet import TileProvider
from fieldlog.maps.session import FAILED, IDLE, LOAD_FAILED_MESSAGE, READY, MapSession
from fieldlog.maps.types import MapContainer, MapError
from fieldlog.models import Photo


def _ok_response():
    response = MagicMock()
    response.raise_for_status.return_value = None
    return response


class TestMount:
    def test_tile_mount(self, container, tile_config, fuji_points):
        session = MapSession(container, tile_config, points=fuji_points)
        provider = asyncio.run(session.mount())
        assert isinstance(provider, TileProvider)
        assert session.state == READY
        assert session.provider_name == TILE_PROVIDER
        assert len(session.track.line_ids) == 4
        assert "Start" in session.render()
        session.unmount()
        assert session.state == IDLE
        assert not provider.is_initialized

    def test_render_with_hover_url(self, container, tile_config, fuji_points):
        session = MapSession(container, tile_config, points=fuji_points)
        asyncio.run(session.mount())
        html = session.render(hover_url="/api/hover?track=t1")
        assert html.count("fieldlogRelayHover(e.latlng)") == 1
        assert "fieldlogRelayHover" not in session.render()
        session.unmount()

    def test_mount_with_provider_keeps_saved_preference(self, container, tile_config, fuji_points, settings_store):
        settings_store.set_preferred_provider(COMMERCIAL_PROVIDER)
        session = MapSession(container, tile_config, points=fuji_points, settings=settings_store)
        asyncio.run(session.mount(TILE_PROVIDER))
        assert session.provider_name == TILE_PROVIDER
        assert settings_store.get_preferred_provider() == COMMERCIAL_PROVIDER
        session.unmount()

    def test_commercial_mount(self, container, google_config, fuji_points):
        session = MapSession(container, google_config, points=fuji_points)
        with patch("fieldlog.maps.google.requests.get", return_value=_ok_response()):
            provider = asyncio.run(session.mount())
        assert isinstance(provider, GoogleMapsProvider)
        assert session.provider_name == COMMERCIAL_PROVIDER
        session.unmount()

    def test_commercial_failure_falls_back_to_tile(self, container, google_config, fuji_points):
        session = MapSession(container, google_config, points=fuji_points)
        with patch("fieldlog.maps.google.requests.get", side_effect=requests.ConnectionError("down")):
            provider = asyncio.run(session.mount())
        assert isinstance(provider, TileProvider)
        assert session.state == READY
        session.unmount()

    def test_everything_fails(self, tile_config, fuji_points):
        session = MapSession(MapContainer(), MapConfig(init_timeout=0.05), points=fuji_points)
        assert asyncio.run(session.mount()) is None
        assert session.state == FAILED
        assert session.error == LOAD_FAILED_MESSAGE
        with pytest.raises(MapError):
            session.render()

    def test_retry_after_container_gets_size(self, tile_config, fuji_points):
        container = MapContainer()
        session = MapSession(container, MapConfig(init_timeout=0.05), points=fuji_points)
        asyncio.run(session.mount())
        assert session.state == FAILED
        container.resize(800, 600)
        assert isinstance(asyncio.run(session.retry()), TileProvider)
        assert session.state == READY
        assert session.error is None
        session.unmount()

    def test_failed_provider_is_destroyed(self, container, google_config):
        destroyed = []
        original = GoogleMapsProvider.destroy

        def spy(self):
            destroyed.append(self)
            original(self)

        with patch.object(GoogleMapsProvider, "destroy", spy), \
                patch("fieldlog.maps.google.requests.get", side_effect=requests.ConnectionError("down")):
            asyncio.run(MapSession(container, google_config).mount())
        assert len(destroyed) == 1

    def test_photos(self, container, tile_config, fuji_points):
        photos = [Photo(id="p1", url="p1.jpg", lat=35.66, lng=138.75)]
        session = MapSession(container, tile_config, points=fuji_points, photos=photos)
        asyncio.run(session.mount())
        assert len(session.photo_marker_ids) == 1
        session.unmount()

    def test_async_context_manager(self, container, tile_config, fuji_points):
        async def scenario():
            async with MapSession(container, tile_config, points=fuji_points) as session:
                assert session.state == READY
                provider = session.provider
            return session, provider

        session, provider = asyncio.run(scenario())
        assert session.provider is None
        assert not provider.is_initialized


class TestSwitchProvider:
    def test_teardown_before_rebuild(self, container, google_config, fuji_points, settings_store):
        session = MapSession(container, google_config, points=fuji_points, settings=settings_store)
        with patch("fieldlog.maps.google.requests.get", return_value=_ok_response()):
            first = asyncio.run(session.mount("tile"))
            second = asyncio.run(session.switch_provider("commercial-api"))
        assert not first.is_initialized
        assert isinstance(second, GoogleMapsProvider)
        assert settings_store.get_preferred_provider() == COMMERCIAL_PROVIDER
        session.unmount()

    def test_preference_used_on_mount(self, container, google_config, settings_store):
        settings_store.set_preferred_provider("tile")
        session = MapSession(container, google_config, settings=settings_store)
        assert isinstance(asyncio.run(session.mount()), TileProvider)
        session.unmount()


class TestHoverSync:
    def test_hover_marker_tracks_channel(self, container, tile_config, fuji_points):
        hover = HoverChannel()
        session = MapSession(container, tile_config, points=fuji_points, hover=hover)
        asyncio.run(session.mount())
        hover.publish(session.profile.point_at(2))
        marker = session.provider.markers.get(session.hover_marker.marker_id)
        assert marker.position == fuji_points[2].to_geo()
        session.unmount()
        # listener is gone after unmount
        hover.publish(session.profile.point_at(3))
        assert session.hover_marker is None

    def test_set_map_type(self, container, tile_config, fuji_points):
        session = MapSession(container, tile_config, points=fuji_points)
        asyncio.run(session.mount())
        session.set_map_type("satellite")
        assert session.provider.viewport.map_type == "satellite"
        session.unmount()
