import os
from datetime import datetime, timedelta, timezone

import pytest

from fieldlog.config import MapConfig
from fieldlog.maps.types import MapContainer
from fieldlog.models import TrackPoint
from fieldlog.parser import SYNTHETIC_POINTS, synthetic_track
from fieldlog.store import ActivityStore, SettingsStore

SAMPLE_GPX_PATH = os.path.join(
    os.path.dirname(__file__), "functional", "data", "sample_hike.gpx"
)

FIXED_NOW = datetime(2024, 6, 15, 8, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fuji_points():
    """The five demo points stepping down from the summit, one minute apart."""
    return [
        TrackPoint(lat=lat, lon=lon, elevation=ele, time=FIXED_NOW + timedelta(minutes=i))
        for i, (lat, lon, ele) in enumerate(SYNTHETIC_POINTS)
    ]


@pytest.fixture
def synthetic_document():
    return synthetic_track(now=FIXED_NOW)


@pytest.fixture
def uphill_track_points():
    """Track points going uphill, ~100m apart."""
    return [
        TrackPoint(lat=37.7749, lon=-122.4194, elevation=10.0, time=FIXED_NOW),
        TrackPoint(
            lat=37.7758,
            lon=-122.4183,
            elevation=20.0,
            time=FIXED_NOW + timedelta(seconds=30),
        ),
        TrackPoint(
            lat=37.7767,
            lon=-122.4172,
            elevation=35.0,
            time=FIXED_NOW + timedelta(seconds=60),
        ),
    ]


@pytest.fixture
def no_elevation_points():
    return [
        TrackPoint(lat=37.7749, lon=-122.4194, time=FIXED_NOW),
        TrackPoint(lat=37.7758, lon=-122.4183, time=FIXED_NOW + timedelta(seconds=30)),
        TrackPoint(lat=37.7767, lon=-122.4172, time=FIXED_NOW + timedelta(seconds=60)),
    ]


@pytest.fixture
def tile_config():
    return MapConfig()


@pytest.fixture
def google_config():
    return MapConfig(provider="commercial-api", google_maps_api_key="test-key", init_timeout=0.3)


@pytest.fixture
def container():
    return MapContainer(element_id="map", width=800, height=600)


@pytest.fixture
def activity_store(tmp_path):
    return ActivityStore(tmp_path / "activities.json")


@pytest.fixture
def settings_store(tmp_path):
    return SettingsStore(tmp_path / "settings.json")


@pytest.fixture
def no_config(tmp_path, monkeypatch):
    """Ensure no config files exist and no provider env vars leak in."""
    from fieldlog import config
    monkeypatch.setattr(config, "LOCAL_CONFIG_PATH", tmp_path / "nonexistent" / "fieldlog.json")
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "nonexistent" / "global.json")
    monkeypatch.delenv("FIELDLOG_MAP_PROVIDER", raising=False)
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
