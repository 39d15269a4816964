from unittest.mock import patch

from fieldlog.charts import generate_elevation_profile, generate_no_data_image
from fieldlog.models import TrackPoint
from fieldlog.profile import ElevationProfile, project

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


class TestElevationProfileChart:
    def test_png(self, fuji_points):
        img = generate_elevation_profile(project(fuji_points))
        assert img.startswith(PNG_MAGIC)

    def test_with_hover_cursor(self, fuji_points):
        profile = project(fuji_points)
        plain = generate_elevation_profile(profile)
        hovered = generate_elevation_profile(profile, hover_index=2)
        assert hovered.startswith(PNG_MAGIC)
        assert hovered != plain

    def test_empty_profile_gives_no_data_image(self):
        with patch("fieldlog.charts.generate_no_data_image", return_value=b"no-data") as no_data:
            assert generate_elevation_profile(ElevationProfile()) == b"no-data"
        no_data.assert_called_once()

    def test_flat_zero_distance_track(self):
        points = [TrackPoint(lat=1.0, lon=1.0, elevation=5.0), TrackPoint(lat=1.0, lon=1.0, elevation=5.0)]
        assert generate_elevation_profile(project(points)).startswith(PNG_MAGIC)


class TestNoDataImage:
    def test_png(self):
        assert generate_no_data_image().startswith(PNG_MAGIC)
