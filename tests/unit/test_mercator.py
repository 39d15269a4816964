import pytest

from fieldlog.maps import mercator
from fieldlog.models import GeoPoint, MapBounds


class TestProjection:
    def test_origin_is_world_center(self):
        assert mercator.project(GeoPoint(0.0, 0.0), 0) == pytest.approx((128.0, 128.0))

    def test_doubles_per_zoom(self):
        x0, y0 = mercator.project(GeoPoint(35.0, 139.0), 3)
        x1, y1 = mercator.project(GeoPoint(35.0, 139.0), 4)
        assert x1 == pytest.approx(2 * x0)
        assert y1 == pytest.approx(2 * y0)

    def test_unproject_inverts_project(self):
        point = GeoPoint(35.6586, 138.7454)
        x, y = mercator.project(point, 12)
        back = mercator.unproject(x, y, 12)
        assert back.lat == pytest.approx(point.lat)
        assert back.lng == pytest.approx(point.lng)


class TestZoomForBounds:
    def test_single_point_uses_max_zoom(self):
        bounds = MapBounds(north=35.0, south=35.0, east=139.0, west=139.0)
        assert mercator.zoom_for_bounds(bounds, 800, 600, 50, max_zoom=17) == 17

    def test_whole_world_is_zoom_zero(self):
        bounds = MapBounds(north=80.0, south=-80.0, east=179.0, west=-179.0)
        assert mercator.zoom_for_bounds(bounds, 256, 256) == 0

    def test_fits_inside_container(self):
        bounds = MapBounds(north=35.70, south=35.60, east=139.80, west=139.60)
        zoom = mercator.zoom_for_bounds(bounds, 800, 600, 50)
        x1, y1 = mercator.project(GeoPoint(bounds.north, bounds.west), zoom)
        x2, y2 = mercator.project(GeoPoint(bounds.south, bounds.east), zoom)
        assert abs(x2 - x1) <= 700
        assert abs(y2 - y1) <= 500
        # one more level would not fit
        x1, y1 = mercator.project(GeoPoint(bounds.north, bounds.west), zoom + 1)
        x2, y2 = mercator.project(GeoPoint(bounds.south, bounds.east), zoom + 1)
        assert abs(x2 - x1) > 700 or abs(y2 - y1) > 500


class TestViewport:
    def test_visible_bounds_surround_center(self):
        center = GeoPoint(35.68, 139.76)
        bounds = mercator.visible_bounds(center, 10, 800, 600)
        assert bounds.south < center.lat < bounds.north
        assert bounds.west < center.lng < bounds.east

    def test_container_center_is_map_center(self):
        center = GeoPoint(35.68, 139.76)
        point = mercator.container_point_to_lat_lng(400, 300, center, 10, 800, 600)
        assert point.lat == pytest.approx(center.lat)
        assert point.lng == pytest.approx(center.lng)

    def test_container_point_round_trip(self):
        center = GeoPoint(35.68, 139.76)
        x, y = mercator.lat_lng_to_container_point(GeoPoint(35.7, 139.7), center, 10, 800, 600)
        back = mercator.container_point_to_lat_lng(x, y, center, 10, 800, 600)
        assert back.lat == pytest.approx(35.7)
        assert back.lng == pytest.approx(139.7)
