from fieldlog.analyzer import compute_statistics
from fieldlog.distance import cumulative_distances
from fieldlog.hover import HoveredPoint
from fieldlog.models import GeoPoint, TrackPoint
from fieldlog.parser import parse_gpx
from fieldlog.profile import ElevationProfile, format_distance_label, project


class TestProject:
    def test_one_sample_per_point(self, fuji_points):
        profile = project(fuji_points)
        assert len(profile.distances_km) == 5
        assert len(profile.elevations) == 5
        assert len(profile.labels) == 5
        assert profile.distances_km == cumulative_distances(fuji_points)
        assert profile.elevations == [3776, 3770, 3765, 3760, 3755]

    def test_labels_two_decimals_km(self, fuji_points):
        profile = project(fuji_points)
        assert profile.labels[0] == "0.00km"
        assert all(label.endswith("km") for label in profile.labels)

    def test_empty_and_single_point(self, fuji_points):
        assert project([]).is_empty
        assert project(fuji_points[:1]).is_empty

    def test_missing_elevation_plotted_as_zero(self):
        points = [TrackPoint(lat=0.0, lon=0.0), TrackPoint(lat=0.001, lon=0.0, elevation=5.0)]
        assert project(points).elevations == [0.0, 5.0]

    def test_format_distance_label(self):
        assert format_distance_label(0.5) == "0.50km"
        assert format_distance_label(12.3) == "12.30km"


class TestChartHover:
    def test_integral_index_has_no_drift(self, fuji_points):
        profile = project(fuji_points)
        for i, pt in enumerate(fuji_points):
            hovered = profile.point_at(i)
            assert hovered.lat == pt.lat
            assert hovered.lng == pt.lon
            assert hovered.cumulative_distance_km == profile.distances_km[i]
            assert hovered.index == i

    def test_fractional_index_rounds_to_nearest(self, fuji_points):
        profile = project(fuji_points)
        assert profile.resolve_index(1.49) == 1
        assert profile.resolve_index(1.5) == 2
        assert profile.resolve_index(2.2) == 2

    def test_out_of_range_clamped(self, fuji_points):
        profile = project(fuji_points)
        assert profile.resolve_index(-3) == 0
        assert profile.resolve_index(99) == 4

    def test_empty_profile_resolves_nothing(self):
        profile = ElevationProfile()
        assert profile.point_at(0) is None
        assert profile.point_at_distance(0.0) is None

    def test_nan_position(self, fuji_points):
        assert project(fuji_points).point_at(float("nan")) is None

    def test_index_at_distance(self, fuji_points):
        profile = project(fuji_points)
        d = profile.distances_km
        assert profile.index_at_distance(0.0) == 0
        assert profile.index_at_distance(d[2] + 0.0001) == 2
        assert profile.index_at_distance(d[-1] + 10) == 4
        midpoint = (d[1] + d[2]) / 2
        assert profile.index_at_distance(midpoint) in (1, 2)


class TestMapHover:
    def test_pointer_on_track_resolves_index(self, fuji_points):
        profile = project(fuji_points)
        target = GeoPoint(lat=fuji_points[3].lat + 0.00001, lng=fuji_points[3].lon)
        assert profile.index_near(target) == 3
        hovered = profile.hover_from_map(target)
        assert isinstance(hovered, HoveredPoint)
        assert hovered.lat == fuji_points[3].lat

    def test_pointer_off_track(self, fuji_points):
        profile = project(fuji_points)
        far = GeoPoint(lat=35.0, lng=139.0)
        assert profile.index_near(far) is None
        assert profile.hover_from_map(far) is None

    def test_custom_threshold(self, fuji_points):
        profile = project(fuji_points)
        target = GeoPoint(lat=fuji_points[0].lat - 0.005, lng=fuji_points[0].lon)
        assert profile.index_near(target) == 0
        assert profile.index_near(target, threshold=0.001) is None


class TestEndToEnd:
    def test_demo_track_scenario(self, synthetic_document):
        result = parse_gpx(synthetic_document)
        stats = compute_statistics(result.points)
        assert stats.total_distance_km > 0
        assert stats.total_ascent_m == 0

        profile = project(result.points)
        assert len(profile.labels) == 5

        midpoint = (len(profile.distances_km) - 1) / 2
        hovered = profile.point_at(midpoint)
        assert hovered.index == 2
        assert (hovered.lat, hovered.lng) == (result.points[2].lat, result.points[2].lon)

    def test_to_dict(self, fuji_points):
        data = project(fuji_points).to_dict()
        assert set(data) == {"distances_km", "elevations", "labels", "points"}
        assert data["points"][0] == {"lat": fuji_points[0].lat, "lng": fuji_points[0].lon}
