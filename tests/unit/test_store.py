import json
from datetime import datetime, timedelta, timezone

import pytest

from fieldlog.config import COMMERCIAL_PROVIDER, TILE_PROVIDER
from fieldlog.models import Activity, ActivityFilter, Photo, TrackPoint
from fieldlog.store import activity_from_dict, activity_to_dict, matches_filter

MAY_4 = datetime(2024, 5, 4, 9, 0, tzinfo=timezone.utc)


def _activity(**overrides) -> Activity:
    values = dict(
        title="Takao Loop",
        date=MAY_4,
        duration=27,
        distance=2.1,
        elevation_gain=126,
        weather="sunny",
        participants=["Aki", "Ren"],
        field_note="Cedar trail was muddy",
    )
    values.update(overrides)
    return Activity(**values)


class TestSerialization:
    def test_round_trip(self, fuji_points):
        activity = _activity(
            points=fuji_points,
            photos=[Photo(id="p1", url="https://example.com/p1.jpg", lat=35.6, lng=139.2)],
        )
        restored = activity_from_dict(activity_to_dict(activity))
        assert restored == activity

    def test_dict_is_json_safe(self, fuji_points):
        data = activity_to_dict(_activity(points=fuji_points))
        json.dumps(data)
        assert data["date"] == MAY_4.isoformat()
        assert data["points"][0]["time"] is not None

    def test_unknown_keys_ignored(self):
        data = activity_to_dict(_activity())
        data["legacy_field"] = 1
        assert activity_from_dict(data).title == "Takao Loop"


class TestActivityStore:
    def test_empty(self, activity_store):
        assert activity_store.list() == []

    def test_create_and_get(self, activity_store):
        activity_id = activity_store.create(_activity())
        stored = activity_store.get(activity_id)
        assert stored.id == activity_id
        assert stored.title == "Takao Loop"
        assert stored.created_at is not None
        assert stored.created_at == stored.updated_at

    def test_list_newest_first(self, activity_store):
        older = activity_store.create(_activity(title="Older", date=MAY_4 - timedelta(days=3)))
        newer = activity_store.create(_activity(title="Newer"))
        assert [a.id for a in activity_store.list()] == [newer, older]

    def test_update_is_partial(self, activity_store):
        activity_id = activity_store.create(_activity())
        updated = activity_store.update(activity_id, title="Takao Summit", weather="rain")
        assert updated.title == "Takao Summit"
        assert updated.weather == "rain"
        assert updated.participants == ["Aki", "Ren"]
        assert updated.updated_at >= updated.created_at
        assert activity_store.get(activity_id).title == "Takao Summit"

    def test_update_cannot_change_id(self, activity_store):
        activity_id = activity_store.create(_activity())
        assert activity_store.update(activity_id, id="other").id == activity_id

    def test_delete(self, activity_store):
        activity_id = activity_store.create(_activity())
        activity_store.delete(activity_id)
        assert activity_store.list() == []

    def test_unknown_id_raises_key_error(self, activity_store):
        with pytest.raises(KeyError):
            activity_store.get("nope")
        with pytest.raises(KeyError):
            activity_store.update("nope", title="x")
        with pytest.raises(KeyError):
            activity_store.delete("nope")

    def test_corrupt_file_treated_as_empty(self, activity_store):
        activity_store.path.write_text("{broken")
        assert activity_store.list() == []

    def test_list_with_filter(self, activity_store):
        activity_store.create(_activity(title="Rainy ridge", weather="rain"))
        activity_store.create(_activity(title="Sunny valley"))
        result = activity_store.list(ActivityFilter(weather=["rain"]))
        assert [a.title for a in result] == ["Rainy ridge"]


class TestMatchesFilter:
    def test_empty_filter_matches(self):
        assert matches_filter(_activity(), ActivityFilter())

    def test_search_text_covers_note_and_participants(self):
        activity = _activity()
        assert matches_filter(activity, ActivityFilter(search_text="MUDDY"))
        assert matches_filter(activity, ActivityFilter(search_text="ren"))
        assert not matches_filter(activity, ActivityFilter(search_text="snow"))

    def test_date_range(self):
        activity = _activity()
        assert matches_filter(activity, ActivityFilter(date_from=MAY_4 - timedelta(days=1), date_to=MAY_4))
        assert not matches_filter(activity, ActivityFilter(date_from=MAY_4 + timedelta(days=1)))

    def test_numeric_ranges(self):
        activity = _activity()
        assert matches_filter(activity, ActivityFilter(distance_min=2.0, distance_max=3.0))
        assert not matches_filter(activity, ActivityFilter(distance_max=1.0))
        assert not matches_filter(activity, ActivityFilter(elevation_min=200))

    def test_participants_any_match(self):
        activity = _activity()
        assert matches_filter(activity, ActivityFilter(participants=["Ren", "Yui"]))
        assert not matches_filter(activity, ActivityFilter(participants=["Yui"]))


class TestSettingsStore:
    def test_no_preference(self, settings_store):
        assert settings_store.get_preferred_provider() is None

    def test_persists_normalized_provider(self, settings_store, tmp_path):
        settings_store.set_preferred_provider("google")
        assert settings_store.get_preferred_provider() == COMMERCIAL_PROVIDER
        assert json.loads(settings_store.path.read_text()) == {"preferred_map_provider": COMMERCIAL_PROVIDER}

    def test_generic_values(self, settings_store):
        settings_store.set("map_type", "satellite")
        assert settings_store.get("map_type") == "satellite"
        assert settings_store.get("missing", TILE_PROVIDER) == TILE_PROVIDER
