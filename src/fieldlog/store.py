"""JSON file storage for activities and user settings."""

from __future__ import annotations
import json
import logging
import uuid
from dataclasses import asdict, fields, replace
from datetime import datetime, timezone
from pathlib import Path

from fieldlog.config import DATA_DIR, normalize_provider
from fieldlog.models import Activity, ActivityFilter, Photo, TrackPoint

logger = logging.getLogger(__name__)

ACTIVITIES_PATH = DATA_DIR / "activities.json"
SETTINGS_PATH = DATA_DIR / "settings.json"

_DATETIME_FIELDS = ("date", "created_at", "updated_at")


def _read_json(path: Path, default):
    if not path.exists():
        return default
    try:
        with path.open() as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable %s: %s", path, e)
        return default


def _write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w") as f:
        json.dump(data, f, indent=2)
    tmp_path.replace(path)


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def activity_to_dict(activity: Activity) -> dict:
    data = asdict(activity)
    for key in _DATETIME_FIELDS:
        value = getattr(activity, key)
        data[key] = value.isoformat() if value else None
    data["points"] = [
        {
            "lat": p.lat,
            "lon": p.lon,
            "elevation": p.elevation,
            "time": p.time.isoformat() if p.time else None,
        }
        for p in activity.points
    ]
    return data


def activity_from_dict(data: dict) -> Activity:
    known = {f.name for f in fields(Activity)}
    values = {k: v for k, v in data.items() if k in known}
    for key in _DATETIME_FIELDS:
        if key in values:
            values[key] = _parse_dt(values[key])
    values["points"] = [
        TrackPoint(lat=p["lat"], lon=p["lon"], elevation=p.get("elevation"), time=_parse_dt(p.get("time")))
        for p in values.get("points", [])
    ]
    values["photos"] = [Photo(**p) for p in values.get("photos", [])]
    return Activity(**values)


def matches_filter(activity: Activity, flt: ActivityFilter) -> bool:
    """Check an activity against every criterion set on the filter."""
    if flt.search_text:
        needle = flt.search_text.lower()
        haystack = " ".join([activity.title, activity.field_note or "", *activity.participants]).lower()
        if needle not in haystack:
            return False
    if flt.date_from and activity.date < flt.date_from:
        return False
    if flt.date_to and activity.date > flt.date_to:
        return False
    if flt.distance_min is not None and activity.distance < flt.distance_min:
        return False
    if flt.distance_max is not None and activity.distance > flt.distance_max:
        return False
    if flt.elevation_min is not None and activity.elevation_gain < flt.elevation_min:
        return False
    if flt.elevation_max is not None and activity.elevation_gain > flt.elevation_max:
        return False
    if flt.weather and activity.weather not in flt.weather:
        return False
    if flt.participants and not set(flt.participants) & set(activity.participants):
        return False
    return True


class ActivityStore:
    """Activity records kept in a single JSON file."""

    def __init__(self, path: Path = ACTIVITIES_PATH):
        self.path = Path(path)

    def _load(self) -> dict[str, dict]:
        return _read_json(self.path, {})

    def _save(self, records: dict[str, dict]) -> None:
        _write_json(self.path, records)

    def list(self, flt: ActivityFilter | None = None) -> list[Activity]:
        """All activities, newest first, optionally filtered."""
        activities = [activity_from_dict(r) for r in self._load().values()]
        if flt is not None:
            activities = [a for a in activities if matches_filter(a, flt)]
        return sorted(activities, key=lambda a: a.date, reverse=True)

    def get(self, activity_id: str) -> Activity:
        """Raises KeyError for unknown ids."""
        return activity_from_dict(self._load()[activity_id])

    def create(self, activity: Activity) -> str:
        records = self._load()
        activity_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        stored = replace(activity, id=activity_id, created_at=now, updated_at=now)
        records[activity_id] = activity_to_dict(stored)
        self._save(records)
        return activity_id

    def update(self, activity_id: str, **changes) -> Activity:
        """Apply a partial update. Raises KeyError for unknown ids."""
        records = self._load()
        current = activity_from_dict(records[activity_id])
        changes.pop("id", None)
        changes.pop("updated_at", None)
        updated = replace(current, **changes, updated_at=datetime.now(timezone.utc))
        records[activity_id] = activity_to_dict(updated)
        self._save(records)
        return updated

    def delete(self, activity_id: str) -> None:
        """Raises KeyError for unknown ids."""
        records = self._load()
        del records[activity_id]
        self._save(records)


class SettingsStore:
    """Small persisted user preferences, such as the preferred map provider."""

    def __init__(self, path: Path = SETTINGS_PATH):
        self.path = Path(path)

    def get(self, key: str, default=None):
        return _read_json(self.path, {}).get(key, default)

    def set(self, key: str, value) -> None:
        settings = _read_json(self.path, {})
        settings[key] = value
        _write_json(self.path, settings)

    def get_preferred_provider(self) -> str | None:
        value = self.get("preferred_map_provider")
        return normalize_provider(value) if value else None

    def set_preferred_provider(self, provider: str) -> None:
        self.set("preferred_map_provider", normalize_provider(provider))
