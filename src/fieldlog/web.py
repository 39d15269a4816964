"""Web interface for fieldlog."""

import asyncio
import hashlib
import io
import logging
import math
import os
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock

from flask import Flask, jsonify, render_template_string, request, send_file, url_for

from fieldlog import __version_date__, get_git_hash
from fieldlog.analyzer import compute_statistics
from fieldlog.charts import generate_elevation_profile, generate_no_data_image
from fieldlog.config import PROVIDERS, MapConfig, normalize_provider, resolve_map_config
from fieldlog.formatters import format_duration, format_km, format_meters, format_percent, round_half_up
from fieldlog.hover import HoverChannel
from fieldlog.maps.common import HOVER_MESSAGE_TYPE
from fieldlog.maps.factory import is_commercial_available, select_provider
from fieldlog.maps.session import LOAD_FAILED_MESSAGE, MapSession
from fieldlog.maps.types import MAP_TYPES, MapContainer
from fieldlog.models import WEATHER_CHOICES, Activity, ActivityFilter, GeoPoint, ParseResult, Photo
from fieldlog.parser import parse_gpx, synthetic_track
from fieldlog.profile import ElevationProfile, project
from fieldlog.store import ACTIVITIES_PATH, SETTINGS_PATH, ActivityStore, SettingsStore, activity_to_dict

logger = logging.getLogger(__name__)

app = Flask(__name__)

MAP_WIDTH = 800
MAP_HEIGHT = 500

# Activity fields a client may set through the API
EDITABLE_FIELDS = ("title", "date", "duration", "distance", "elevation_gain", "weather", "participants", "field_note", "photos")


@dataclass
class LoadedTrack:
    """A parsed track plus the derived views the pages need."""

    result: ParseResult
    profile: ElevationProfile
    hover: HoverChannel = field(default_factory=HoverChannel)


class TrackCache:
    """Thread-safe LRU cache of uploaded tracks, keyed by content hash."""

    def __init__(self, max_size: int = 32):
        self.max_size = max_size
        self.cache: OrderedDict[str, LoadedTrack] = OrderedDict()
        self.lock = Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(document: str) -> str:
        return hashlib.md5(document.encode()).hexdigest()[:12]

    def get(self, key: str) -> LoadedTrack | None:
        with self.lock:
            if key in self.cache:
                self.cache.move_to_end(key)
                self.hits += 1
                return self.cache[key]
            self.misses += 1
            return None

    def add(self, document: str, result: ParseResult) -> str:
        key = self.make_key(document)
        with self.lock:
            if key in self.cache:
                self.cache.move_to_end(key)
                return key
            self.cache[key] = LoadedTrack(result=result, profile=project(result.points))
            # Evict oldest if over limit
            while len(self.cache) > self.max_size:
                self.cache.popitem(last=False)
        return key

    def stats(self) -> dict:
        with self.lock:
            return {"hits": self.hits, "misses": self.misses, "size": len(self.cache), "max_size": self.max_size}

    def clear(self) -> None:
        with self.lock:
            self.cache.clear()
            self.hits = 0
            self.misses = 0


_track_cache = TrackCache()


def get_map_config() -> MapConfig:
    """The map configuration, resolved once and then reused."""
    config = app.config.get("MAP_CONFIG")
    if config is None:
        config = resolve_map_config()
        app.config["MAP_CONFIG"] = config
    return config


def get_activity_store() -> ActivityStore:
    return ActivityStore(app.config.get("ACTIVITIES_PATH", ACTIVITIES_PATH))


def get_settings_store() -> SettingsStore:
    return SettingsStore(app.config.get("SETTINGS_PATH", SETTINGS_PATH))


HTML_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Field Log</title>
    <style>
        :root { --primary: #8DB600; --text: #222; --muted: #777; --border: #ddd; }
        body { font-family: -apple-system, BlinkMacSystemFont, sans-serif; color: var(--text); max-width: 900px; margin: 0 auto; padding: 20px; }
        h1 { color: var(--primary); }
        form { margin-bottom: 20px; padding: 16px; border: 1px solid var(--border); border-radius: 8px; }
        .error { color: #b00020; background: #fdecea; padding: 10px; border-radius: 6px; }
        .stats { display: grid; grid-template-columns: repeat(auto-fill, minmax(180px, 1fr)); gap: 8px; }
        .stat { border: 1px solid var(--border); border-radius: 6px; padding: 8px; }
        .stat .label { color: var(--muted); font-size: 0.85em; }
        .stat .value { font-size: 1.2em; font-weight: 600; }
        .map-frame { width: 100%; height: {{ map_height }}px; border: 1px solid var(--border); border-radius: 8px; }
        #profile { width: 100%; cursor: crosshair; }
        footer { margin-top: 40px; color: var(--muted); font-size: 0.8em; }
    </style>
</head>
<body>
    <h1>Field Log</h1>
    <form method="post" enctype="multipart/form-data">
        <label for="gpx_file">GPX file</label>
        <input type="file" id="gpx_file" name="gpx_file" accept=".gpx">
        <button type="submit">Analyze</button>
        or <a href="/demo">try the demo track</a>
    </form>

    {% if error %}
    <div class="error">{{ error }}</div>
    {% endif %}

    {% if track_id %}
    <h2>Activity Summary</h2>
    <div class="stats">
        <div class="stat"><div class="label">Distance</div><div class="value">{{ summary.distance }}</div></div>
        <div class="stat"><div class="label">Track Distance</div><div class="value">{{ summary.total_distance }}</div></div>
        <div class="stat"><div class="label">Duration</div><div class="value">{{ summary.duration }}</div></div>
        <div class="stat"><div class="label">Elevation Gain</div><div class="value">{{ summary.elevation_gain }}</div></div>
        <div class="stat"><div class="label">Ascent</div><div class="value">{{ summary.ascent }}</div></div>
        <div class="stat"><div class="label">Descent</div><div class="value">{{ summary.descent }}</div></div>
        <div class="stat"><div class="label">Avg Gradient</div><div class="value">{{ summary.gradient }}</div></div>
        <div class="stat"><div class="label">Max Elevation</div><div class="value">{{ summary.max_elevation }}</div></div>
        <div class="stat"><div class="label">Min Elevation</div><div class="value">{{ summary.min_elevation }}</div></div>
        <div class="stat"><div class="label">Moving Time</div><div class="value">{{ summary.moving_time }}</div></div>
    </div>

    <h2>Map</h2>
    <p>
        Provider:
        {% for name in providers %}
        <a href="/map?track={{ track_id }}&provider={{ name }}" target="map-frame">{{ name }}</a>
        {% endfor %}
    </p>
    <iframe class="map-frame" name="map-frame" src="/map?track={{ track_id }}"></iframe>

    <h2>Elevation Profile</h2>
    <img id="profile" src="/elevation-profile?track={{ track_id }}" alt="Elevation profile">
    <div id="hover-info"></div>
    <script>
    (function() {
        const img = document.getElementById('profile');
        const info = document.getElementById('hover-info');
        const trackId = {{ track_id|tojson }};
        let data = null;
        fetch('/elevation-profile-data?track=' + trackId).then(r => r.json()).then(d => { data = d; });
        img.addEventListener('mousemove', (e) => {
            if (!data || !data.distances_km.length) return;
            const rect = img.getBoundingClientRect();
            const frac = (e.clientX - rect.left) / rect.width;
            const km = frac * data.distances_km[data.distances_km.length - 1];
            fetch('/api/hover', {
                method: 'POST',
                headers: {'Content-Type': 'application/json'},
                body: JSON.stringify({track: trackId, distance_km: km})
            }).then(r => r.json()).then(res => {
                if (res.point) info.textContent = data.labels[res.point.index];
            });
        });
        img.addEventListener('mouseleave', () => {
            info.textContent = '';
            fetch('/api/hover', {
                method: 'POST',
                headers: {'Content-Type': 'application/json'},
                body: JSON.stringify({track: trackId, clear: true})
            });
        });
        // Pointer moves over the map arrive from the map frame
        window.addEventListener('message', (e) => {
            if (e.origin !== window.location.origin || !e.data || e.data.type !== {{ hover_message_type|tojson }}) return;
            const point = e.data.point;
            img.src = '/elevation-profile?track=' + trackId + (point ? '&hover=' + point.index : '');
            info.textContent = point && data ? data.labels[point.index] : '';
        });
    })();
    </script>
    {% endif %}

    <footer>fieldlog {{ version_date }} ({{ git_hash }})</footer>
</body>
</html>
"""

MAP_FAILED_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>Map</title></head>
<body style="font-family: sans-serif; display: flex; align-items: center; justify-content: center; height: 100vh; margin: 0;">
    <div style="text-align: center;">
        <p class="map-error">{{ message }}</p>
        <a href="{{ retry_url }}">Retry</a>
    </div>
</body>
</html>
"""


def _summary(track: LoadedTrack) -> dict:
    result = track.result
    stats = compute_statistics(result.points)
    summary = {
        "distance": f"{result.distance_km:.1f} km",
        "duration": format_duration(result.duration_minutes),
        "elevation_gain": format_meters(result.elevation_gain_m),
    }
    if stats is None:
        summary.update(ascent="n/a", descent="n/a", gradient="n/a", max_elevation="n/a",
                       min_elevation="n/a", moving_time="n/a")
    else:
        summary.update(
            ascent=format_meters(stats.total_ascent_m),
            descent=format_meters(stats.total_descent_m),
            gradient=format_percent(stats.average_gradient_percent),
            max_elevation=format_meters(stats.max_elevation_m),
            min_elevation=format_meters(stats.min_elevation_m),
            moving_time=format_duration(stats.moving_time_minutes),
        )
    summary["total_distance"] = format_km(stats.total_distance_km if stats else None)
    return summary


def _render_page(track_id: str | None = None, error: str | None = None, status: int = 200):
    track = _track_cache.get(track_id) if track_id else None
    html = render_template_string(
        HTML_TEMPLATE,
        track_id=track_id if track else None,
        summary=_summary(track) if track else None,
        providers=PROVIDERS,
        map_height=MAP_HEIGHT,
        hover_message_type=HOVER_MESSAGE_TYPE,
        error=error,
        version_date=__version_date__,
        git_hash=get_git_hash(),
    )
    return html, status


def _load_document(document: str):
    """Parse and cache a GPX document. Returns (track_id, error)."""
    result = parse_gpx(document)
    if not result.points:
        return None, "Could not read any track points from that file."
    return _track_cache.add(document, result), None


def _lookup_track():
    track_id = request.args.get("track", "")
    return track_id, _track_cache.get(track_id) if track_id else None


@app.route("/", methods=["GET", "POST"])
def index():
    if request.method == "GET":
        return _render_page(request.args.get("track"))

    upload = request.files.get("gpx_file")
    if upload is None or not upload.filename:
        return _render_page(error="Please choose a GPX file.", status=400)
    try:
        document = upload.read().decode("utf-8")
    except UnicodeDecodeError:
        return _render_page(error="That file is not a text GPX document.", status=400)

    track_id, error = _load_document(document)
    if error:
        return _render_page(error=error, status=400)
    return _render_page(track_id)


@app.route("/demo")
def demo():
    track_id, _ = _load_document(synthetic_track())
    return _render_page(track_id)


@app.route("/map")
def map_view():
    """Serve the map for a track, rendered by the requested provider."""
    track_id, track = _lookup_track()
    if track is None:
        return jsonify({"error": "Unknown track"}), 404

    provider = request.args.get("provider") or None
    map_type = request.args.get("map_type", "terrain")
    if map_type not in MAP_TYPES:
        return jsonify({"error": f"Unknown map type: {map_type}"}), 400

    settings = get_settings_store()
    session = MapSession(
        MapContainer(element_id="map", width=MAP_WIDTH, height=MAP_HEIGHT),
        get_map_config(),
        points=track.result.points,
        hover=track.hover,
        settings=settings,
        map_type=map_type,
    )

    try:
        # Choosing a provider here is for this view only; the preference is
        # saved through PUT /api/settings/map-provider
        asyncio.run(session.mount(provider))
        if session.provider is None:
            return render_template_string(
                MAP_FAILED_TEMPLATE,
                message=session.error or LOAD_FAILED_MESSAGE,
                retry_url=request.full_path,
            ), 503
        return session.render(hover_url=url_for("api_hover", track=track_id))
    finally:
        session.unmount()


@app.route("/elevation-profile")
def elevation_profile():
    """Serve elevation profile image for a track."""
    _, track = _lookup_track()
    if track is None or track.profile.is_empty:
        return send_file(io.BytesIO(generate_no_data_image()), mimetype="image/png")

    hover_str = request.args.get("hover", "")
    try:
        hover_index = float(hover_str) if hover_str else None
    except ValueError:
        hover_index = None
    if hover_index is None and track.hover.current is not None:
        hover_index = track.hover.current.index

    img_bytes = generate_elevation_profile(track.profile, hover_index=hover_index)
    return send_file(io.BytesIO(img_bytes), mimetype="image/png")


@app.route("/elevation-profile-data")
def elevation_profile_data():
    """Return elevation profile data as JSON for interactive tooltip."""
    _, track = _lookup_track()
    if track is None:
        return jsonify({"error": "Unknown track"}), 404
    return jsonify(track.profile.to_dict())


@app.route("/api/hover", methods=["GET", "POST"])
def api_hover():
    """Read or move the shared hover point of a track.

    POST accepts {"track", "index"} (chart, fractional allowed),
    {"track", "distance_km"} (chart x coordinate), {"track", "lat", "lng"}
    (map pointer) or {"track", "clear": true}. The track id may also come
    from the query string, which is how rendered map pages post.
    """
    if request.method == "GET":
        _, track = _lookup_track()
        if track is None:
            return jsonify({"error": "Unknown track"}), 404
        current = track.hover.current
        return jsonify({"point": current.to_dict() if current else None})

    data = request.get_json(silent=True) or {}
    track = _track_cache.get(str(data.get("track") or request.args.get("track", "")))
    if track is None:
        return jsonify({"error": "Unknown track"}), 404

    try:
        if data.get("clear"):
            point = None
        elif "index" in data:
            point = track.profile.point_at(float(data["index"]))
        elif "distance_km" in data:
            point = track.profile.point_at_distance(float(data["distance_km"]))
        elif "lat" in data and "lng" in data:
            point = track.profile.hover_from_map(GeoPoint(lat=float(data["lat"]), lng=float(data["lng"])))
        else:
            return jsonify({"error": "Expected index, distance_km, lat/lng or clear"}), 400
    except (TypeError, ValueError):
        return jsonify({"error": "Invalid hover coordinates"}), 400

    track.hover.publish(point)
    return jsonify({"point": point.to_dict() if point else None})


def _parse_date(value) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _non_negative(value, name: str) -> float:
    if isinstance(value, bool):
        raise TypeError(f"{name} must be a number")
    number = float(value)
    if not math.isfinite(number) or number < 0:
        raise ValueError(f"{name} must be a non-negative number")
    return number


def _activity_changes(data: dict) -> dict:
    """Validate and coerce client-supplied activity fields.

    Raises TypeError or ValueError for a field of the wrong shape.
    """
    changes = {k: data[k] for k in EDITABLE_FIELDS if k in data}
    if "title" in changes and not str(changes["title"]).strip():
        raise ValueError("title must not be empty")
    if "title" in changes and not isinstance(changes["title"], str):
        raise TypeError("title must be a string")
    if "distance" in changes:
        changes["distance"] = _non_negative(changes["distance"], "distance")
    for key in ("duration", "elevation_gain"):
        if key in changes:
            changes[key] = int(round_half_up(_non_negative(changes[key], key)))
    if "date" in changes:
        if changes["date"] is None:
            del changes["date"]
        else:
            changes["date"] = _parse_date(changes["date"])
    if changes.get("field_note") is not None and not isinstance(changes["field_note"], str):
        raise TypeError("field_note must be a string")
    if "weather" in changes and changes["weather"] not in WEATHER_CHOICES:
        raise ValueError(f"weather must be one of {', '.join(WEATHER_CHOICES)}")
    if "participants" in changes and not (
        isinstance(changes["participants"], list) and all(isinstance(p, str) for p in changes["participants"])
    ):
        raise ValueError("participants must be a list of names")
    if "photos" in changes:
        changes["photos"] = [Photo(**p) for p in changes["photos"]]
    return changes


def _activity_filter(args) -> ActivityFilter:
    def number(key):
        value = args.get(key)
        return float(value) if value else None

    def date(key):
        value = args.get(key)
        return _parse_date(value) if value else None

    return ActivityFilter(
        search_text=args.get("q") or None,
        date_from=date("date_from"),
        date_to=date("date_to"),
        distance_min=number("distance_min"),
        distance_max=number("distance_max"),
        elevation_min=number("elevation_min"),
        elevation_max=number("elevation_max"),
        weather=args.getlist("weather") or None,
        participants=args.getlist("participant") or None,
    )


@app.route("/api/activities", methods=["GET", "POST"])
def api_activities():
    store = get_activity_store()
    if request.method == "GET":
        try:
            flt = _activity_filter(request.args)
        except (TypeError, ValueError) as e:
            return jsonify({"error": str(e)}), 400
        return jsonify([activity_to_dict(a) for a in store.list(flt)])

    data = request.get_json(silent=True) or {}
    if not data.get("title"):
        return jsonify({"error": "title is required"}), 400
    try:
        changes = _activity_changes(data)
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    # A GPX document fills in the track and the quick metrics
    if data.get("gpx"):
        if not isinstance(data["gpx"], str):
            return jsonify({"error": "gpx must be a GPX document string"}), 400
        result = parse_gpx(data["gpx"])
        if not result.points:
            return jsonify({"error": "GPX document contains no track points"}), 400
        changes.setdefault("date", result.start_time)
        changes.setdefault("duration", result.duration_minutes)
        changes.setdefault("distance", result.distance_km)
        changes.setdefault("elevation_gain", result.elevation_gain_m)
        changes["points"] = result.points

    changes.setdefault("date", datetime.now(timezone.utc))
    activity = Activity(title=changes.pop("title"), date=changes.pop("date"), **changes)
    activity_id = store.create(activity)
    logger.info("Created activity %s", activity_id)
    return jsonify(activity_to_dict(store.get(activity_id))), 201


@app.route("/api/activities/<activity_id>", methods=["GET", "PATCH", "DELETE"])
def api_activity(activity_id: str):
    store = get_activity_store()
    try:
        if request.method == "GET":
            return jsonify(activity_to_dict(store.get(activity_id)))

        if request.method == "DELETE":
            store.delete(activity_id)
            logger.info("Deleted activity %s", activity_id)
            return "", 204

        data = request.get_json(silent=True) or {}
        try:
            changes = _activity_changes(data)
        except (TypeError, ValueError) as e:
            return jsonify({"error": str(e)}), 400
        return jsonify(activity_to_dict(store.update(activity_id, **changes)))
    except KeyError:
        return jsonify({"error": "Activity not found"}), 404


@app.route("/api/settings/map-provider", methods=["GET", "PUT"])
def api_map_provider():
    config = get_map_config()
    settings = get_settings_store()

    if request.method == "PUT":
        data = request.get_json(silent=True) or {}
        name = data.get("provider")
        if name not in PROVIDERS:
            return jsonify({"error": f"provider must be one of {', '.join(PROVIDERS)}"}), 400
        settings.set_preferred_provider(name)

    preferred = settings.get_preferred_provider() or config.provider
    return jsonify({
        "provider": normalize_provider(preferred),
        "effective": select_provider(preferred, config),
        "available": {
            "tile": True,
            "commercial-api": is_commercial_available(config),
        },
    })


def main():
    """Run the web server."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    port = int(os.environ.get("PORT", 5050))
    app.config["MAP_CONFIG"] = resolve_map_config()
    print("Starting fieldlog web server...")
    print(f"Open http://localhost:{port} in your browser")
    app.run(host="0.0.0.0", port=port, debug=True)


if __name__ == "__main__":
    main()
