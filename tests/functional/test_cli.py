import os
import subprocess
import sys

import pytest

SAMPLE_GPX_PATH = os.path.join(
    os.path.dirname(__file__), "data", "sample_hike.gpx"
)


def run_cli(*args, cwd=None):
    env = {k: v for k, v in os.environ.items() if k not in ("GOOGLE_MAPS_API_KEY", "FIELDLOG_MAP_PROVIDER")}
    return subprocess.run(
        [sys.executable, "-m", "fieldlog", *args],
        capture_output=True,
        text=True,
        cwd=cwd,
        env=env,
    )


class TestCli:
    def test_run_with_sample_file(self, tmp_path):
        result = run_cli(SAMPLE_GPX_PATH, cwd=tmp_path)
        assert result.returncode == 0
        output = result.stdout
        assert "Activity Summary" in output
        assert "Distance:" in output
        assert "Duration:       27m" in output
        assert "Elevation Gain: 126 m" in output
        assert "Ascent:         126 m" in output
        assert "Descent:        75 m" in output
        assert "Max Elevation:  310 m" in output
        assert "Min Elevation:  190 m" in output
        assert "Moving Time:    27m" in output

    def test_demo(self, tmp_path):
        result = run_cli("--demo", cwd=tmp_path)
        assert result.returncode == 0
        assert "Elevation Gain: 0 m" in result.stdout
        assert "Descent:        21 m" in result.stdout
        assert "Duration:       4m" in result.stdout

    def test_file_not_found(self, tmp_path):
        result = run_cli("nonexistent_file.gpx", cwd=tmp_path)
        assert result.returncode != 0
        assert "File not found" in result.stderr

    def test_no_input(self, tmp_path):
        result = run_cli(cwd=tmp_path)
        assert result.returncode != 0
        assert "--demo" in result.stderr

    def test_malformed_file(self, tmp_path):
        bad = tmp_path / "bad.gpx"
        bad.write_text("<gpx><trk>")
        result = run_cli(str(bad), cwd=tmp_path)
        assert result.returncode != 0
        assert "no track points" in result.stderr

    def test_single_point_statistics_unavailable(self, tmp_path):
        one = tmp_path / "one.gpx"
        one.write_text(
            '<?xml version="1.0"?>'
            '<gpx version="1.1" xmlns="http://www.topografix.com/GPX/1/1">'
            '<trk><trkseg><trkpt lat="37.0" lon="-122.0"><ele>10</ele></trkpt></trkseg></trk></gpx>'
        )
        result = run_cli(str(one), cwd=tmp_path)
        assert result.returncode == 0
        assert "n/a" in result.stdout
        assert "Ascent:" not in result.stdout

    def test_writes_profile_png(self, tmp_path):
        out = tmp_path / "profile.png"
        result = run_cli("--demo", "--profile", str(out), cwd=tmp_path)
        assert result.returncode == 0
        assert out.read_bytes().startswith(b"\x89PNG")

    def test_writes_tile_map(self, tmp_path):
        out = tmp_path / "map.html"
        result = run_cli(SAMPLE_GPX_PATH, "--map", str(out), "--map-type", "roadmap", cwd=tmp_path)
        assert result.returncode == 0
        assert "Map (tile)" in result.stdout
        html = out.read_text()
        assert "openstreetmap" in html

    def test_commercial_without_key_uses_tile(self, tmp_path):
        out = tmp_path / "map.html"
        result = run_cli("--demo", "--map", str(out), "--provider", "commercial-api", cwd=tmp_path)
        assert result.returncode == 0
        assert "Map (tile)" in result.stdout

    @pytest.mark.parametrize("map_type", ["moon", "street"])
    def test_rejects_unknown_map_type(self, tmp_path, map_type):
        result = run_cli("--demo", "--map-type", map_type, cwd=tmp_path)
        assert result.returncode != 0
