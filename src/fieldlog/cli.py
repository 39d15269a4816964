import argparse
import asyncio
import logging
import sys

from fieldlog.analyzer import compute_statistics
from fieldlog.charts import generate_elevation_profile
from fieldlog.config import PROVIDERS, _load_config, resolve_map_config
from fieldlog.formatters import format_duration, format_km, format_meters, format_percent
from fieldlog.maps.session import MapSession
from fieldlog.maps.types import MAP_TYPES, MapContainer
from fieldlog.parser import parse_gpx, parse_gpx_file, synthetic_track
from fieldlog.profile import project

# Size the map is laid out at when rendered to a standalone file
MAP_WIDTH = 800
MAP_HEIGHT = 600


def build_parser(config: dict | None = None) -> argparse.ArgumentParser:
    """Build argument parser with defaults from config file."""
    if config is None:
        config = {}

    parser = argparse.ArgumentParser(
        description="Summarize a GPX activity track and render its map and elevation profile."
    )
    parser.add_argument("gpx_file", nargs="?", help="Path to GPX file")
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Use the built-in sample track instead of a file",
    )
    parser.add_argument(
        "--map",
        metavar="OUT.html",
        help="Write an interactive map of the track to this HTML file",
    )
    parser.add_argument(
        "--profile",
        metavar="OUT.png",
        help="Write the elevation profile chart to this PNG file",
    )
    parser.add_argument(
        "--provider",
        choices=PROVIDERS,
        default=None,
        help="Map provider (default: from config, else tile)",
    )
    parser.add_argument(
        "--map-type",
        choices=MAP_TYPES,
        default=config.get("map_type", "terrain"),
        help="Base map layer (default: terrain)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def print_summary(result, stats) -> None:
    print("=== Activity Summary ===")
    print(f"Points:         {len(result.points)}")
    print(f"Distance:       {result.distance_km:.1f} km")
    print(f"Duration:       {format_duration(result.duration_minutes)}")
    print(f"Elevation Gain: {format_meters(result.elevation_gain_m)}")
    if stats is None:
        print("Statistics:     n/a (not enough elevation data)")
        return
    print(f"Total Distance: {format_km(stats.total_distance_km)}")
    print(f"Ascent:         {format_meters(stats.total_ascent_m)}")
    print(f"Descent:        {format_meters(stats.total_descent_m)}")
    print(f"Avg Gradient:   {format_percent(stats.average_gradient_percent)}")
    print(f"Max Elevation:  {format_meters(stats.max_elevation_m)}")
    print(f"Min Elevation:  {format_meters(stats.min_elevation_m)}")
    print(f"Moving Time:    {format_duration(stats.moving_time_minutes)}")


async def render_map(points, map_config, provider: str | None, map_type: str) -> tuple[str | None, str | None]:
    """Mount a map for the track and return (html, provider name), or (None, None) on failure."""
    container = MapContainer(element_id="map", width=MAP_WIDTH, height=MAP_HEIGHT)
    session = MapSession(container, map_config, points=points, map_type=map_type)
    try:
        await session.mount(provider)
        if session.provider is None:
            return None, None
        return session.render(), session.provider_name
    finally:
        session.unmount()


def main(argv: list[str] | None = None) -> None:
    config = _load_config()
    parser = build_parser(config)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.demo:
        result = parse_gpx(synthetic_track())
    elif args.gpx_file:
        try:
            result = parse_gpx_file(args.gpx_file)
        except FileNotFoundError:
            print(f"Error: File not found: {args.gpx_file}", file=sys.stderr)
            sys.exit(1)
        except OSError as e:
            print(f"Error reading GPX file: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        parser.print_usage(sys.stderr)
        print("Error: provide a GPX file or --demo", file=sys.stderr)
        sys.exit(1)

    if not result.points:
        print("Error: GPX file contains no track points.", file=sys.stderr)
        sys.exit(1)

    stats = compute_statistics(result.points)
    print_summary(result, stats)

    if args.profile:
        png = generate_elevation_profile(project(result.points))
        with open(args.profile, "wb") as f:
            f.write(png)
        print(f"Elevation profile written to {args.profile}")

    if args.map:
        map_config = resolve_map_config(config)
        html, provider_name = asyncio.run(
            render_map(result.points, map_config, args.provider, args.map_type)
        )
        if html is None:
            print("Error: map failed to load", file=sys.stderr)
            sys.exit(1)
        with open(args.map, "w", encoding="utf-8") as f:
            f.write(html)
        print(f"Map ({provider_name}) written to {args.map}")


if __name__ == "__main__":
    main()
