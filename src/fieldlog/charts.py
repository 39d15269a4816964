"""Elevation profile chart generation."""

import io

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for server
import matplotlib.pyplot as plt

from fieldlog.profile import ElevationProfile

TRACK_COLOR = '#8DB600'
FILL_ALPHA = 0.3
CURSOR_COLOR = '#4285F4'
NO_DATA_MESSAGE = 'No elevation data'


def set_fixed_margins(fig, fig_width: float, fig_height: float) -> None:
    """Set fixed margins in inches for consistent JavaScript coordinate mapping.

    Uses fixed inch-based margins so that the plot area is predictable
    regardless of content.
    """
    left_margin_in = 0.7
    right_margin_in = 0.3
    bottom_margin_in = 0.55
    top_margin_in = 0.2

    left = left_margin_in / fig_width
    right = 1 - right_margin_in / fig_width
    bottom = bottom_margin_in / fig_height
    top = 1 - top_margin_in / fig_height

    fig.subplots_adjust(left=left, right=right, bottom=bottom, top=top)


def _to_png(fig, **savefig_kwargs) -> bytes:
    buf = io.BytesIO()
    fig.savefig(buf, format='png', dpi=100, facecolor='white', edgecolor='none', **savefig_kwargs)
    plt.close(fig)
    buf.seek(0)
    return buf.getvalue()


def generate_no_data_image(aspect_ratio: float = 3.5, message: str = NO_DATA_MESSAGE) -> bytes:
    """Placeholder shown when a track has fewer than two points."""
    fig_height = 3
    fig_width = fig_height * aspect_ratio
    fig, ax = plt.subplots(figsize=(fig_width, fig_height), facecolor='white')
    ax.text(0.5, 0.5, message, ha='center', va='center', fontsize=14, color='#999')
    ax.axis('off')
    return _to_png(fig, bbox_inches='tight')


def generate_elevation_profile(
    profile: ElevationProfile,
    hover_index: int | None = None,
    aspect_ratio: float = 3.5,
) -> bytes:
    """Generate a filled elevation-vs-distance chart.

    Args:
        profile: Series from fieldlog.profile.project
        hover_index: Optional sample index to mark with a vertical cursor
        aspect_ratio: Width/height ratio (3.5 = wide default)

    Returns PNG image as bytes. Empty profiles give the "no data" image.
    """
    if profile.is_empty:
        return generate_no_data_image(aspect_ratio)

    distances = profile.distances_km
    elevations = profile.elevations

    fig_height = 3
    fig_width = fig_height * aspect_ratio
    fig, ax = plt.subplots(figsize=(fig_width, fig_height), facecolor='white')

    low = min(elevations)
    high = max(elevations)
    pad = max((high - low) * 0.1, 1.0)
    floor = low - pad

    ax.fill_between(distances, elevations, floor, color=TRACK_COLOR, alpha=FILL_ALPHA, linewidth=0)
    ax.plot(distances, elevations, color=TRACK_COLOR, linewidth=2)

    if hover_index is not None:
        index = profile.resolve_index(hover_index)
        if index is not None:
            x = distances[index]
            ax.axvline(x=x, color=CURSOR_COLOR, linewidth=1, linestyle='--')
            ax.plot([x], [elevations[index]], marker='o', markersize=6,
                    color=CURSOR_COLOR, markeredgecolor='white')

    ax.set_xlim(distances[0], distances[-1] if distances[-1] > distances[0] else distances[0] + 0.01)
    ax.set_ylim(floor, high + pad)
    ax.set_xlabel('Distance (km)', fontsize=10)
    ax.set_ylabel('Elevation (m)', fontsize=10)
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)
    ax.grid(axis='y', alpha=0.3, linestyle='-', linewidth=0.5)

    set_fixed_margins(fig, fig_width, fig_height)

    return _to_png(fig)
