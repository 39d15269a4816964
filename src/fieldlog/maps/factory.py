"""Map provider selection with fallback to the tile renderer.

Which provider gets built is a pure function of the requested name and the
MapConfig resolved at startup.
"""

import logging

from fieldlog.config import COMMERCIAL_PROVIDER, TILE_PROVIDER, MapConfig, normalize_provider
from fieldlog.maps.google import GoogleMapsProvider
from fieldlog.maps.leaflet import TileProvider
from fieldlog.maps.types import MapLoadError, MapProvider

logger = logging.getLogger(__name__)


def is_commercial_available(config: MapConfig) -> bool:
    return config.has_commercial_key


def select_provider(requested: str | None, config: MapConfig) -> str:
    """Resolve which provider a request will actually get."""
    name = normalize_provider(requested or config.provider)
    if name == COMMERCIAL_PROVIDER and not is_commercial_available(config):
        return TILE_PROVIDER
    return name


def create_tile_provider(config: MapConfig) -> TileProvider:
    try:
        return TileProvider(init_timeout=config.init_timeout)
    except Exception as e:
        raise MapLoadError(f"Failed to create tile map provider: {e}") from e


def create_provider(requested: str | None, config: MapConfig) -> MapProvider:
    """Create the requested map provider, falling back to the tile renderer.

    A missing or placeholder API key silently selects the tile renderer. If
    building the requested provider fails for any reason the error is logged
    and the tile renderer is returned instead.

    Raises:
        MapLoadError: Only if the tile renderer itself cannot be created.
    """
    name = normalize_provider(requested or config.provider)

    if name == COMMERCIAL_PROVIDER:
        if not is_commercial_available(config):
            logger.warning("Google Maps API key not configured, falling back to tile map")
            return create_tile_provider(config)
        try:
            return GoogleMapsProvider(config.google_maps_api_key, init_timeout=config.init_timeout)
        except Exception:
            logger.exception("Failed to create %s provider, falling back to tile map", name)
            return create_tile_provider(config)

    return create_tile_provider(config)
