"""Configuration loading for fieldlog.

Settings come from JSON config files, with environment variables filling in
anything the files leave out. The map configuration is resolved once at
startup and passed explicitly to whatever needs it.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path

CONFIG_DIR = Path.home() / ".config" / "fieldlog"
CONFIG_PATH = CONFIG_DIR / "fieldlog.json"
LOCAL_CONFIG_PATH = Path("fieldlog.json")
DATA_DIR = Path.home() / ".local" / "share" / "fieldlog"

TILE_PROVIDER = "tile"
COMMERCIAL_PROVIDER = "commercial-api"
PROVIDERS = (TILE_PROVIDER, COMMERCIAL_PROVIDER)

# Value shipped in example configs; treated the same as no key at all
PLACEHOLDER_API_KEY = "YOUR_API_KEY_HERE"

DEFAULT_INIT_TIMEOUT = 10.0  # seconds to wait for a container to get a size


def _load_config() -> dict:
    """Load configuration from config files.

    Merges config from global and local files:
    1. ~/.config/fieldlog/fieldlog.json (global, loaded first)
    2. ./fieldlog.json (local, overrides global)

    Returns:
        Dict with merged config values, empty dict if no files exist.
    """
    config = {}
    for config_path in [CONFIG_PATH, LOCAL_CONFIG_PATH]:
        if config_path.exists():
            try:
                with config_path.open() as f:
                    config.update(json.load(f))
            except (json.JSONDecodeError, OSError):
                continue
    return config


@dataclass(frozen=True)
class MapConfig:
    provider: str = TILE_PROVIDER
    google_maps_api_key: str | None = None
    init_timeout: float = DEFAULT_INIT_TIMEOUT

    @property
    def has_commercial_key(self) -> bool:
        return bool(self.google_maps_api_key) and self.google_maps_api_key != PLACEHOLDER_API_KEY


def normalize_provider(name: str | None) -> str:
    """Map user-facing provider names to the two supported values."""
    if not name:
        return TILE_PROVIDER
    name = name.strip().lower()
    if name in ("commercial-api", "commercial", "google"):
        return COMMERCIAL_PROVIDER
    return TILE_PROVIDER


def resolve_map_config(config: dict | None = None, environ: dict | None = None) -> MapConfig:
    """Build the MapConfig from config file values and the environment.

    Config file values win; FIELDLOG_MAP_PROVIDER and GOOGLE_MAPS_API_KEY fill
    in what the files leave out.
    """
    if config is None:
        config = _load_config()
    if environ is None:
        environ = os.environ

    provider = config.get("map_provider") or environ.get("FIELDLOG_MAP_PROVIDER")
    api_key = config.get("google_maps_api_key") or environ.get("GOOGLE_MAPS_API_KEY")
    timeout = float(config.get("map_init_timeout", DEFAULT_INIT_TIMEOUT))

    return MapConfig(
        provider=normalize_provider(provider),
        google_maps_api_key=api_key or None,
        init_timeout=timeout,
    )
