"""Interchangeable map backends behind one provider interface."""

from fieldlog.maps.types import MapError, MapInitializationError, MapLoadError

__all__ = ["MapError", "MapInitializationError", "MapLoadError"]
