from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


@dataclass(frozen=True)
class TrackPoint:
    lat: float
    lon: float
    elevation: float | None = None  # meters
    time: datetime | None = None

    @property
    def lng(self) -> float:
        return self.lon

    def to_geo(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lng=self.lon)


@dataclass
class ParseResult:
    points: list[TrackPoint]
    distance_km: float  # rounded to 0.1 km
    duration_minutes: int
    elevation_gain_m: int  # ascent only
    start_time: datetime
    end_time: datetime


@dataclass(frozen=True)
class TrackStatistics:
    total_distance_km: float
    total_ascent_m: int
    total_descent_m: int
    average_gradient_percent: float
    max_elevation_m: int
    min_elevation_m: int
    moving_time_minutes: int


@dataclass(frozen=True)
class MapBounds:
    north: float
    south: float
    east: float
    west: float

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(lat=(self.north + self.south) / 2, lng=(self.east + self.west) / 2)


@dataclass
class Photo:
    id: str
    url: str
    caption: str | None = None
    lat: float | None = None
    lng: float | None = None
    taken_at: str | None = None  # ISO 8601


WEATHER_CHOICES = ("sunny", "cloudy", "rain", "snow", "fog", "other")


@dataclass
class Activity:
    title: str
    date: datetime
    duration: int = 0  # minutes
    distance: float = 0.0  # km
    elevation_gain: int = 0  # meters
    weather: str = "sunny"
    participants: list[str] = field(default_factory=list)
    points: list[TrackPoint] = field(default_factory=list)
    photos: list[Photo] = field(default_factory=list)
    field_note: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ActivityFilter:
    search_text: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    distance_min: float | None = None
    distance_max: float | None = None
    elevation_min: float | None = None
    elevation_max: float | None = None
    weather: list[str] | None = None
    participants: list[str] | None = None
