"""Data models for event enrichment and aggregation."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# Wire names of the known event fields, in output order
EVENT_FIELDS = (
    'id',
    'truck_name',
    'start_ts',
    'end_ts',
    'venue',
    'raw_address',
    'city',
    'lat',
    'lng',
    'formatted_address',
    'source_url',
    'confidence',
)


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""
    lat: float
    lng: float


@dataclass(frozen=True)
class GeocodedLocation:
    """Coordinates and formatted address returned by the geocoder."""
    lat: float
    lng: float
    formatted_address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'lat': self.lat,
            'lng': self.lng,
            'formatted_address': self.formatted_address
        }


@dataclass
class Event:
    """Food truck event, enriched in place with coordinates."""
    id: str
    start_ts: str
    venue: str
    truck_name: Optional[str] = None
    end_ts: Optional[str] = None
    raw_address: Optional[str] = None
    city: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    formatted_address: Optional[str] = None
    source_url: Optional[str] = None
    confidence: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_coordinates(self) -> bool:
        """True when both coordinates are present and non-zero."""
        return bool(
            self.lat is not None and self.lng is not None and
            self.lat != 0 and self.lng != 0
        )

    @property
    def coordinate(self) -> Optional[Coordinate]:
        if not self.has_coordinates:
            return None
        return Coordinate(lat=self.lat, lng=self.lng)

    def apply_location(self, location: GeocodedLocation) -> None:
        """Merge geocoded coordinates into this event."""
        self.lat = location.lat
        self.lng = location.lng
        if location.formatted_address:
            self.formatted_address = location.formatted_address

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to the snake_case wire representation.

        Unknown fields received from the source are written back unchanged.
        """
        data = dict(self.extra)
        for name in EVENT_FIELDS:
            value = getattr(self, name)
            if name == 'formatted_address' and value is None:
                continue
            data[name] = value
        return data


@dataclass
class Truck:
    """Per-truck summary derived from enriched events."""
    name: str
    slug: str
    events: List[Event] = field(default_factory=list)
    total_events: int = 0
    last_seen: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'slug': self.slug,
            'events': [event.to_dict() for event in self.events],
            'total_events': self.total_events,
            'last_seen': self.last_seen
        }


@dataclass
class EnrichmentResult:
    """Result of a geocoding enrichment pass."""
    events: List[Event]
    passed_through: int = 0
    cache_hits: int = 0
    geocoded: int = 0
    failed: int = 0
    skipped: int = 0


@dataclass
class PipelineResult:
    """Summary of a single pipeline run."""
    status: str
    message: str
    events_fetched: int = 0
    events_written: int = 0
    trucks_written: int = 0
    cache_hits: int = 0
    geocoded: int = 0
    geocode_failures: int = 0
    duration_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 0 if self.status in ('ok', 'skipped', 'no_events') else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'message': self.message,
            'statistics': {
                'events_fetched': self.events_fetched,
                'events_written': self.events_written,
                'trucks_written': self.trucks_written,
                'cache_hits': self.cache_hits,
                'geocoded': self.geocoded,
                'geocode_failures': self.geocode_failures,
                'duration_seconds': round(self.duration_seconds, 2)
            },
            'errors': self.errors
        }
