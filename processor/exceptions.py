"""Exception hierarchy for the event pipeline."""
from typing import Optional


class FoodTruckError(Exception):
    """Base exception for all pipeline errors."""


class SourceUnavailable(FoodTruckError):
    """Event source credentials missing or the fetch failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class GeocodeFailure(FoodTruckError):
    """Geocoding provider returned a non-OK status or the call failed."""

    def __init__(self, message: str, status: Optional[str] = None):
        self.status = status
        super().__init__(message)


class CacheCorrupt(FoodTruckError):
    """Geocode cache file could not be read or parsed."""


class LockHeld(FoodTruckError):
    """Another pipeline run holds the lock."""

    def __init__(self, message: str, pid: Optional[int] = None,
                 started_at: Optional[float] = None):
        self.pid = pid
        self.started_at = started_at
        super().__init__(message)


class InvalidEventRecord(FoodTruckError):
    """Source row does not match the event schema."""
