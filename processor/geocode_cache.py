"""Persistent cache of geocoded locations keyed by composite address."""
import json
import logging
import math
from pathlib import Path
from typing import Dict, Optional, Union

from processor.exceptions import CacheCorrupt
from processor.models import Event, GeocodedLocation
from storage.json_persister import write_json_atomic

logger = logging.getLogger(__name__)


def cache_key(event: Event) -> str:
    """Build the venue|raw_address|city composite key for an event."""
    return '|'.join(
        part or '' for part in (event.venue, event.raw_address, event.city)
    )


class GeocodeCache:
    """
    Composite address key to location mapping, persisted as one JSON file.

    Entries never expire and are never overwritten: once a key is cached,
    it resolves to the same location on every later run.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._entries: Dict[str, GeocodedLocation] = {}
        self._dirty = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @property
    def dirty(self) -> bool:
        return self._dirty

    def get(self, key: str) -> Optional[GeocodedLocation]:
        return self._entries.get(key)

    def put(self, key: str, location: GeocodedLocation) -> bool:
        """
        Add a location for a key.

        Returns:
            True if the cache changed, False if the key was already cached
        """
        existing = self._entries.get(key)
        if existing is not None:
            if existing != location:
                logger.warning(
                    f"Ignoring new location for cached key '{key}'"
                )
            return False

        self._entries[key] = location
        self._dirty = True
        return True

    def load_from_disk(self) -> int:
        """
        Load entries from the cache file.

        A missing or unreadable file yields an empty cache.

        Returns:
            Number of entries loaded
        """
        self._entries = {}
        self._dirty = False

        if not self.path.exists():
            logger.info(f"No geocode cache at {self.path}, starting empty")
            return 0

        try:
            self._entries = self._read()
        except CacheCorrupt as e:
            logger.warning(f"Could not load geocode cache: {e}")
            self._entries = {}

        logger.info(f"Loaded {len(self._entries)} cached locations")
        return len(self._entries)

    def flush_to_disk(self) -> bool:
        """
        Write the whole cache back to disk if it changed.

        Returns:
            True if the file was written
        """
        if not self._dirty and self.path.exists():
            return False

        data = {
            key: location.to_dict()
            for key, location in sorted(self._entries.items())
        }
        write_json_atomic(self.path, data)
        self._dirty = False
        logger.info(f"Saved {len(data)} cached locations to {self.path}")
        return True

    def _read(self) -> Dict[str, GeocodedLocation]:
        try:
            with open(self.path, encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            raise CacheCorrupt(f"{self.path}: {e}") from e

        if not isinstance(raw, dict):
            raise CacheCorrupt(
                f"{self.path}: expected an object, got {type(raw).__name__}"
            )

        entries = {}
        for key, value in raw.items():
            location = self._entry_to_location(value)
            if location is None:
                logger.warning(f"Dropping malformed cache entry '{key}'")
                continue
            entries[key] = location
        return entries

    def _entry_to_location(self, value) -> Optional[GeocodedLocation]:
        if not isinstance(value, dict):
            return None
        lat = value.get('lat')
        lng = value.get('lng')
        for coord in (lat, lng):
            if isinstance(coord, bool) or not isinstance(coord, (int, float)):
                return None
            if not math.isfinite(coord):
                return None
        formatted_address = value.get('formatted_address')
        if formatted_address is not None and not isinstance(formatted_address, str):
            formatted_address = None
        return GeocodedLocation(
            lat=float(lat),
            lng=float(lng),
            formatted_address=formatted_address
        )
