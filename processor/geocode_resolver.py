"""Fill in missing event coordinates from the cache or the geocoder."""
import logging
from typing import List, Optional, Set

from fetcher.geocoding_api import GeocodingClient
from processor.exceptions import GeocodeFailure
from processor.geocode_cache import GeocodeCache, cache_key
from processor.models import EnrichmentResult, Event

logger = logging.getLogger(__name__)


class GeocodeResolver:
    """Resolver that enriches events with coordinates."""

    DEFAULT_REGION = "PA"

    def __init__(
        self,
        cache: GeocodeCache,
        client: Optional[GeocodingClient],
        region: str = DEFAULT_REGION
    ):
        """
        Initialize the resolver.

        Args:
            cache: Loaded geocode cache, written through on every lookup
            client: Geocoding client, or None to resolve from cache only
            region: Region appended to every geocoded address
        """
        self.cache = cache
        self.client = client
        self.region = region

    def resolve(self, events: List[Event]) -> EnrichmentResult:
        """
        Enrich events that lack coordinates.

        Each uncached composite key is sent to the geocoder at most once per
        call; keys that fail stay unresolved for the rest of the run.

        Args:
            events: Events to enrich in place

        Returns:
            EnrichmentResult with the same events and per-outcome counts
        """
        result = EnrichmentResult(events=events)
        failed_keys: Set[str] = set()

        for event in events:
            if event.has_coordinates:
                result.passed_through += 1
                continue

            key = cache_key(event)
            cached = self.cache.get(key)
            if cached is not None:
                event.apply_location(cached)
                result.cache_hits += 1
                continue

            if self.client is None or key in failed_keys:
                result.skipped += 1
                continue

            address = self.build_address(event)
            try:
                location = self.client.geocode(address)
            except GeocodeFailure as e:
                logger.warning(f"Geocoding failed for {address}: {e}")
                failed_keys.add(key)
                result.failed += 1
                continue

            self.cache.put(key, location)
            event.apply_location(location)
            result.geocoded += 1
            logger.debug(f"Geocoded {address} -> {location.lat}, {location.lng}")

        logger.info(
            f"Enrichment complete: {result.passed_through} already located, "
            f"{result.cache_hits} from cache, {result.geocoded} geocoded, "
            f"{result.failed} failed, {result.skipped} skipped"
        )
        return result

    def build_address(self, event: Event) -> str:
        """Build the "{venue}, {raw_address}, {city}, {region}" lookup string."""
        parts = (event.venue, event.raw_address, event.city, self.region)
        return ', '.join(part.strip() for part in parts if part and part.strip())
