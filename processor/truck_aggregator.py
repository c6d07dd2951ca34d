"""Group enriched events into per-truck summaries."""
import hashlib
import logging
import re
from typing import Dict, List

from processor.models import Event, Truck

logger = logging.getLogger(__name__)

_NON_SLUG_CHARS = re.compile(r'[^a-z0-9]+')


def slugify(name: str) -> str:
    """
    Build a URL slug from a truck name.

    Lowercases, collapses runs of non-alphanumerics into single hyphens and
    strips hyphens from both ends. Names with no usable characters get a
    slug derived from a hash of the name.
    """
    slug = _NON_SLUG_CHARS.sub('-', name.lower()).strip('-')
    if slug:
        return slug
    digest = hashlib.sha256(name.encode('utf-8')).hexdigest()
    return f"truck-{digest[:8]}"


class TruckAggregator:
    """Aggregator for truck summaries."""

    def aggregate(self, events: List[Event]) -> List[Truck]:
        """
        Group events by exact truck name.

        Names are compared case-sensitively. Events without a truck name
        are left out.

        Args:
            events: Enriched events in source order

        Returns:
            Trucks in order of first appearance
        """
        trucks: Dict[str, Truck] = {}
        unnamed = 0

        for event in events:
            name = event.truck_name
            if not name:
                unnamed += 1
                continue

            truck = trucks.get(name)
            if truck is None:
                truck = Truck(name=name, slug=slugify(name))
                trucks[name] = truck

            truck.events.append(event)
            truck.total_events += 1

            # ISO-8601 strings sort chronologically
            if truck.last_seen is None or event.start_ts > truck.last_seen:
                truck.last_seen = event.start_ts

        if unnamed:
            logger.info(f"Skipped {unnamed} events without a truck name")
        logger.info(f"Aggregated {len(trucks)} trucks from {len(events)} events")
        return list(trucks.values())
