"""Great-circle distance filtering around the reference point."""
import logging
import math
from typing import Iterable, List

from processor.models import Coordinate, Event

logger = logging.getLogger(__name__)

# Pittsburgh city center
REFERENCE_POINT = Coordinate(lat=40.4406, lng=-79.9959)
RADIUS_MILES = 100
EARTH_RADIUS_MILES = 3959


def haversine_miles(origin: Coordinate, point: Coordinate) -> float:
    """Great-circle distance in miles between two points."""
    lat1 = math.radians(origin.lat)
    lng1 = math.radians(origin.lng)
    lat2 = math.radians(point.lat)
    lng2 = math.radians(point.lng)

    dlat = lat2 - lat1
    dlng = lng2 - lng1

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2)
    # Rounding can push a slightly past 1 for antipodal points
    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(min(1.0, a)))


def is_within_radius(
    event: Event,
    origin: Coordinate = REFERENCE_POINT,
    radius_miles: float = RADIUS_MILES
) -> bool:
    """
    Check whether an event lies within radius_miles of origin.

    Events with a missing or zero coordinate are never within range.
    """
    point = event.coordinate
    if point is None:
        return False
    return haversine_miles(origin, point) <= radius_miles


def filter_within_radius(
    events: Iterable[Event],
    origin: Coordinate = REFERENCE_POINT,
    radius_miles: float = RADIUS_MILES
) -> List[Event]:
    """Keep the events within radius_miles of origin, in order."""
    events = list(events)
    kept = []
    for event in events:
        if is_within_radius(event, origin, radius_miles):
            kept.append(event)
        else:
            logger.debug(
                f"Filtering out event {event.truck_name} at {event.venue} "
                f"({event.city}): unresolved or too far away"
            )

    logger.info(
        f"Found {len(kept)} of {len(events)} events within "
        f"{radius_miles} miles"
    )
    return kept
