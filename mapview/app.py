"""Events page composition: list view plus distance-filtered map."""
import logging
from typing import List, Optional, Sequence

from mapview.distance_filter import RADIUS_MILES, REFERENCE_POINT, filter_within_radius
from mapview.map_renderer import MapRenderer, MapWidget
from processor.models import Coordinate, Event, Truck

logger = logging.getLogger(__name__)


class FoodTruckMapApp:
    """
    Page controller for the events map.

    The list view always shows every event it was given. The map only
    shows events with coordinates within the radius, so the two counts may
    differ. A missing map never affects the list view.
    """

    def __init__(
        self,
        events: Sequence[Event],
        map_widget: Optional[MapWidget] = None,
        origin: Coordinate = REFERENCE_POINT,
        radius_miles: float = RADIUS_MILES,
        base_url: str = '',
        tz=None
    ):
        self.events = list(events)
        self.origin = origin
        self.radius_miles = radius_miles
        self.renderer = MapRenderer(map_widget, base_url=base_url, tz=tz)

    @property
    def list_events(self) -> List[Event]:
        return list(self.events)

    @property
    def map_events(self) -> List[Event]:
        return filter_within_radius(self.events, self.origin, self.radius_miles)

    def init(self) -> int:
        """
        Place markers for the current events.

        Returns:
            Number of markers placed, 0 if the map is unavailable
        """
        if self.renderer.map is None:
            logger.error("Map widget not available; showing list view only")
            return 0
        return self.renderer.render(self.map_events)

    def update_events(self, events: Sequence[Event]) -> int:
        """Replace the event set and re-render the map."""
        self.events = list(events)
        return self.init()

    def focus_on_event(self, event_id: str) -> bool:
        return self.renderer.focus_on_event(event_id)

    def render_truck(self, truck: Truck) -> int:
        """Show only one truck's events on the map."""
        events = filter_within_radius(truck.events, self.origin, self.radius_miles)
        logger.info(
            f"Filtered truck events: {len(events)} within {self.radius_miles} "
            f"miles (from {len(truck.events)} total)"
        )
        if self.renderer.map is None:
            logger.error("Map widget not available; skipping truck map")
            return 0
        return self.renderer.render(events)
