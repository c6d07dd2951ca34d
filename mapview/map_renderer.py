"""Marker and info window lifecycle for the events map."""
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from mapview.info_window import build_info_window_content, format_event_datetime
from processor.models import Coordinate, Event

logger = logging.getLogger(__name__)

# Reference point the map opens on before markers are placed
DEFAULT_CENTER = Coordinate(lat=40.4406, lng=-79.9959)
DEFAULT_ZOOM = 12
STREET_ZOOM = 15
FOCUS_ZOOM = 16
PIN_ICON_PATH = '/assets/images/pin.png'
MAX_ZOOM = 21
# Web Mercator tile size in pixels at zoom 0
TILE_SIZE = 256


class LatLngBounds:
    """Smallest box containing every extended point."""

    def __init__(self):
        self.south: Optional[float] = None
        self.west: Optional[float] = None
        self.north: Optional[float] = None
        self.east: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return self.south is None

    def extend(self, point: Coordinate) -> None:
        if self.is_empty:
            self.south = self.north = point.lat
            self.west = self.east = point.lng
            return
        self.south = min(self.south, point.lat)
        self.north = max(self.north, point.lat)
        self.west = min(self.west, point.lng)
        self.east = max(self.east, point.lng)

    @property
    def center(self) -> Optional[Coordinate]:
        if self.is_empty:
            return None
        return Coordinate(
            lat=(self.south + self.north) / 2,
            lng=(self.west + self.east) / 2
        )

    def to_dict(self) -> Optional[Dict[str, float]]:
        if self.is_empty:
            return None
        return {
            'south': self.south,
            'west': self.west,
            'north': self.north,
            'east': self.east
        }


class MapWidget:
    """
    Interactive map surface.

    Tracks the markers currently attached and the viewport. Markers
    attach and detach themselves through Marker.set_map.
    """

    def __init__(self, center: Coordinate = DEFAULT_CENTER, zoom: int = DEFAULT_ZOOM,
                 width: int = 640, height: int = 480):
        self.center = center
        self.zoom = zoom
        self.width = width
        self.height = height
        self.bounds: Optional[LatLngBounds] = None
        self.markers: List['Marker'] = []

    def set_center(self, center: Coordinate) -> None:
        self.center = center

    def set_zoom(self, zoom: int) -> None:
        self.zoom = zoom

    def fit_bounds(self, bounds: LatLngBounds) -> None:
        """Center on the bounds and pick the largest zoom that shows them whole."""
        if bounds.is_empty:
            return
        self.bounds = bounds
        self.center = bounds.center
        self.zoom = self.zoom_for_bounds(bounds)

    def zoom_for_bounds(self, bounds: LatLngBounds) -> int:
        lat_fraction = (_mercator_y(bounds.north) - _mercator_y(bounds.south)) / math.pi
        lng_span = bounds.east - bounds.west
        if lng_span < 0:
            lng_span += 360
        lng_fraction = lng_span / 360

        zooms = [MAX_ZOOM]
        if lat_fraction > 0:
            zooms.append(math.log2(self.height / TILE_SIZE / lat_fraction))
        if lng_fraction > 0:
            zooms.append(math.log2(self.width / TILE_SIZE / lng_fraction))
        return max(0, int(math.floor(min(zooms))))

    def clear_bounds(self) -> None:
        self.bounds = None


def _mercator_y(lat: float) -> float:
    sin = max(min(math.sin(math.radians(lat)), 0.9999), -0.9999)
    return math.log((1 + sin) / (1 - sin)) / 2


class Marker:
    """A pin on the map with click listeners."""

    def __init__(self, position: Coordinate, title: str = '',
                 icon_url: Optional[str] = None):
        self.position = position
        self.title = title
        self.icon_url = icon_url
        self.map: Optional[MapWidget] = None
        self._listeners: Dict[str, List[Callable[[], None]]] = {}

    def set_map(self, map_widget: Optional[MapWidget]) -> None:
        """Attach to a map, or detach with None."""
        if self.map is map_widget:
            return
        if self.map is not None:
            self.map.markers.remove(self)
        self.map = map_widget
        if map_widget is not None:
            map_widget.markers.append(self)

    def add_listener(self, event_name: str, handler: Callable[[], None]) -> None:
        self._listeners.setdefault(event_name, []).append(handler)

    def clear_listeners(self) -> None:
        self._listeners.clear()

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    def trigger(self, event_name: str) -> None:
        for handler in list(self._listeners.get(event_name, [])):
            handler()

    def click(self) -> None:
        self.trigger('click')


class InfoWindow:
    """Popup anchored to a marker."""

    def __init__(self, content: str):
        self.content = content
        self.map: Optional[MapWidget] = None
        self.anchor: Optional[Marker] = None

    @property
    def is_open(self) -> bool:
        return self.map is not None

    def open(self, map_widget: MapWidget, anchor: Marker) -> None:
        self.map = map_widget
        self.anchor = anchor

    def close(self) -> None:
        self.map = None
        self.anchor = None


class RendererState(Enum):
    EMPTY = 'empty'
    POPULATED = 'populated'


@dataclass
class MarkerBinding:
    """One event's marker and its info window."""
    event: Event
    marker: Marker
    info_window: InfoWindow


class MapRenderer:
    """
    Owns the markers and info windows for a set of events.

    Every render replaces the previous marker set completely, and at most
    one info window is open at any time.
    """

    def __init__(
        self,
        map_widget: Optional[MapWidget],
        base_url: str = '',
        single_marker_zoom: int = STREET_ZOOM,
        focus_zoom: int = FOCUS_ZOOM,
        tz=None
    ):
        """
        Initialize the renderer.

        Args:
            map_widget: Map to draw on, or None when the map failed to load
            base_url: Site base URL prefixed to the pin icon path
            single_marker_zoom: Zoom used when exactly one marker is shown
            focus_zoom: Zoom used when focusing a single event
            tz: Zone used to display event times in marker titles and popups
        """
        self.map = map_widget
        self.icon_url = f"{base_url.rstrip('/')}{PIN_ICON_PATH}"
        self.single_marker_zoom = single_marker_zoom
        self.focus_zoom = focus_zoom
        self.tz = tz
        self._bindings: List[MarkerBinding] = []

    @property
    def state(self) -> RendererState:
        return RendererState.POPULATED if self._bindings else RendererState.EMPTY

    @property
    def markers(self) -> List[Marker]:
        return [binding.marker for binding in self._bindings]

    @property
    def info_windows(self) -> List[InfoWindow]:
        return [binding.info_window for binding in self._bindings]

    @property
    def open_info_windows(self) -> List[InfoWindow]:
        return [window for window in self.info_windows if window.is_open]

    def render(self, events: Sequence[Event]) -> int:
        """
        Replace all markers with one marker per located event.

        Events without usable coordinates are skipped. The viewport is fit
        to the placed markers; a single marker gets street-level zoom.

        Args:
            events: Events to place on the map

        Returns:
            Number of markers placed
        """
        self.clear()

        if self.map is None:
            logger.error("Map not initialized; skipping markers")
            return 0

        bounds = LatLngBounds()
        skipped = 0

        for event in events:
            position = event.coordinate
            if position is None:
                skipped += 1
                logger.debug(
                    f"Skipping event {event.id} ({event.truck_name}): "
                    f"invalid coordinates ({event.lat}, {event.lng})"
                )
                continue

            self._bindings.append(self._create_binding(event, position))
            bounds.extend(position)

        logger.info(
            f"Created {len(self._bindings)} markers, skipped {skipped} events "
            f"without coordinates"
        )

        if self._bindings:
            self.map.fit_bounds(bounds)
            if len(self._bindings) == 1:
                self.map.set_zoom(self.single_marker_zoom)
        else:
            logger.info("No valid locations found for markers")

        return len(self._bindings)

    def clear(self) -> None:
        """Tear down all markers and info windows; the fitted bounds go with them."""
        for binding in self._bindings:
            binding.info_window.close()
            binding.marker.clear_listeners()
            binding.marker.set_map(None)
        self._bindings = []
        if self.map is not None:
            self.map.clear_bounds()

    def close_all_info_windows(self) -> None:
        for binding in self._bindings:
            binding.info_window.close()

    def open_info_window(self, binding: MarkerBinding) -> None:
        """Open one binding's info window, closing all others first."""
        if self.map is None:
            return
        self.close_all_info_windows()
        binding.info_window.open(self.map, binding.marker)

    def binding_for(self, event_id: str) -> Optional[MarkerBinding]:
        for binding in self._bindings:
            if binding.event.id == event_id:
                return binding
        return None

    def focus_on_event(self, event_id: str) -> bool:
        """
        Open an event's info window and center the map on its marker.

        Returns:
            True if the event has a marker
        """
        binding = self.binding_for(event_id)
        if binding is None or self.map is None:
            return False

        self.open_info_window(binding)
        self.map.set_center(binding.marker.position)
        self.map.set_zoom(self.focus_zoom)
        return True

    def show_event(self, event: Event) -> bool:
        """
        Render a single event and open its info window.

        Returns:
            True if the event could be placed
        """
        if self.render([event]) == 0:
            return False
        self.open_info_window(self._bindings[0])
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of the rendered map for embedding in a page."""
        return {
            'state': self.state.value,
            'center': (
                {'lat': self.map.center.lat, 'lng': self.map.center.lng}
                if self.map is not None else None
            ),
            'zoom': self.map.zoom if self.map is not None else None,
            'bounds': (
                self.map.bounds.to_dict()
                if self.map is not None and self.map.bounds is not None else None
            ),
            'markers': [
                {
                    'event_id': binding.event.id,
                    'lat': binding.marker.position.lat,
                    'lng': binding.marker.position.lng,
                    'title': binding.marker.title,
                    'icon_url': binding.marker.icon_url,
                    'info_window': binding.info_window.content,
                    'open': binding.info_window.is_open
                }
                for binding in self._bindings
            ]
        }

    def _create_binding(self, event: Event, position: Coordinate) -> MarkerBinding:
        when = format_event_datetime(event.start_ts, event.end_ts, self.tz)
        marker = Marker(
            position=position,
            title=f"{event.truck_name or ''} at {event.venue} - {when}",
            icon_url=self.icon_url
        )
        marker.set_map(self.map)

        binding = MarkerBinding(
            event=event,
            marker=marker,
            info_window=InfoWindow(build_info_window_content(event, self.tz))
        )
        marker.add_listener('click', lambda: self.open_info_window(binding))
        return binding
