"""Schema validation for event rows received from the event source."""
import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Tuple

from processor.exceptions import InvalidEventRecord
from processor.models import EVENT_FIELDS, Event

logger = logging.getLogger(__name__)

OPTIONAL_STRING_FIELDS = (
    'truck_name',
    'end_ts',
    'raw_address',
    'city',
    'source_url',
    'formatted_address',
)


def parse_event_rows(rows: Iterable[Any]) -> List[Event]:
    """
    Convert raw source rows into Event objects.

    Rows that do not match the schema are logged and skipped.

    Args:
        rows: Decoded JSON rows from the event source

    Returns:
        List of Event objects in source order
    """
    events = []
    skipped = 0

    for index, row in enumerate(rows):
        try:
            events.append(parse_event_row(row))
        except InvalidEventRecord as e:
            skipped += 1
            logger.warning(f"Skipping event row {index}: {e}")

    if skipped:
        logger.info(
            f"Parsed {len(events)} valid events out of "
            f"{len(events) + skipped} rows"
        )
    return events


def parse_event_row(row: Any) -> Event:
    """
    Convert a single source row into an Event.

    Args:
        row: Decoded JSON object with snake_case event fields

    Returns:
        Event object

    Raises:
        InvalidEventRecord: If a required field is missing or has the
            wrong type. Optional fields of the wrong type are dropped to
            None with a warning
    """
    if not isinstance(row, dict):
        raise InvalidEventRecord(
            f"expected an object, got {type(row).__name__}"
        )

    event_id = _parse_id(row.get('id'))
    start_ts = _require_string(row, 'start_ts')
    venue = _require_string(row, 'venue', allow_empty=True)

    optional = {
        name: _optional_string(row, name, event_id)
        for name in OPTIONAL_STRING_FIELDS
    }
    lat, lng = _parse_coordinates(event_id, row.get('lat'), row.get('lng'))

    return Event(
        id=event_id,
        start_ts=start_ts,
        venue=venue,
        lat=lat,
        lng=lng,
        confidence=_optional_number(row, 'confidence', event_id),
        extra={k: v for k, v in row.items() if k not in EVENT_FIELDS},
        **optional
    )


def _parse_id(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        raise InvalidEventRecord("missing required field: id")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    raise InvalidEventRecord(f"invalid id: {value!r}")


def _require_string(row: Dict[str, Any], name: str,
                    allow_empty: bool = False) -> str:
    value = row.get(name)
    if value is None:
        raise InvalidEventRecord(f"missing required field: {name}")
    if not isinstance(value, str):
        raise InvalidEventRecord(
            f"field {name} must be a string, got {type(value).__name__}"
        )
    if not allow_empty and not value.strip():
        raise InvalidEventRecord(f"field {name} is empty")
    return value


def _optional_string(row: Dict[str, Any], name: str,
                     event_id: str) -> Optional[str]:
    value = row.get(name)
    if value is None or isinstance(value, str):
        return value
    _warn_dropped(event_id, name, value, 'a string')
    return None


def _optional_number(row: Dict[str, Any], name: str,
                     event_id: str) -> Optional[float]:
    value = row.get(name)
    if value is None or _is_number(value):
        return value
    _warn_dropped(event_id, name, value, 'a number')
    return None


def _warn_dropped(event_id: str, name: str, value: Any, expected: str) -> None:
    logger.warning(
        f"Event {event_id}: field {name} must be {expected} or null, "
        f"got {type(value).__name__} {value!r}; dropping it"
    )


def _parse_coordinates(event_id: str, lat: Any,
                       lng: Any) -> Tuple[Optional[float], Optional[float]]:
    """
    Validate a coordinate pair.

    Both values must be finite, in range and non-zero; anything else is
    treated as unresolved. Zero is the source's sentinel for "not geocoded".
    """
    if lat is None and lng is None:
        return None, None
    if lat == 0 and lng == 0 and _is_number(lat) and _is_number(lng):
        return None, None

    if not (_is_number(lat) and _is_number(lng)):
        logger.warning(
            f"Event {event_id} has incomplete or non-numeric coordinates "
            f"({lat!r}, {lng!r}); treating as unresolved"
        )
        return None, None

    if not (math.isfinite(lat) and math.isfinite(lng)) or \
            not (-90 <= lat <= 90 and -180 <= lng <= 180) or \
            lat == 0 or lng == 0:
        logger.warning(
            f"Event {event_id} has invalid coordinates ({lat}, {lng}); "
            f"treating as unresolved"
        )
        return None, None

    return float(lat), float(lng)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
