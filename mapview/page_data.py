"""Typed loading of event data for the map and list views."""
import json
import logging
import math
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from bs4 import BeautifulSoup

from processor.event_schema import parse_event_rows
from processor.models import Event

logger = logging.getLogger(__name__)


def load_site_events(path: Union[str, Path]) -> List[Event]:
    """
    Load the enriched events written by the pipeline.

    Args:
        path: Path to events.json

    Returns:
        List of Event objects

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not a JSON array
    """
    with open(path, encoding='utf-8') as f:
        rows = json.load(f)
    if not isinstance(rows, list):
        raise ValueError(f"{path}: expected a JSON array")
    return parse_event_rows(rows)


def events_by_id(events: Sequence[Event]) -> Dict[str, Event]:
    """Index events by id."""
    return {event.id: event for event in events}


def load_events_from_page(html: str, site_events: Sequence[Event]) -> List[Event]:
    """
    Build the event list from server-rendered event cards.

    Cards carry the id and coordinates as data attributes and show truck,
    venue and location text. Timestamps and the source URL are not in the
    card markup and come from the matching site event.

    Args:
        html: Page markup containing .event-card elements
        site_events: Enriched events used to fill in the missing details

    Returns:
        One Event per card with a data-event-id, in page order
    """
    soup = BeautifulSoup(html, 'html.parser')
    known = events_by_id(site_events)
    events = []

    for card in soup.select('.event-card'):
        button = card.select_one('[data-event-id]')
        if button is None:
            continue

        event_id = button.get('data-event-id')
        if not event_id:
            continue

        full = known.get(event_id)
        if full is None:
            logger.warning(f"No site data for event card {event_id}")

        raw_address, city = _parse_location(card.select_one('.event-card__location'))
        lat = _parse_float(button.get('data-lat'))
        lng = _parse_float(button.get('data-lng'))
        if lat is None or lng is None:
            lat, lng = None, None

        events.append(Event(
            id=event_id,
            start_ts=full.start_ts if full else '',
            end_ts=full.end_ts if full else None,
            venue=_text(card.select_one('.event-card__venue')),
            truck_name=_text(card.select_one('.event-card__truck')) or None,
            raw_address=raw_address,
            city=city,
            lat=lat,
            lng=lng,
            source_url=full.source_url if full else None
        ))

    logger.info(f"Loaded {len(events)} events from page markup")
    return events


def _text(element) -> str:
    return element.get_text(strip=True) if element is not None else ''


def _parse_location(element):
    """Split "📍 address, city" card text into (raw_address, city)."""
    if element is None or 'event-card__location--unavailable' in (element.get('class') or []):
        return '', ''

    text = element.get_text(strip=True).replace('📍', '').strip()
    if ',' in text:
        raw_address, _, rest = text.partition(',')
        city = rest.split(',')[0].strip()
        return raw_address.strip(), city
    return text, ''


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None
