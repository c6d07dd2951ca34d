"""Info window content for event markers."""
from datetime import datetime, tzinfo
from typing import Optional
from urllib.parse import urlsplit

from jinja2 import Environment, select_autoescape

from processor.models import Event

DIRECTIONS_URL = "https://www.google.com/maps/dir/?api=1&destination={lat},{lng}"

_env = Environment(autoescape=select_autoescape(default=True, default_for_string=True))

INFO_WINDOW_TEMPLATE = _env.from_string("""\
<div class="map-info">
  <h3 class="map-info__title">{{ event.truck_name or '' }}</h3>
  <p class="map-info__venue">{{ event.venue }}</p>
  <p class="map-info__datetime">📅 {{ when }}</p>
  <p class="map-info__address">{{ address }}</p>
  <div class="map-info__actions">
    <a href="{{ directions_url }}" target="_blank" class="btn btn--small btn--secondary">Directions</a>
    {%- if event.source_url %}
    <a href="{{ event.source_url }}" target="_blank" class="btn btn--small btn--primary">{{ source_label }}</a>
    {%- endif %}
  </div>
</div>
""")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, accepting a trailing Z."""
    if not value:
        return None
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_event_datetime(
    start_ts: Optional[str],
    end_ts: Optional[str] = None,
    tz: Optional[tzinfo] = None
) -> str:
    """
    Format an event's time span as shown on the event cards.

    "Sep 27 09:08 - 11:00" when there is a distinct end time,
    "Sep 27 09:08+" otherwise, and "Time TBD" without a start time.

    Args:
        start_ts: ISO-8601 start timestamp
        end_ts: ISO-8601 end timestamp
        tz: Zone to display in; aware timestamps keep their own offset
            when omitted
    """
    start = parse_timestamp(start_ts)
    if start is None:
        return 'Time TBD'
    end = parse_timestamp(end_ts)

    if tz is not None:
        start = _to_zone(start, tz)
        end = _to_zone(end, tz) if end is not None else None

    date_str = f"{start:%b} {start.day}"
    start_time = f"{start:%H:%M}"

    if end is not None and not _same_instant(start, end):
        return f"{date_str} {start_time} - {end:%H:%M}"
    return f"{date_str} {start_time}+"


SOURCE_LABELS = (
    (('instagram.com',), 'View on Instagram'),
    (('facebook.com',), 'View on Facebook'),
    (('twitter.com', 'x.com'), 'View on Twitter'),
)


def source_link_label(source_url: Optional[str]) -> str:
    """Link text naming the platform an event was posted on."""
    try:
        host = urlsplit(source_url or '').hostname or ''
    except ValueError:
        host = ''
    for domains, label in SOURCE_LABELS:
        if any(host == domain or host.endswith(f".{domain}") for domain in domains):
            return label
    return 'View Source'


def build_info_window_content(event: Event, tz: Optional[tzinfo] = None) -> str:
    """Render the HTML shown in an event marker's info window."""
    address = event.raw_address or ''
    if event.city:
        address = f"{address}, {event.city}"

    return INFO_WINDOW_TEMPLATE.render(
        event=event,
        when=format_event_datetime(event.start_ts, event.end_ts, tz),
        address=address,
        directions_url=DIRECTIONS_URL.format(lat=event.lat, lng=event.lng),
        source_label=source_link_label(event.source_url)
    )


def _to_zone(value: datetime, tz: tzinfo) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def _same_instant(start: datetime, end: datetime) -> bool:
    # Naive and aware datetimes never compare equal
    if (start.tzinfo is None) != (end.tzinfo is None):
        return False
    return start == end
