"""REST client for the food truck events source."""
import logging
from typing import Any, List, Optional

import requests

from processor.event_schema import parse_event_rows
from processor.exceptions import SourceUnavailable
from processor.models import Event

logger = logging.getLogger(__name__)


class EventsApiClient:
    """Client for the events REST endpoint."""

    DEFAULT_RESOURCE = "events"

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        resource: str = DEFAULT_RESOURCE,
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the events client.

        Args:
            base_url: Base URL of the REST API (e.g. https://x.supabase.co/rest/v1)
            api_key: API key sent as apikey header and bearer token
            resource: Resource path appended to the base URL (default: events)
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse
        """
        self.base_url = base_url.rstrip('/') if base_url else None
        self.api_key = api_key
        self.resource = resource.strip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def url(self) -> Optional[str]:
        if not self.base_url:
            return None
        return f"{self.base_url}/{self.resource}"

    def fetch_events(self) -> List[Event]:
        """
        Fetch all events ordered by start time.

        Failures are logged and produce an empty list so later stages
        can tell "no data" apart from partial data.

        Returns:
            List of unenriched Event objects
        """
        logger.info(f"Events URL: {'SET' if self.base_url else 'NOT SET'}")
        logger.info(f"Events API key: {'SET' if self.api_key else 'NOT SET'}")

        try:
            rows = self._fetch_rows()
        except SourceUnavailable as e:
            logger.error(f"Event source unavailable: {e}")
            return []

        events = parse_event_rows(rows)
        logger.info(f"Successfully fetched {len(events)} events")
        return events

    def _fetch_rows(self) -> List[Any]:
        """
        Request the raw event rows.

        Returns:
            Decoded JSON array

        Raises:
            SourceUnavailable: If credentials are missing, the request fails,
                the status is not 2xx or the body is not a JSON array
        """
        if not self.base_url or not self.api_key:
            raise SourceUnavailable("event source credentials are not configured")

        logger.info(f"Making request to: {self.url}")
        try:
            response = self.session.get(
                self.url,
                headers=self._headers(),
                params={
                    'select': '*',
                    'order': 'start_ts.asc'
                },
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise SourceUnavailable(f"request failed: {e}") from e

        logger.info(f"Response code: {response.status_code}")
        if not 200 <= response.status_code < 300:
            raise SourceUnavailable(
                f"unexpected status {response.status_code}: "
                f"{response.text[:200]}",
                status_code=response.status_code
            )

        try:
            rows = response.json()
        except ValueError as e:
            raise SourceUnavailable(f"response is not valid JSON: {e}") from e

        if rows is None:
            return []
        if not isinstance(rows, list):
            raise SourceUnavailable(
                f"expected a JSON array, got {type(rows).__name__}"
            )
        return rows

    def _headers(self) -> dict:
        return {
            'apikey': self.api_key,
            'Authorization': f"Bearer {self.api_key}",
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'Accept-Encoding': 'identity'
        }
