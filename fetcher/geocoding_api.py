"""Client for the address geocoding service."""
import logging
import math
from typing import Optional

import requests

from processor.exceptions import GeocodeFailure
from processor.models import GeocodedLocation

logger = logging.getLogger(__name__)


class GeocodingClient:
    """Client for a Google-compatible geocode/json endpoint."""

    BASE_URL = "https://maps.googleapis.com/maps/api"

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_URL,
        timeout: int = 10,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the geocoding client.

        Args:
            api_key: Geocoding API key
            base_url: API base URL (default: Google Maps API)
            timeout: HTTP request timeout in seconds (default: 10)
            session: Optional requests session to reuse
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def geocode(self, address: str) -> GeocodedLocation:
        """
        Geocode a free-form address.

        Args:
            address: Address string to look up

        Returns:
            Location of the first result

        Raises:
            GeocodeFailure: On network errors, non-2xx responses, non-OK
                status or a malformed result
        """
        try:
            response = self.session.get(
                f"{self.base_url}/geocode/json",
                params={
                    'address': address,
                    'key': self.api_key
                },
                timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise GeocodeFailure(f"request failed: {e}") from e
        except ValueError as e:
            raise GeocodeFailure(f"response is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise GeocodeFailure("unexpected response shape")

        status = payload.get('status')
        if status != 'OK':
            raise GeocodeFailure(f"status {status}", status=status)

        results = payload.get('results') or []
        if not results:
            raise GeocodeFailure("status OK but no results", status=status)

        first = results[0]
        try:
            location = first['geometry']['location']
            lat = float(location['lat'])
            lng = float(location['lng'])
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodeFailure(f"malformed result: {e}", status=status) from e

        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise GeocodeFailure(f"non-finite location ({lat}, {lng})", status=status)

        return GeocodedLocation(
            lat=lat,
            lng=lng,
            formatted_address=first.get('formatted_address')
        )
