"""Unit tests for GeocodingClient."""
import pytest
import responses
from requests.exceptions import Timeout

from fetcher.geocoding_api import GeocodingClient
from processor.exceptions import GeocodeFailure

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


def ok_payload():
    return {
        'status': 'OK',
        'results': [
            {
                'geometry': {'location': {'lat': 40.4411, 'lng': -79.9962}},
                'formatted_address': '1 Market Sq, Pittsburgh, PA 15222, USA'
            },
            {
                'geometry': {'location': {'lat': 41.0, 'lng': -80.0}},
                'formatted_address': 'Somewhere else'
            }
        ]
    }


class TestGeocodingClient:
    """Test cases for GeocodingClient class."""

    @responses.activate
    def test_geocode_returns_first_result(self):
        """Test that the first result's location is used."""
        responses.add(responses.GET, GEOCODE_URL, json=ok_payload(), status=200)
        client = GeocodingClient(api_key='geo-key')

        location = client.geocode('Market Square, Pittsburgh, PA')

        assert location.lat == 40.4411
        assert location.lng == -79.9962
        assert location.formatted_address == '1 Market Sq, Pittsburgh, PA 15222, USA'

        request = responses.calls[0].request
        assert 'key=geo-key' in request.url
        assert 'address=Market+Square' in request.url

    @responses.activate
    def test_geocode_non_ok_status(self):
        """Test that a non-OK status raises GeocodeFailure."""
        responses.add(
            responses.GET, GEOCODE_URL,
            json={'status': 'ZERO_RESULTS', 'results': []}, status=200
        )
        client = GeocodingClient(api_key='geo-key')

        with pytest.raises(GeocodeFailure) as exc_info:
            client.geocode('Nowhere')

        assert exc_info.value.status == 'ZERO_RESULTS'

    @responses.activate
    def test_geocode_ok_without_results(self):
        """Test that OK with an empty result list is a failure."""
        responses.add(
            responses.GET, GEOCODE_URL,
            json={'status': 'OK', 'results': []}, status=200
        )

        with pytest.raises(GeocodeFailure):
            GeocodingClient(api_key='geo-key').geocode('Nowhere')

    @responses.activate
    def test_geocode_http_error(self):
        """Test that a non-2xx response raises GeocodeFailure."""
        responses.add(responses.GET, GEOCODE_URL, body="Server Error", status=500)

        with pytest.raises(GeocodeFailure):
            GeocodingClient(api_key='geo-key').geocode('Anywhere')

    @responses.activate
    def test_geocode_timeout(self):
        """Test that a timeout raises GeocodeFailure."""
        responses.add(responses.GET, GEOCODE_URL, body=Timeout("timed out"))

        with pytest.raises(GeocodeFailure):
            GeocodingClient(api_key='geo-key', timeout=10).geocode('Anywhere')

    @responses.activate
    def test_geocode_malformed_result(self):
        """Test that a result without geometry raises GeocodeFailure."""
        responses.add(
            responses.GET, GEOCODE_URL,
            json={'status': 'OK', 'results': [{'formatted_address': 'x'}]},
            status=200
        )

        with pytest.raises(GeocodeFailure):
            GeocodingClient(api_key='geo-key').geocode('Anywhere')

    @responses.activate
    def test_geocode_non_finite_location(self):
        """Test that NaN coordinates from the provider are not accepted."""
        responses.add(
            responses.GET, GEOCODE_URL,
            body='{"status": "OK", "results": [{"geometry": '
                 '{"location": {"lat": NaN, "lng": -79.99}}}]}',
            status=200,
            content_type='application/json'
        )

        with pytest.raises(GeocodeFailure):
            GeocodingClient(api_key='geo-key').geocode('Anywhere')
