import io
import json
from http.client import IncompleteRead
from urllib.error import HTTPError, URLError
from urllib.parse import parse_qs, urlsplit

import pytest

from games.schema import STOREFRONT_FIELDS
from steam.client import SteamStoreClient, capsule_image_url, normalize_app_details


class FakeResponse:
    def __init__(self, body: bytes):
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class RecordingOpener:
    def __init__(self, body: bytes = b'', error: Exception | None = None):
        self.body = body
        self.error = error
        self.requests = []
        self.kwargs = []

    def __call__(self, request, **kwargs):
        self.requests.append(request)
        self.kwargs.append(kwargs)
        if self.error is not None:
            raise self.error
        return FakeResponse(self.body)


def _appdetails(appid, data, success=True):
    return {str(appid): {'success': success, 'data': data}}


PORTAL_DATA = {
    'name': 'Portal',
    'short_description': '  A puzzle game.  ',
    'release_date': {'coming_soon': False, 'date': '10 Oct, 2007'},
    'developers': ['Valve'],
    'publishers': ['Valve', 'Other'],
    'metacritic': {'score': 90, 'url': 'https://example.invalid'},
}


def test_normalize_app_details_extracts_storefront_fields():
    details = normalize_app_details(400, _appdetails(400, PORTAL_DATA))

    assert details == {
        'name': 'Portal',
        'description': 'A puzzle game.',
        'release_date': '10 Oct, 2007',
        'developer': 'Valve',
        'publisher': 'Valve',
        'review_score': 90,
    }


def test_normalize_app_details_leaves_missing_fields_null():
    details = normalize_app_details(5, _appdetails(5, {'name': 'Bare'}))

    assert set(details) == set(STOREFRONT_FIELDS)
    assert details['name'] == 'Bare'
    assert details['developer'] is None
    assert details['review_score'] is None
    assert details['release_date'] is None


@pytest.mark.parametrize(
    'payload',
    [
        None,
        [],
        {},
        {'400': {'success': False}},
        {'401': {'success': True, 'data': {'name': 'Wrong app'}}},
    ],
)
def test_normalize_app_details_rejects_unsuccessful_payloads(payload):
    assert normalize_app_details(400, payload) == {}


def test_fetch_app_details_requests_appid_and_normalizes():
    opener = RecordingOpener(json.dumps(_appdetails(400, PORTAL_DATA)).encode('utf-8'))
    client = SteamStoreClient(user_agent='Tester/2.0', timeout=3, opener=opener)

    details = client.fetch_app_details(400)

    assert details['name'] == 'Portal'
    request = opener.requests[0]
    parts = urlsplit(request.full_url)
    assert parts.path == '/api/appdetails'
    assert parse_qs(parts.query) == {'appids': ['400']}
    assert request.get_method() == 'GET'
    assert request.get_header('User-agent') == 'Tester/2.0'
    assert opener.kwargs[0] == {'timeout': 3}


def test_fetch_app_details_maps_http_errors_to_runtime_error():
    error = HTTPError(
        SteamStoreClient.APPDETAILS_URL, 503, 'Service Unavailable', {}, io.BytesIO(b'busy')
    )
    client = SteamStoreClient(opener=RecordingOpener(error=error))

    with pytest.raises(RuntimeError) as excinfo:
        client.fetch_app_details(400)

    assert '503' in str(excinfo.value)
    assert 'busy' in str(excinfo.value)


def test_fetch_app_details_rejects_invalid_json():
    client = SteamStoreClient(opener=RecordingOpener(b'<html>nope</html>'))

    with pytest.raises(RuntimeError, match='invalid JSON'):
        client.fetch_app_details(400)


def test_fetch_capsule_image_returns_bytes_from_capsule_url():
    opener = RecordingOpener(b'\xff\xd8jpeg-bytes')
    client = SteamStoreClient(opener=opener)

    assert client.fetch_capsule_image(620) == b'\xff\xd8jpeg-bytes'
    assert opener.requests[0].full_url == capsule_image_url(620)
    assert opener.kwargs[0] == {}
    assert opener.requests[0].get_header('User-agent') == 'GameEnricher/1.0'


def test_fetch_capsule_image_fails_on_network_or_empty_body():
    with pytest.raises(RuntimeError, match='Steam image fetch failed'):
        SteamStoreClient(opener=RecordingOpener(error=URLError('down'))).fetch_capsule_image(1)
    with pytest.raises(RuntimeError, match='empty image'):
        SteamStoreClient(opener=RecordingOpener(b'')).fetch_capsule_image(1)


class TruncatedResponse(FakeResponse):
    def read(self) -> bytes:
        raise IncompleteRead(b'\xff\xd8', 4096)


def truncated_opener(request, **kwargs):
    return TruncatedResponse(b'')


def test_truncated_responses_raise_runtime_error():
    client = SteamStoreClient(opener=truncated_opener)

    with pytest.raises(RuntimeError, match='Steam image fetch failed'):
        client.fetch_capsule_image(10)
    with pytest.raises(RuntimeError, match='Steam appdetails request failed'):
        client.fetch_app_details(10)
