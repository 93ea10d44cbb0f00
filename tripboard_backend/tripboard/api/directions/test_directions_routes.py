# tripboard/api/directions/test_directions_routes.py
"""경로 API 테스트"""

import pytest

from tripboard.services.directions_service import DirectionsService


class StubResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self._payload


class StubSession:
    def __init__(self, payload):
        self.payload = payload
        self.params = None

    def get(self, url, params=None, timeout=None):
        self.params = params
        return StubResponse(self.payload)


@pytest.fixture
def use_directions(app):
    def install(payload):
        session = StubSession(payload)
        app.services['directions'] = DirectionsService(api_key='test-key', session=session)
        return session
    return install


def test_duration(client, auth_headers, use_directions):
    session = use_directions({
        'status': 'OK',
        'routes': [{'legs': [{'duration': {'value': 1500, 'text': '25분'}, 'distance': {'text': '5 km'}}]}],
    })

    response = client.post('/api/directions/duration', headers=auth_headers(), json={
        'origin': '신주쿠역', 'destination': '시부야역', 'transit_modes': ['TRAIN'],
    })

    assert response.status_code == 200
    assert response.get_json() == {'duration_minutes': 25, 'duration_text': '25분', 'distance_text': '5 km'}
    assert session.params['mode'] == 'transit'
    assert session.params['transit_mode'] == 'train'


def test_duration_failure_is_502(client, auth_headers, use_directions):
    use_directions({'status': 'ZERO_RESULTS', 'routes': []})

    response = client.post('/api/directions/duration', headers=auth_headers(),
                           json={'origin': '어딘가', 'destination': '아무데나'})

    assert response.status_code == 502
    assert response.get_json()['error_code'] == 'DIRECTIONS_FAILED'


def test_duration_without_route_legs_is_502(client, auth_headers, use_directions):
    use_directions({'status': 'OK', 'routes': [{'legs': []}]})

    response = client.post('/api/directions/duration', headers=auth_headers(),
                           json={'origin': '신주쿠역', 'destination': '시부야역'})

    assert response.status_code == 502
    assert response.get_json()['error_code'] == 'DIRECTIONS_FAILED'


def test_route_and_place(client, auth_headers, use_directions):
    use_directions({})

    response = client.post('/api/directions/route', headers=auth_headers(),
                           json={'origin': 'A', 'destination': 'B', 'travel_mode': 'WALKING'})
    assert response.status_code == 200
    assert response.get_json()['kind'] == 'route'
    assert 'mode=walking' in response.get_json()['embed_url']

    response = client.post('/api/directions/place', headers=auth_headers(), json={'location': '도쿄타워'})
    assert response.get_json()['kind'] == 'place'

    response = client.post('/api/directions/place', headers=auth_headers(), json={})
    assert response.status_code == 400
