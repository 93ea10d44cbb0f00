# tripboard/api/test_streaming.py
"""SSE 브리지 테스트"""

import json
import queue

from tripboard.api.streaming import event_stream, format_sse
from tripboard.core.errors import SubscriptionError
from tripboard.services.subscription import SubscriptionSlot


class StubSubscription:
    def __init__(self):
        self.dispose_calls = 0
        self.alive_checks = 0

    @property
    def disposed(self):
        return self.dispose_calls > 0

    def ensure_alive(self):
        self.alive_checks += 1
        return True

    def dispose(self):
        self.dispose_calls += 1


def slot_holding(subscription, key='trips'):
    slot = SubscriptionSlot()
    slot.switch(key, lambda _key: subscription)
    return slot


def test_format_sse():
    frame = format_sse('snapshot', [{'title': '도쿄'}])
    assert frame.startswith('event: snapshot\ndata: ')
    assert frame.endswith('\n\n')
    assert json.loads(frame.split('data: ', 1)[1]) == [{'title': '도쿄'}]


def test_event_stream_yields_events_and_heartbeats_then_disposes():
    subscription = StubSubscription()
    closed = []
    events = queue.Queue()
    events.put(('snapshot', []))
    events.put(('error', SubscriptionError('끊김').to_dict()))

    stream = event_stream(slot_holding(subscription), events, heartbeat_seconds=0.01,
                          on_close=lambda: closed.append(True))
    first = next(stream)
    second = next(stream)
    heartbeat = next(stream)
    stream.close()

    assert first == 'event: snapshot\ndata: []\n\n'
    assert second.startswith('event: error\n')
    assert 'SUBSCRIPTION_FAILED' in second
    assert heartbeat == ': heartbeat\n\n'
    assert subscription.alive_checks == 1
    assert subscription.dispose_calls == 1
    assert closed == [True]


def test_event_stream_stops_after_session_end():
    subscription = StubSubscription()
    slot = slot_holding(subscription)
    events = queue.Queue()
    checks = []

    def check_session():
        checks.append(True)
        slot.clear()
        events.put(('session_end', {'error_code': 'UNAUTHORIZED_EMAIL'}))

    frames = list(event_stream(slot, events, heartbeat_seconds=0.01, check_session=check_session))

    assert frames[0] == ': heartbeat\n\n'
    assert frames[1].startswith('event: session_end\n')
    assert len(frames) == 2
    assert checks == [True]
    assert subscription.dispose_calls == 1


def test_trip_stream_route_sends_initial_snapshot_and_disposes(client, auth_headers, fake_db):
    headers = auth_headers('user-1')

    response = client.get('/api/trips/stream', headers=headers)
    assert response.status_code == 200
    assert response.mimetype == 'text/event-stream'
    assert len(fake_db.watches) == 1

    first = next(iter(response.response))
    response.close()

    assert b'event: snapshot' in first
    assert fake_db.watches == []


def test_trip_stream_ends_when_account_leaves_allow_list(client, auth_headers, fake_db):
    fake_db.store['users/u1'] = {'uid': 'u1', 'email': 'traveler@example.com'}
    headers = auth_headers('u1')

    response = client.get('/api/trips/stream', headers=headers)
    assert response.status_code == 200
    frames = iter(response.response)
    assert b'event: snapshot' in next(frames)

    fake_db.store['users/u1']['email'] = 'removed@example.com'
    rest = b''.join(frames)
    response.close()

    assert b'event: session_end' in rest
    assert b'UNAUTHORIZED_EMAIL' in rest
    assert fake_db.watches == []

    response = client.get('/api/trips/', headers=headers)
    assert response.status_code == 401
    assert response.get_json()['error_code'] == 'TOKEN_REVOKED'
