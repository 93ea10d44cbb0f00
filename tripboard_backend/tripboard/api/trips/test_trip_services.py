# tripboard/api/trips/test_trip_services.py
"""여행 저장소 어댑터 테스트 (FakeFirestore 사용)"""

import pytest
from datetime import datetime, date, timezone

from tripboard.api.trips.services import TripService
from tripboard.core.errors import NotFound, SubscriptionError, WriteError
from tripboard.models.fields import CLEAR, Set
from tripboard.models.trip import CoverColor, FlightInfo, FlightLeg, NewTrip, TripUpdate
from tripboard.utils.trip_view import trip_duration_days

UTC = timezone.utc
RETRY = {'max_retries': 2, 'backoff_seconds': 0, 'max_backoff_seconds': 0}


@pytest.fixture
def trip_service(fake_db):
    return TripService(db=fake_db, subscription_options=RETRY)


def new_trip(title='도쿄 여행', start=date(2025, 6, 1), end=date(2025, 6, 6), **kwargs):
    return NewTrip(title=title, destination='도쿄', start_date=start, end_date=end, **kwargs)


def flight():
    return FlightInfo(airline='ANA', flight_number='NH862', departure_time=datetime(2025, 6, 1, 0, 0, tzinfo=UTC),
                      arrival_time=datetime(2025, 6, 1, 2, 20, tzinfo=UTC), departure_airport='GMP',
                      arrival_airport='HND', departure_timezone='+09:00', arrival_timezone='+09:00')


def test_create_then_read_round_trip(trip_service, fake_db):
    trip_id = trip_service.create_trip(new_trip(), 'user-1')

    trip = trip_service.get_trip(trip_id)

    assert trip.members == ['user-1']
    assert trip.created_by == 'user-1'
    assert trip.created_at is not None
    assert (trip.start_date, trip.end_date) == (date(2025, 6, 1), date(2025, 6, 6))
    assert trip_duration_days(trip) == 6
    # 날짜는 자정 UTC Timestamp 로 저장
    assert fake_db.store[f'trips/{trip_id}']['start_date'] == datetime(2025, 6, 1, tzinfo=UTC)
    # 값이 없는 선택 필드는 저장하지 않음
    assert 'outbound_flight' not in fake_db.store[f'trips/{trip_id}']
    assert 'cover_color' not in fake_db.store[f'trips/{trip_id}']


def test_list_trips_filters_by_member_and_sorts_by_start_date(trip_service):
    trip_service.create_trip(new_trip('가을', date(2025, 10, 1), date(2025, 10, 3)), 'user-1')
    trip_service.create_trip(new_trip('여름', date(2025, 7, 1), date(2025, 7, 3)), 'user-1')
    trip_service.create_trip(new_trip('남의 여행', date(2025, 1, 1), date(2025, 1, 2)), 'user-2')

    assert [t.title for t in trip_service.list_trips('user-1')] == ['여름', '가을']


def test_subscribe_trips_emits_and_stops_after_dispose(trip_service):
    received = []
    subscription = trip_service.subscribe_trips('user-1', received.append)
    trip_service.create_trip(new_trip('첫 여행'), 'user-1')

    subscription.dispose()
    subscription.dispose()
    trip_service.create_trip(new_trip('두 번째 여행'), 'user-1')

    assert [[t.title for t in trips] for trips in received] == [[], ['첫 여행']]


def test_subscribe_trip_emits_none_after_delete(trip_service):
    trip_id = trip_service.create_trip(new_trip(), 'user-1')
    received = []
    subscription = trip_service.subscribe_trip(trip_id, received.append)

    trip_service.delete_trip(trip_id)
    subscription.dispose()

    assert received[0].id == trip_id
    assert received[-1] is None


def test_subscribe_retries_then_fails(trip_service, fake_db):
    fake_db.listen_failures = 2
    subscription = trip_service.subscribe_trips('user-1', lambda trips: None)
    assert subscription.is_active
    subscription.dispose()

    fake_db.listen_failures = 10
    with pytest.raises(SubscriptionError):
        trip_service.subscribe_trips('user-1', lambda trips: None)


def test_update_trip_set_clear_unchanged(trip_service, fake_db):
    trip_id = trip_service.create_trip(new_trip(outbound_flight=flight(), cover_color=CoverColor.FOREST), 'user-1')

    trip_service.update_trip(trip_id, TripUpdate(title=Set('오사카 여행'), outbound_flight=CLEAR))

    stored = fake_db.store[f'trips/{trip_id}']
    assert stored['title'] == '오사카 여행'
    assert 'outbound_flight' not in stored
    assert stored['cover_color'] == 'forest'
    assert stored['destination'] == '도쿄'


def test_empty_update_is_noop(trip_service, fake_db):
    trip_id = trip_service.create_trip(new_trip(), 'user-1')
    fake_db.fail_writes = True
    trip_service.update_trip(trip_id, TripUpdate())


def test_set_and_clear_flight(trip_service):
    trip_id = trip_service.create_trip(new_trip(), 'user-1')

    trip_service.set_flight(trip_id, FlightLeg.RETURN, flight())
    assert trip_service.get_trip(trip_id).return_flight == flight()

    trip_service.clear_flight(trip_id, FlightLeg.RETURN)
    assert trip_service.get_trip(trip_id).return_flight is None


def test_delete_trip_keeps_activities(trip_service, fake_db):
    trip_id = trip_service.create_trip(new_trip(), 'user-1')
    fake_db.store[f'trips/{trip_id}/activities/a1'] = {'title': '남은 활동'}

    trip_service.delete_trip(trip_id)

    with pytest.raises(NotFound):
        trip_service.get_trip(trip_id)
    assert f'trips/{trip_id}/activities/a1' in fake_db.store


def test_write_failures_raise_write_error(trip_service, fake_db):
    trip_id = trip_service.create_trip(new_trip(), 'user-1')
    fake_db.fail_writes = True

    with pytest.raises(WriteError):
        trip_service.create_trip(new_trip(), 'user-1')
    with pytest.raises(WriteError):
        trip_service.update_trip(trip_id, TripUpdate(title=Set('x')))
    with pytest.raises(WriteError):
        trip_service.delete_trip(trip_id)


def test_update_missing_trip_raises_not_found(trip_service):
    with pytest.raises(NotFound):
        trip_service.update_trip('missing', TripUpdate(title=Set('x')))
