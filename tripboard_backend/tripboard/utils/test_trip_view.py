# tripboard/utils/test_trip_view.py
"""화면 표시용 파생 값 계산 테스트"""

import pytest
from datetime import datetime, date, timezone, timedelta

from tripboard.models.activity import (
    Activity,
    ActivityType,
    ChecklistItem,
    PlaceDetails,
    TransitMode,
    TransitRoutingPreference,
    TransportDetails,
    TravelMode,
)
from tripboard.models.trip import FlightInfo, Trip
from tripboard.utils import trip_view
from tripboard.utils.trip_view import TripStatus

UTC = timezone.utc


def make_trip(start=date(2025, 6, 1), end=date(2025, 6, 6), **kwargs):
    return Trip(id='trip-1', title='도쿄 여행', destination='도쿄', start_date=start, end_date=end,
                created_by='user-1', members=['user-1'], **kwargs)


def make_activity(activity_id, start_time, activity_type=ActivityType.SIGHTSEEING, details=None, checklist=None):
    return Activity(id=activity_id, trip_id='trip-1', title=activity_id, type=activity_type,
                    start_time=start_time, details=details or PlaceDetails(), checklist=checklist)


def make_flight(departure, arrival, departure_timezone=None, arrival_timezone=None):
    return FlightInfo(airline='ANA', flight_number='NH862', departure_time=departure, arrival_time=arrival,
                      departure_airport='GMP', arrival_airport='HND',
                      departure_timezone=departure_timezone, arrival_timezone=arrival_timezone)


def test_trip_duration_is_inclusive():
    assert trip_view.trip_duration_days(make_trip()) == 6
    assert trip_view.trip_duration_days(make_trip(end=date(2025, 6, 1))) == 1


@pytest.mark.parametrize("now, expected", [
    (datetime(2025, 5, 31, 23, 59, tzinfo=UTC), TripStatus.UPCOMING),
    (datetime(2025, 6, 1, 0, 0, tzinfo=UTC), TripStatus.IN_PROGRESS),
    (datetime(2025, 6, 6, 23, 59, tzinfo=UTC), TripStatus.IN_PROGRESS),
    (datetime(2025, 6, 7, 0, 0, tzinfo=UTC), TripStatus.COMPLETED),
])
def test_trip_status_compares_calendar_days(now, expected):
    assert trip_view.trip_status(make_trip(), now) is expected


def test_trip_status_uses_offset_for_calendar_day():
    # UTC 로는 5월 31일이지만 +09:00 기준으로는 이미 6월 1일
    now = datetime(2025, 5, 31, 16, 0, tzinfo=UTC)
    assert trip_view.trip_status(make_trip(), now) is TripStatus.UPCOMING
    assert trip_view.trip_status(make_trip(), now, "+09:00") is TripStatus.IN_PROGRESS


def test_days_until_start():
    assert trip_view.days_until_start(make_trip(), date(2025, 5, 25)) == 7
    assert trip_view.days_until_start(make_trip(), date(2025, 6, 3)) == -2


def test_group_activities_by_day_places_each_activity_once():
    trip = make_trip(end=date(2025, 6, 3))
    activities = [
        make_activity('before', datetime(2025, 5, 31, 12, 0, tzinfo=UTC)),
        make_activity('day1-a', datetime(2025, 6, 1, 9, 0, tzinfo=UTC)),
        make_activity('day1-b', datetime(2025, 6, 1, 18, 0, tzinfo=UTC)),
        make_activity('day3', datetime(2025, 6, 3, 10, 0, tzinfo=UTC)),
        make_activity('after', datetime(2025, 6, 4, 10, 0, tzinfo=UTC)),
    ]

    buckets = trip_view.group_activities_by_day(trip, activities)

    assert [b.day for b in buckets] == [date(2025, 6, 1), date(2025, 6, 2), date(2025, 6, 3)]
    assert [a.id for a in buckets[0].activities] == ['day1-a', 'day1-b']
    assert buckets[1].is_empty
    assert [a.id for a in buckets[2].activities] == ['day3']
    placed = [a.id for b in buckets for a in b.activities]
    assert len(placed) == len(set(placed))


def test_flight_countdown_decomposes_remaining_time():
    now = datetime(2025, 5, 30, 0, 0, tzinfo=UTC)
    flight = make_flight(now + timedelta(days=2, hours=6, minutes=30), now + timedelta(days=2, hours=9))

    countdown = trip_view.flight_countdown(flight, now)

    assert countdown.has_departed is False
    assert countdown.time_left.to_dict() == {'days': 2, 'hours': 6, 'minutes': 30}


def test_flight_countdown_after_departure():
    departure = datetime(2025, 6, 1, 0, 0, tzinfo=UTC)
    flight = make_flight(departure, departure + timedelta(hours=2))

    countdown = trip_view.flight_countdown(flight, departure + timedelta(minutes=1))

    assert countdown.has_departed is True
    assert countdown.time_left is None


def test_countdown_progress_is_clamped():
    far = trip_view.Countdown(days=60, hours=0, minutes=0)
    half = trip_view.Countdown(days=15, hours=0, minutes=0)
    zero = trip_view.Countdown(days=0, hours=0, minutes=0)
    assert trip_view.countdown_progress(far) == 5.0
    assert trip_view.countdown_progress(half) == pytest.approx(50.0)
    assert trip_view.countdown_progress(zero) == 100.0


def test_local_time_uses_stored_offset():
    departure = datetime(2025, 6, 1, 23, 0, tzinfo=UTC)
    assert trip_view.format_local_time(departure, "+09:00") == "08:00"
    assert trip_view.local_date(departure, "+09:00") == date(2025, 6, 2)
    assert trip_view.format_local_day(departure, "+09:00") == "6월 2일"
    # offset 이 없으면 UTC 로 표시
    assert trip_view.format_local_time(departure, None) == "23:00"


def test_flight_duration():
    departure = datetime(2025, 6, 1, 1, 0, tzinfo=UTC)
    duration = trip_view.flight_duration(make_flight(departure, departure + timedelta(hours=13, minutes=5)))
    assert (duration.hours, duration.minutes) == (13, 5)


def test_checklist_ratio():
    assert trip_view.checklist_ratio([]) is None
    assert trip_view.checklist_ratio(None) is None
    assert trip_view.format_checklist_ratio([]) == ""

    items = [ChecklistItem(id='a', text='라멘', completed=True), ChecklistItem(id='b', text='스시')]
    progress = trip_view.checklist_ratio(items)
    assert (progress.completed, progress.total) == (1, 2)
    assert trip_view.format_checklist_ratio(items) == "1/2"


def test_route_summary_for_transport():
    details = TransportDetails(
        departure_location='신주쿠',
        arrival_location='아사쿠사',
        travel_mode=TravelMode.TRANSIT,
        transit_modes=[TransitMode.SUBWAY],
        transit_routing_preference=TransitRoutingPreference.FEWER_TRANSFERS,
        estimated_duration=35,
    )
    activity = make_activity('move', datetime(2025, 6, 1, 9, 0, tzinfo=UTC), ActivityType.TRANSPORT, details)

    assert trip_view.route_summary(activity) == "신주쿠 → 아사쿠사 · 대중교통 · 35분"
    assert trip_view.transit_preference_labels(details) == ["지하철", "환승 최소화"]


def test_route_summary_for_place_and_duration_format():
    activity = make_activity('temple', datetime(2025, 6, 1, 9, 0, tzinfo=UTC), details=PlaceDetails(location='센소지'))
    assert trip_view.route_summary(activity) == "센소지"
    assert trip_view.format_duration_minutes(95) == "1시간 35분"
    assert trip_view.format_duration_minutes(120) == "2시간"
    assert trip_view.format_duration_minutes(None) == ""
    assert trip_view.travel_mode_label(TravelMode.WALKING) == "도보"


def test_trip_overview_bundles_derived_values():
    now = datetime(2025, 5, 30, 0, 0, tzinfo=UTC)
    trip = make_trip(outbound_flight=make_flight(
        datetime(2025, 6, 1, 0, 0, tzinfo=UTC), datetime(2025, 6, 1, 2, 30, tzinfo=UTC), "+09:00", "+09:00"))
    activities = [make_activity('day2', datetime(2025, 6, 2, 3, 0, tzinfo=UTC),
                                checklist=[ChecklistItem(id='a', text='우산', completed=True)])]

    overview = trip_view.trip_overview(trip, activities, now)

    assert overview['duration_days'] == 6
    assert overview['status'] == 'upcoming'
    assert overview['days_until_start'] == 2
    assert overview['cover_color'] == 'blue'
    assert overview['flights']['return'] is None
    assert overview['flights']['outbound']['countdown'] == {'days': 2, 'hours': 0, 'minutes': 0}
    assert overview['flights']['outbound']['departure']['local_time'] == "09:00"
    assert len(overview['days']) == 6
    assert overview['days'][1]['activities'][0]['checklist_ratio'] == "1/1"
