# tripboard/utils/trip_view.py
"""
화면 표시용 파생 값 계산 모듈

저장하지 않는 값들(여행 일수, 진행 상태, 항공편 카운트다운, 일자별 활동 묶음,
체크리스트 진행률, 경로 표시 문자열)을 스냅샷과 '현재 시각'만으로 계산합니다.
모든 함수는 부수 효과가 없으며, now 는 항상 호출자가 넘겨줍니다.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from tripboard.models.activity import (
    Activity,
    ChecklistItem,
    TransportDetails,
    TravelMode,
    TransitMode,
    TransitRoutingPreference,
)
from tripboard.models.trip import FlightInfo, Trip
from tripboard.utils.datetime_utils import DateTimeUtils

MINUTES_PER_DAY = 24 * 60
# 카운트다운 진행 막대는 출발 30일 전부터 차오르는 것으로 표시합니다.
PROGRESS_WINDOW_MINUTES = 30 * MINUTES_PER_DAY
PROGRESS_MIN = 5.0
PROGRESS_MAX = 100.0

TRAVEL_MODE_LABELS = {
    TravelMode.TRANSIT: "대중교통",
    TravelMode.DRIVING: "자동차",
    TravelMode.WALKING: "도보",
    TravelMode.BICYCLING: "자전거",
}

TRANSIT_MODE_LABELS = {
    TransitMode.SUBWAY: "지하철",
    TransitMode.BUS: "버스",
    TransitMode.TRAIN: "기차",
    TransitMode.TRAM: "트램",
    TransitMode.RAIL: "철도",
}

ROUTING_PREFERENCE_LABELS = {
    TransitRoutingPreference.LESS_WALKING: "도보 최소화",
    TransitRoutingPreference.FEWER_TRANSFERS: "환승 최소화",
}


class TripStatus(Enum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Countdown:
    days: int
    hours: int
    minutes: int

    @property
    def total_minutes(self) -> int:
        return self.days * MINUTES_PER_DAY + self.hours * 60 + self.minutes

    def to_dict(self) -> Dict[str, int]:
        return {'days': self.days, 'hours': self.hours, 'minutes': self.minutes}


@dataclass(frozen=True)
class FlightCountdown:
    has_departed: bool
    time_left: Optional[Countdown] = None


@dataclass(frozen=True)
class ChecklistProgress:
    completed: int
    total: int

    def __str__(self):
        return f"{self.completed}/{self.total}"


@dataclass
class DayBucket:
    day: date
    activities: List[Activity] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.activities


# --- 여행 단위 ---

def _calendar_day(value: Union[date, datetime], utc_offset: Optional[str] = None) -> date:
    if isinstance(value, datetime):
        return DateTimeUtils.shift_by_offset(value, utc_offset).date()
    return value


def trip_duration_days(trip: Trip) -> int:
    """시작일과 종료일을 모두 포함한 여행 일수"""
    return (trip.end_date - trip.start_date).days + 1


def days_until_start(trip: Trip, now: Union[date, datetime], utc_offset: Optional[str] = None) -> int:
    return (trip.start_date - _calendar_day(now, utc_offset)).days


def trip_status(trip: Trip, now: Union[date, datetime], utc_offset: Optional[str] = None) -> TripStatus:
    """
    날짜 단위 비교로 여행 상태를 계산합니다.
    now 가 datetime 이면 utc_offset(없으면 UTC) 기준 달력 날짜로 바꿔서 비교합니다.
    """
    today = _calendar_day(now, utc_offset)
    if today < trip.start_date:
        return TripStatus.UPCOMING
    if today <= trip.end_date:
        return TripStatus.IN_PROGRESS
    return TripStatus.COMPLETED


def trip_days(trip: Trip) -> List[date]:
    return list(DateTimeUtils.date_range(trip.start_date, trip.end_date))


def group_activities_by_day(trip: Trip, activities: Sequence[Activity],
                            utc_offset: Optional[str] = None) -> List[DayBucket]:
    """
    여행 기간의 모든 날짜에 대해 버킷을 만들고, 활동을 시작 시각의 달력 날짜로 나눕니다.
    활동이 없는 날도 빈 버킷으로 남고, 기간 밖의 활동은 어느 버킷에도 들어가지 않습니다.
    입력 순서(시작 시각 오름차순)는 버킷 안에서도 유지됩니다.
    """
    buckets = [DayBucket(day=day) for day in trip_days(trip)]
    by_day = {bucket.day: bucket for bucket in buckets}
    for activity in activities:
        bucket = by_day.get(_calendar_day(activity.start_time, utc_offset))
        if bucket is not None:
            bucket.activities.append(activity)
    return buckets


# --- 항공편 ---

def flight_countdown(flight: FlightInfo, now: datetime) -> FlightCountdown:
    """출발까지 남은 시간을 일/시/분으로 분해합니다. 이미 출발했다면 카운트다운이 없습니다."""
    now = DateTimeUtils.to_utc(now)
    departure = DateTimeUtils.to_utc(flight.departure_time)
    if now > departure:
        return FlightCountdown(has_departed=True)

    total_minutes = int((departure - now).total_seconds() // 60)
    return FlightCountdown(
        has_departed=False,
        time_left=Countdown(
            days=total_minutes // MINUTES_PER_DAY,
            hours=(total_minutes // 60) % 24,
            minutes=total_minutes % 60,
        ),
    )


def countdown_progress(countdown: Countdown) -> float:
    """
    표시용 진행률(%). 실제 시간 구간에 비례하지 않는 장식용 값이며
    100 - (남은 분 / 30일) * 100 을 [5, 100] 범위로 자릅니다.
    """
    progress = PROGRESS_MAX - (countdown.total_minutes / PROGRESS_WINDOW_MINUTES * 100)
    return max(PROGRESS_MIN, min(PROGRESS_MAX, progress))


def flight_duration(flight: FlightInfo) -> Countdown:
    """실제 비행 시간 (도착 - 출발). days 는 항상 0 이고 시간은 24 를 넘을 수 있습니다."""
    diff = DateTimeUtils.to_utc(flight.arrival_time) - DateTimeUtils.to_utc(flight.departure_time)
    total_minutes = int(diff.total_seconds() // 60)
    return Countdown(days=0, hours=total_minutes // 60, minutes=total_minutes % 60)


def format_local_time(instant: datetime, utc_offset: Optional[str]) -> str:
    """저장된 offset 기준 현지 시각 'HH:MM'. 서버의 timezone 과 무관합니다."""
    return DateTimeUtils.shift_by_offset(instant, utc_offset).strftime('%H:%M')


def local_date(instant: datetime, utc_offset: Optional[str]) -> date:
    return DateTimeUtils.shift_by_offset(instant, utc_offset).date()


def format_local_day(instant: datetime, utc_offset: Optional[str]) -> str:
    local = DateTimeUtils.shift_by_offset(instant, utc_offset)
    return f"{local.month}월 {local.day}일"


def flight_view(flight: FlightInfo, now: datetime) -> Dict[str, Any]:
    countdown = flight_countdown(flight, now)
    duration = flight_duration(flight)
    view = {
        'airline': flight.airline,
        'flight_number': flight.flight_number,
        'departure': {
            'airport': flight.departure_airport,
            'local_time': format_local_time(flight.departure_time, flight.departure_timezone),
            'local_date': local_date(flight.departure_time, flight.departure_timezone).isoformat(),
            'local_day_label': format_local_day(flight.departure_time, flight.departure_timezone),
            'utc_offset': flight.departure_timezone,
        },
        'arrival': {
            'airport': flight.arrival_airport,
            'local_time': format_local_time(flight.arrival_time, flight.arrival_timezone),
            'local_date': local_date(flight.arrival_time, flight.arrival_timezone).isoformat(),
            'local_day_label': format_local_day(flight.arrival_time, flight.arrival_timezone),
            'utc_offset': flight.arrival_timezone,
        },
        'duration': {'hours': duration.hours, 'minutes': duration.minutes},
        'has_departed': countdown.has_departed,
        'countdown': None,
        'progress': None,
    }
    if countdown.time_left is not None:
        view['countdown'] = countdown.time_left.to_dict()
        view['progress'] = countdown_progress(countdown.time_left)
    return view


# --- 체크리스트 ---

def checklist_ratio(items: Optional[Sequence[ChecklistItem]]) -> Optional[ChecklistProgress]:
    """항목이 없으면 None (0/0 이나 NaN 대신 빈 값으로 표시)"""
    if not items:
        return None
    return ChecklistProgress(completed=sum(1 for item in items if item.completed), total=len(items))


def format_checklist_ratio(items: Optional[Sequence[ChecklistItem]]) -> str:
    progress = checklist_ratio(items)
    return str(progress) if progress else ""


# --- 경로/이동 수단 표시 ---

def format_duration_minutes(minutes: Optional[int]) -> str:
    if minutes is None:
        return ""
    hours, mins = divmod(int(minutes), 60)
    if hours and mins:
        return f"{hours}시간 {mins}분"
    if hours:
        return f"{hours}시간"
    return f"{mins}분"


def travel_mode_label(mode: Optional[TravelMode]) -> str:
    return TRAVEL_MODE_LABELS.get(mode or TravelMode.TRANSIT, "")


def transit_preference_labels(details: TransportDetails) -> List[str]:
    labels = [TRANSIT_MODE_LABELS[m] for m in details.transit_modes]
    if details.transit_routing_preference:
        labels.append(ROUTING_PREFERENCE_LABELS[details.transit_routing_preference])
    return labels


def location_label(activity: Activity) -> str:
    """교통 활동은 '출발 → 도착', 그 외에는 장소 이름"""
    details = activity.details
    if isinstance(details, TransportDetails):
        parts = [p for p in (details.departure_location, details.arrival_location) if p]
        return " → ".join(parts)
    return details.location or ""


def route_summary(activity: Activity) -> str:
    """예: '신주쿠 → 아사쿠사 · 대중교통 · 35분'"""
    details = activity.details
    if not isinstance(details, TransportDetails):
        return location_label(activity)
    parts = [location_label(activity), travel_mode_label(details.travel_mode)]
    if details.estimated_duration is not None:
        parts.append(format_duration_minutes(details.estimated_duration))
    return " · ".join(p for p in parts if p)


def activity_view(activity: Activity, utc_offset: Optional[str] = None) -> Dict[str, Any]:
    view = {
        'id': activity.id,
        'title': activity.title,
        'type': activity.type.value,
        'start_time': DateTimeUtils.to_iso_string(activity.start_time),
        'local_start': format_local_time(activity.start_time, utc_offset),
        'location_label': location_label(activity),
        'route_summary': route_summary(activity),
        'checklist_ratio': format_checklist_ratio(activity.checklist),
    }
    if activity.end_time is not None:
        view['local_end'] = format_local_time(activity.end_time, utc_offset)
    if isinstance(activity.details, TransportDetails):
        view['transit_preferences'] = transit_preference_labels(activity.details)
    return view


def trip_overview(trip: Trip, activities: Sequence[Activity], now: datetime,
                  utc_offset: Optional[str] = None) -> Dict[str, Any]:
    """여행 상세 화면에 필요한 파생 값을 한 번에 계산합니다."""
    status = trip_status(trip, now, utc_offset)
    return {
        'trip_id': trip.id,
        'title': trip.title,
        'destination': trip.destination,
        'cover_color': trip.cover.value,
        'duration_days': trip_duration_days(trip),
        'status': status.value,
        'days_until_start': max(0, days_until_start(trip, now, utc_offset)),
        'flights': {
            'outbound': flight_view(trip.outbound_flight, now) if trip.outbound_flight else None,
            'return': flight_view(trip.return_flight, now) if trip.return_flight else None,
        },
        'days': [
            {
                'date': bucket.day.isoformat(),
                'day_number': index + 1,
                'activities': [activity_view(a, utc_offset) for a in bucket.activities],
            }
            for index, bucket in enumerate(group_activities_by_day(trip, activities, utc_offset))
        ],
    }
