# tripboard/models/trip.py
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from tripboard.models.fields import FieldUpdate, UpdateFields, UNCHANGED
from tripboard.utils.datetime_utils import DateTimeUtils


class CoverColor(Enum):
    """여행 카드 커버에 사용하는 그라데이션 색상 키"""
    BLUE = "blue"
    PURPLE = "purple"
    SUNSET = "sunset"
    FOREST = "forest"
    NIGHT = "night"
    CORAL = "coral"


DEFAULT_COVER_COLOR = CoverColor.BLUE


class FlightLeg(Enum):
    OUTBOUND = "outbound"
    RETURN = "return"

    @property
    def field_name(self) -> str:
        return f"{self.value}_flight"


@dataclass
class FlightInfo:
    """
    Trip 문서에 내장(embedded)되는 항공편 정보.
    departure_time/arrival_time 은 절대 시각(UTC)이고,
    *_timezone 은 표시용 UTC offset 문자열("+09:00")입니다.
    """
    airline: str
    flight_number: str
    departure_time: datetime
    arrival_time: datetime
    departure_airport: str
    arrival_airport: str
    departure_timezone: Optional[str] = None
    arrival_timezone: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlightInfo":
        return cls(
            airline=data.get('airline', ''),
            flight_number=data.get('flight_number', ''),
            departure_time=DateTimeUtils.to_utc(data['departure_time']),
            arrival_time=DateTimeUtils.to_utc(data['arrival_time']),
            departure_airport=data.get('departure_airport', ''),
            arrival_airport=data.get('arrival_airport', ''),
            departure_timezone=data.get('departure_timezone'),
            arrival_timezone=data.get('arrival_timezone'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'airline': self.airline,
            'flight_number': self.flight_number,
            'departure_time': self.departure_time,
            'arrival_time': self.arrival_time,
            'departure_airport': self.departure_airport,
            'arrival_airport': self.arrival_airport,
        }
        # Firestore 는 None 대신 필드 자체를 생략합니다.
        if self.departure_timezone:
            data['departure_timezone'] = self.departure_timezone
        if self.arrival_timezone:
            data['arrival_timezone'] = self.arrival_timezone
        return DateTimeUtils.for_firestore(data)


@dataclass
class Trip:
    """
    Firestore 'trips' 컬렉션 문서 구조.
    start_date/end_date 는 시각이 없는 날짜이며 자정 UTC Timestamp 로 저장됩니다.
    """
    id: str
    title: str
    destination: str
    start_date: date
    end_date: date
    created_by: str
    members: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    outbound_flight: Optional[FlightInfo] = None
    return_flight: Optional[FlightInfo] = None
    cover_color: Optional[CoverColor] = None
    cover_image: Optional[str] = None

    @classmethod
    def from_dict(cls, trip_id: str, data: Dict[str, Any]) -> "Trip":
        """Firestore 문서 dict 로부터 Trip 인스턴스를 생성합니다."""
        outbound = data.get('outbound_flight')
        inbound = data.get('return_flight')
        cover_color = data.get('cover_color')
        created_at = data.get('created_at')
        return cls(
            id=trip_id,
            title=data.get('title', ''),
            destination=data.get('destination', ''),
            start_date=DateTimeUtils.to_date(data['start_date']),
            end_date=DateTimeUtils.to_date(data['end_date']),
            created_by=data.get('created_by', ''),
            members=list(dict.fromkeys(data.get('members') or [])),
            created_at=DateTimeUtils.to_utc(created_at) if created_at else None,
            outbound_flight=FlightInfo.from_dict(outbound) if outbound else None,
            return_flight=FlightInfo.from_dict(inbound) if inbound else None,
            cover_color=_parse_cover_color(cover_color),
            cover_image=data.get('cover_image'),
        )

    def flight(self, leg: FlightLeg) -> Optional[FlightInfo]:
        return self.outbound_flight if leg is FlightLeg.OUTBOUND else self.return_flight

    @property
    def cover(self) -> CoverColor:
        return self.cover_color or DEFAULT_COVER_COLOR


def _parse_cover_color(value: Optional[str]) -> Optional[CoverColor]:
    if not value:
        return None
    try:
        return CoverColor(value)
    except ValueError:
        # 알 수 없는 색상 키는 기본 색상으로 표시합니다.
        return None


@dataclass
class NewTrip:
    """create_trip 입력값. created_by/members/created_at 은 서비스가 채웁니다."""
    title: str
    destination: str
    start_date: date
    end_date: date
    outbound_flight: Optional[FlightInfo] = None
    return_flight: Optional[FlightInfo] = None
    cover_color: Optional[CoverColor] = None
    cover_image: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'title': self.title,
            'destination': self.destination,
            'start_date': self.start_date,
            'end_date': self.end_date,
        }
        if self.outbound_flight:
            data['outbound_flight'] = self.outbound_flight.to_dict()
        if self.return_flight:
            data['return_flight'] = self.return_flight.to_dict()
        if self.cover_color:
            data['cover_color'] = self.cover_color.value
        if self.cover_image:
            data['cover_image'] = self.cover_image
        return DateTimeUtils.for_firestore(data)


@dataclass
class TripUpdate(UpdateFields):
    """여행 부분 업데이트. 항공편은 CLEAR 로 삭제할 수 있습니다."""
    REQUIRED_FIELDS = frozenset({'title', 'destination', 'start_date', 'end_date'})

    title: FieldUpdate = UNCHANGED
    destination: FieldUpdate = UNCHANGED
    start_date: FieldUpdate = UNCHANGED
    end_date: FieldUpdate = UNCHANGED
    outbound_flight: FieldUpdate = UNCHANGED
    return_flight: FieldUpdate = UNCHANGED
    cover_color: FieldUpdate = UNCHANGED
    cover_image: FieldUpdate = UNCHANGED
